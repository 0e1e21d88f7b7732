"""Physical names for every provisioned resource."""


def name(service: str, stage: str, logical_name: str) -> str:
    """Return ``{service}-{stage}-{logical_name}``."""
    return f"{service}-{stage}-{logical_name}"


class ResourceNamer:
    """Derives every resource name of one stack from service and stage.

    The stack itself is ``{service}-{stage}-app``; cross-cutting resources
    hang a suffix off the stack name.
    """

    STACK_LOGICAL_NAME = "app"

    def __init__(self, service: str, stage: str):
        self.service = service
        self.stage = stage

    @property
    def stack_name(self) -> str:
        return name(self.service, self.stage, self.STACK_LOGICAL_NAME)

    def scoped(self, suffix: str) -> str:
        return f"{self.stack_name}-{suffix}"

    @property
    def topic_name(self) -> str:
        return self.scoped("alarm")

    @property
    def table_name(self) -> str:
        return self.scoped("user")

    @property
    def access_log_group_name(self) -> str:
        return f"/aws/api-gateway/{self.stack_name}"

    @property
    def backup_name(self) -> str:
        return self.stack_name

    def function_name(self, logical_name: str) -> str:
        return self.scoped(logical_name)

    def function_log_group_name(self, logical_name: str) -> str:
        return f"/aws/lambda/{self.function_name(logical_name)}"

    def alarm_name(self, logical_name: str) -> str:
        return self.scoped(f"{logical_name}-errors")
