"""Immutable data model for topology synthesis."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Frozen(BaseModel):
    """Base for every synthesized value; instances never change once built."""

    model_config = ConfigDict(frozen=True)


class TablePermission(str, Enum):
    FULL = "full"
    READ_ONLY = "readOnly"


class RolloutStrategy(str, Enum):
    ALL_AT_ONCE = "allAtOnce"
    CANARY_10_PERCENT_10_MINUTES = "canary10PercentOver10Minutes"


class LogRetention(str, Enum):
    ONE_WEEK = "oneWeek"
    ONE_YEAR = "oneYear"


class ResourceKind(str, Enum):
    TOPIC = "topic"
    SUBSCRIPTION = "subscription"
    TABLE = "table"
    GATEWAY = "gateway"
    AUTHORIZER = "authorizer"
    LOG_GROUP = "log_group"
    FUNCTION = "function"
    ALIAS = "alias"
    ALARM = "alarm"
    DEPLOYMENT_GROUP = "deployment_group"
    ROUTE = "route"
    BACKUP_VAULT = "backup_vault"
    BACKUP_PLAN = "backup_plan"
    DOMAIN_MAPPING = "domain_mapping"


# Inputs


class EnvironmentDescriptor(Frozen):
    """Everything synthesis needs to know about the target environment."""

    service: str
    stage: str
    account: str
    region: str
    authorizer_function_arn: str
    notification_endpoint: str
    country_code: str
    base_domain: str = "classifind.app"
    lambda_asset_dir: str = "./dist"


class EnvironmentFlags(Frozen):
    """Policy flags derived from the stage name."""

    is_production_like: bool
    is_continuous_delivery_stage: bool

    @model_validator(mode="after")
    def _production_implies_cd(self) -> "EnvironmentFlags":
        if self.is_production_like and not self.is_continuous_delivery_stage:
            raise ValueError("a production-like stage must also be a CD stage")
        return self


class ComputeUnitSpec(Frozen):
    """One request-handling function and the route it serves."""

    logical_name: str
    asset_name: str
    resource_path: str
    http_method: str
    table_permission: TablePermission


class RouteBinding(Frozen):
    path: str
    method: str
    unit: ComputeUnitSpec


class DeploymentPolicy(Frozen):
    rollout_strategy: RolloutStrategy
    log_retention: LogRetention
    error_alarm_threshold: int = Field(ge=0)


# Provisioning specs


class AlarmSpec(Frozen):
    """A CloudWatch alarm that notifies the shared alarm topic."""

    logical_id: str
    alarm_name: str | None = None
    description: str
    metric: str
    statistic: str = "Sum"
    period_minutes: int = 1
    threshold: int
    evaluation_periods: int = 1
    comparison: str = ">="
    topic_name: str


class ComputeUnitDeployment(Frozen):
    """A compute unit with its physical names and operational settings."""

    spec: ComputeUnitSpec
    policy: DeploymentPolicy
    function_name: str
    log_group_name: str
    code_path: str
    alias_name: str = "LIVE"
    alarm: AlarmSpec
    environment: tuple[tuple[str, str], ...]


class GlobalIndexSpec(Frozen):
    index_name: str
    partition_key: str
    sort_key: str


class TableSpec(Frozen):
    table_name: str
    partition_key: str = "PK"
    sort_key: str = "SK"
    global_indexes: tuple[GlobalIndexSpec, ...] = ()
    point_in_time_recovery: bool = True
    stream_new_and_old_images: bool = True


class TopicSpec(Frozen):
    topic_name: str


class SubscriptionSpec(Frozen):
    topic_name: str
    endpoint: str


class CorsPolicy(Frozen):
    allow_all_methods: bool = True
    allow_all_origins: bool = True
    allow_headers: tuple[str, ...]
    max_age_seconds: int


class GatewayResponseSpec(Frozen):
    logical_id: str
    response_type: str
    status_code: str
    response_headers: tuple[tuple[str, str], ...]
    template: str


class AuthorizerSpec(Frozen):
    authorizer_name: str
    function_arn: str
    results_cache_ttl_seconds: int


class GatewaySpec(Frozen):
    rest_api_name: str
    stage_name: str
    access_log_group_name: str
    access_log_retention: LogRetention
    access_log_fields: tuple[tuple[str, str], ...]
    cors: CorsPolicy
    gateway_responses: tuple[GatewayResponseSpec, ...]
    authorizer: AuthorizerSpec
    invoke_actions: tuple[str, ...]
    server_error_alarm: AlarmSpec


class BackupPlanSpec(Frozen):
    """Monthly snapshot schedule for the user table."""

    vault_name: str
    plan_name: str
    table_name: str
    schedule_minute: str = "0"
    schedule_hour: str = "0"
    schedule_day: str = "1"
    start_window_hours: int = 1
    completion_window_hours: int = 3
    move_to_cold_storage_after_days: int = 30
    delete_after_days: int = 365


class DomainMappingSpec(Frozen):
    domain_name: str
    base_path: str
    stage_name: str


# Output


class ResourceDescriptor(Frozen):
    kind: ResourceKind
    logical_id: str
    name: str
    depends_on: tuple[str, ...] = ()


class TopologyResult(Frozen):
    """The complete resource graph for one environment."""

    stack_name: str
    description: str
    descriptor: EnvironmentDescriptor
    flags: EnvironmentFlags
    tags: tuple[tuple[str, str], ...]
    topic: TopicSpec
    table: TableSpec
    gateway: GatewaySpec
    compute_units: tuple[ComputeUnitDeployment, ...]
    routes: tuple[RouteBinding, ...]
    subscription: SubscriptionSpec | None = None
    backup_plan: BackupPlanSpec | None = None
    domain_mapping: DomainMappingSpec | None = None

    @property
    def alarms(self) -> tuple[AlarmSpec, ...]:
        """Gateway alarm first, then one per compute unit in declaration order."""
        return (self.gateway.server_error_alarm,) + tuple(
            unit.alarm for unit in self.compute_units
        )

    def unit(self, logical_name: str) -> ComputeUnitDeployment:
        for deployment in self.compute_units:
            if deployment.spec.logical_name == logical_name:
                return deployment
        raise KeyError(logical_name)

    def descriptors(self) -> list[ResourceDescriptor]:
        """Flatten the topology into ordered descriptors with dependency edges."""
        topic_id = "SnsTopic"
        table_id = "UserTable"
        api_id = "api-gateway"
        access_logs_id = "AccessLogsLogGroup"
        authorizer_id = "TokenAuthorizer"
        gateway = self.gateway

        items = [
            ResourceDescriptor(
                kind=ResourceKind.TOPIC,
                logical_id=topic_id,
                name=self.topic.topic_name,
            )
        ]
        if self.subscription is not None:
            items.append(
                ResourceDescriptor(
                    kind=ResourceKind.SUBSCRIPTION,
                    logical_id="AlarmSubscription",
                    name=self.subscription.endpoint,
                    depends_on=(topic_id,),
                )
            )
        items.append(
            ResourceDescriptor(
                kind=ResourceKind.TABLE,
                logical_id=table_id,
                name=self.table.table_name,
            )
        )
        items.extend(
            [
                ResourceDescriptor(
                    kind=ResourceKind.AUTHORIZER,
                    logical_id=authorizer_id,
                    name=gateway.authorizer.authorizer_name,
                ),
                ResourceDescriptor(
                    kind=ResourceKind.LOG_GROUP,
                    logical_id=access_logs_id,
                    name=gateway.access_log_group_name,
                ),
                ResourceDescriptor(
                    kind=ResourceKind.GATEWAY,
                    logical_id=api_id,
                    name=gateway.rest_api_name,
                    depends_on=(authorizer_id, access_logs_id),
                ),
                ResourceDescriptor(
                    kind=ResourceKind.ALARM,
                    logical_id=gateway.server_error_alarm.logical_id,
                    name=gateway.server_error_alarm.logical_id,
                    depends_on=(api_id, topic_id),
                ),
            ]
        )

        if self.backup_plan is not None:
            items.append(
                ResourceDescriptor(
                    kind=ResourceKind.BACKUP_VAULT,
                    logical_id="BackupVault",
                    name=self.backup_plan.vault_name,
                )
            )
            items.append(
                ResourceDescriptor(
                    kind=ResourceKind.BACKUP_PLAN,
                    logical_id="BackupPlan",
                    name=self.backup_plan.plan_name,
                    depends_on=("BackupVault", table_id),
                )
            )

        for deployment in self.compute_units:
            name = deployment.spec.logical_name
            alias_id = f"{name}Alias"
            log_group_id = f"{name}LogGroup"
            alarm_id = deployment.alarm.logical_id
            items.extend(
                [
                    ResourceDescriptor(
                        kind=ResourceKind.LOG_GROUP,
                        logical_id=log_group_id,
                        name=deployment.log_group_name,
                    ),
                    ResourceDescriptor(
                        kind=ResourceKind.FUNCTION,
                        logical_id=name,
                        name=deployment.function_name,
                        depends_on=(table_id, log_group_id),
                    ),
                    ResourceDescriptor(
                        kind=ResourceKind.ALIAS,
                        logical_id=alias_id,
                        name=deployment.alias_name,
                        depends_on=(name,),
                    ),
                    ResourceDescriptor(
                        kind=ResourceKind.ALARM,
                        logical_id=alarm_id,
                        name=deployment.alarm.alarm_name or alarm_id,
                        depends_on=(alias_id, topic_id),
                    ),
                    ResourceDescriptor(
                        kind=ResourceKind.DEPLOYMENT_GROUP,
                        logical_id=f"{name}DeploymentGroup",
                        name=deployment.policy.rollout_strategy.value,
                        depends_on=(alias_id, alarm_id),
                    ),
                ]
            )

        for route in self.routes:
            items.append(
                ResourceDescriptor(
                    kind=ResourceKind.ROUTE,
                    logical_id=f"{route.method} {route.path}",
                    name=f"{route.method} {route.path}",
                    depends_on=(api_id, f"{route.unit.logical_name}Alias"),
                )
            )

        if self.domain_mapping is not None:
            items.append(
                ResourceDescriptor(
                    kind=ResourceKind.DOMAIN_MAPPING,
                    logical_id="BasePathMapping",
                    name=self.domain_mapping.domain_name,
                    depends_on=(api_id,),
                )
            )
        return items
