"""Errors raised while synthesizing the deployment topology."""


class TopologyError(Exception):
    """Base class for every synthesis failure."""


class ConfigurationError(TopologyError):
    """The environment or the compute-unit declarations are inconsistent."""


class MissingConfigurationError(ConfigurationError):
    """One or more required environment inputs are absent."""

    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required configuration: {', '.join(self.fields)}")


class DuplicateRouteBindingError(ConfigurationError):
    """Two compute units claim the same (path, method) pair."""

    def __init__(self, method: str, path: str, existing: str, duplicate: str):
        self.method = method
        self.path = path
        self.existing = existing
        self.duplicate = duplicate
        super().__init__(
            f"{method} {path} is already bound to {existing}; cannot bind {duplicate}"
        )


class DuplicateResourceNameError(ConfigurationError):
    """Two resources resolve to the same physical name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Resource name {name!r} is used more than once")


class ComposerStateError(TopologyError):
    """A composer instance was run more than once."""
