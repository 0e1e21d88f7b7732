"""Deployment topology: stage classification, naming, routes and composition."""

from topology.classifier import classify
from topology.composer import ComposerState, TopologyComposer, compose_topology
from topology.errors import (
    ComposerStateError,
    ConfigurationError,
    DuplicateResourceNameError,
    DuplicateRouteBindingError,
    MissingConfigurationError,
    TopologyError,
)
from topology.models import EnvironmentDescriptor, EnvironmentFlags, TopologyResult
from topology.naming import ResourceNamer, name
from topology.policy import policy_for
from topology.routes import USER_COMPUTE_UNITS, build_routes

__all__ = [
    "classify",
    "name",
    "ResourceNamer",
    "policy_for",
    "build_routes",
    "USER_COMPUTE_UNITS",
    "ComposerState",
    "TopologyComposer",
    "compose_topology",
    "EnvironmentDescriptor",
    "EnvironmentFlags",
    "TopologyResult",
    "TopologyError",
    "ConfigurationError",
    "MissingConfigurationError",
    "DuplicateRouteBindingError",
    "DuplicateResourceNameError",
    "ComposerStateError",
]
