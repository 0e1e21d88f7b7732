"""Topology composer - turns an environment descriptor into a resource graph."""

import logging
from collections.abc import Callable, Iterable
from enum import Enum

from pydantic import BaseModel

from topology.classifier import classify
from topology.errors import (
    ComposerStateError,
    DuplicateResourceNameError,
    MissingConfigurationError,
    TopologyError,
)
from topology.gateway import STAGE_NAME, build_gateway
from topology.models import (
    BackupPlanSpec,
    ComputeUnitDeployment,
    ComputeUnitSpec,
    DomainMappingSpec,
    EnvironmentDescriptor,
    EnvironmentFlags,
    Frozen,
    GlobalIndexSpec,
    RouteBinding,
    SubscriptionSpec,
    TableSpec,
    TopicSpec,
    TopologyResult,
)
from topology.naming import ResourceNamer
from topology.policy import error_alarm, log_retention_for, policy_for
from topology.routes import USER_COMPUTE_UNITS, build_routes

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "account",
    "region",
    "service",
    "stage",
    "authorizer_function_arn",
    "country_code",
    "notification_endpoint",
)

PRODUCTION_HOST_PATTERN = "prod-api.{base_domain}"
DOMAIN_BASE_PATH = "user"


class ComposerState(str, Enum):
    UNINITIALIZED = "Uninitialized"
    CLASSIFYING_ENVIRONMENT = "ClassifyingEnvironment"
    NAMING_RESOURCES = "NamingResources"
    BUILDING_ROUTES = "BuildingRoutes"
    COMPUTING_DEPLOYMENT_POLICIES = "ComputingDeploymentPolicies"
    COMPOSING_TOPOLOGY = "ComposingTopology"
    DONE = "Done"
    FAILED = "Failed"


def api_host(stage: str, flags: EnvironmentFlags, base_domain: str) -> str:
    """Custom domain host for a CD stage."""
    if flags.is_production_like:
        return PRODUCTION_HOST_PATTERN.format(base_domain=base_domain)
    return f"{stage}-api.{base_domain}"


def _backup_plan(
    descriptor: EnvironmentDescriptor, flags: EnvironmentFlags, namer: ResourceNamer
) -> BackupPlanSpec:
    return BackupPlanSpec(
        vault_name=namer.backup_name,
        plan_name=namer.backup_name,
        table_name=namer.table_name,
    )


def _alarm_subscription(
    descriptor: EnvironmentDescriptor, flags: EnvironmentFlags, namer: ResourceNamer
) -> SubscriptionSpec:
    return SubscriptionSpec(
        topic_name=namer.topic_name,
        endpoint=descriptor.notification_endpoint,
    )


def _domain_mapping(
    descriptor: EnvironmentDescriptor, flags: EnvironmentFlags, namer: ResourceNamer
) -> DomainMappingSpec:
    return DomainMappingSpec(
        domain_name=api_host(descriptor.stage, flags, descriptor.base_domain),
        base_path=DOMAIN_BASE_PATH,
        stage_name=STAGE_NAME,
    )


class ConditionalResource(Frozen):
    """A resource that only exists when its predicate holds for the stage."""

    field: str
    applies: Callable[[EnvironmentFlags], bool]
    build: Callable[[EnvironmentDescriptor, EnvironmentFlags, ResourceNamer], BaseModel]


CONDITIONAL_RESOURCES: tuple[ConditionalResource, ...] = (
    ConditionalResource(
        field="subscription",
        applies=lambda flags: flags.is_production_like,
        build=_alarm_subscription,
    ),
    ConditionalResource(
        field="backup_plan",
        applies=lambda flags: flags.is_continuous_delivery_stage,
        build=_backup_plan,
    ),
    ConditionalResource(
        field="domain_mapping",
        applies=lambda flags: flags.is_continuous_delivery_stage,
        build=_domain_mapping,
    ),
)


class TopologyComposer:
    """Single-use synthesis pass over one environment.

    Walks the states in ``ComposerState`` order. Any ``TopologyError`` moves
    the composer to ``FAILED``, is kept on ``self.error`` and re-raised; no
    partial result is exposed.
    """

    def __init__(
        self,
        descriptor: EnvironmentDescriptor,
        units: Iterable[ComputeUnitSpec] = USER_COMPUTE_UNITS,
        conditional_resources: tuple[ConditionalResource, ...] = CONDITIONAL_RESOURCES,
    ):
        self.descriptor = descriptor
        self.units = tuple(units)
        self.conditional_resources = conditional_resources
        self.state = ComposerState.UNINITIALIZED
        self.error: TopologyError | None = None
        self.result: TopologyResult | None = None

    def _advance(self, state: ComposerState) -> None:
        logger.debug("Topology composer %s -> %s", self.state.value, state.value)
        self.state = state

    def compose(self) -> TopologyResult:
        if self.state != ComposerState.UNINITIALIZED:
            raise ComposerStateError(
                f"Composer already ran (state: {self.state.value})"
            )
        try:
            self._check_required_fields()

            self._advance(ComposerState.CLASSIFYING_ENVIRONMENT)
            flags = self._classify()

            self._advance(ComposerState.NAMING_RESOURCES)
            namer = ResourceNamer(self.descriptor.service, self.descriptor.stage)
            self._check_unique_names(namer)

            self._advance(ComposerState.BUILDING_ROUTES)
            routes = build_routes(self.units)

            self._advance(ComposerState.COMPUTING_DEPLOYMENT_POLICIES)
            deployments = [self._deploy_unit(unit, flags, namer) for unit in self.units]

            self._advance(ComposerState.COMPOSING_TOPOLOGY)
            result = self._compose(flags, namer, routes, deployments)
        except TopologyError as exc:
            self._advance(ComposerState.FAILED)
            self.error = exc
            raise

        self.result = result
        self._advance(ComposerState.DONE)
        logger.info(
            "Composed %s: %d compute units, %d routes, production=%s, cd=%s",
            result.stack_name,
            len(result.compute_units),
            len(result.routes),
            flags.is_production_like,
            flags.is_continuous_delivery_stage,
        )
        return result

    def _check_required_fields(self) -> None:
        missing = [
            field
            for field in REQUIRED_FIELDS
            if not getattr(self.descriptor, field).strip()
        ]
        if missing:
            raise MissingConfigurationError(missing)

    def _classify(self) -> EnvironmentFlags:
        flags = classify(self.descriptor.stage)
        if not flags.is_continuous_delivery_stage:
            logger.warning(
                "Stage %r is not a CD stage; skipping backups and domain mapping",
                self.descriptor.stage,
            )
        return flags

    def _check_unique_names(self, namer: ResourceNamer) -> None:
        names = [namer.topic_name, namer.table_name, namer.access_log_group_name]
        for unit in self.units:
            names.extend(
                [
                    namer.function_name(unit.logical_name),
                    namer.function_log_group_name(unit.logical_name),
                    namer.alarm_name(unit.logical_name),
                ]
            )
        seen: set[str] = set()
        for resource_name in names:
            if resource_name in seen:
                raise DuplicateResourceNameError(resource_name)
            seen.add(resource_name)

    def _deploy_unit(
        self, unit: ComputeUnitSpec, flags: EnvironmentFlags, namer: ResourceNamer
    ) -> ComputeUnitDeployment:
        policy = policy_for(unit, flags, self.descriptor.stage)
        asset_dir = self.descriptor.lambda_asset_dir.rstrip("/")
        return ComputeUnitDeployment(
            spec=unit,
            policy=policy,
            function_name=namer.function_name(unit.logical_name),
            log_group_name=namer.function_log_group_name(unit.logical_name),
            code_path=f"{asset_dir}/{unit.asset_name}/bootstrap.zip",
            alarm=error_alarm(
                logical_id=f"{unit.logical_name}Errors",
                alarm_name=namer.alarm_name(unit.logical_name),
                description=f"The latest deployment errors >= {policy.error_alarm_threshold}",
                metric="errors",
                topic_name=namer.topic_name,
                threshold=policy.error_alarm_threshold,
            ),
            environment=(
                ("SERVICE", self.descriptor.service),
                ("STAGE", self.descriptor.stage),
                ("USER_TABLE_NAME", namer.table_name),
            ),
        )

    def _compose(
        self,
        flags: EnvironmentFlags,
        namer: ResourceNamer,
        routes: list[RouteBinding],
        deployments: list[ComputeUnitDeployment],
    ) -> TopologyResult:
        descriptor = self.descriptor
        optional = {
            conditional.field: conditional.build(descriptor, flags, namer)
            for conditional in self.conditional_resources
            if conditional.applies(flags)
        }

        return TopologyResult(
            stack_name=namer.stack_name,
            description=f"{descriptor.service} {descriptor.stage} application stack",
            descriptor=descriptor,
            flags=flags,
            tags=(
                ("Service", descriptor.service),
                ("Stage", descriptor.stage),
                ("CountryCode", descriptor.country_code),
                ("ManagedBy", "CDK"),
            ),
            topic=TopicSpec(topic_name=namer.topic_name),
            table=TableSpec(
                table_name=namer.table_name,
                global_indexes=(
                    GlobalIndexSpec(index_name="GSI1", partition_key="GSI1PK", sort_key="GSI1SK"),
                    GlobalIndexSpec(index_name="GSI2", partition_key="GSI2PK", sort_key="GSI2SK"),
                ),
            ),
            gateway=build_gateway(
                namer,
                descriptor.authorizer_function_arn,
                log_retention_for(descriptor.stage),
            ),
            compute_units=tuple(deployments),
            routes=tuple(routes),
            **optional,
        )


def compose_topology(
    descriptor: EnvironmentDescriptor,
    units: Iterable[ComputeUnitSpec] = USER_COMPUTE_UNITS,
) -> TopologyResult:
    """Run one synthesis pass."""
    return TopologyComposer(descriptor, units).compose()
