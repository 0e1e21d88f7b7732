"""Stage classification."""

from topology.models import EnvironmentFlags

CD_STAGES = frozenset({"rd", "dev", "staging", "prod"})
PRODUCTION_STAGE = "prod"


def classify(stage: str) -> EnvironmentFlags:
    """Map a stage name to its policy flags.

    Unknown stages fall through to ``(False, False)`` rather than raising.
    """
    return EnvironmentFlags(
        is_production_like=stage == PRODUCTION_STAGE,
        is_continuous_delivery_stage=stage in CD_STAGES,
    )
