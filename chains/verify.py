"""
chains/verify.py - Startup verification of configured on-chain objects.

Checks that every configured object id resolves to a Move object before
the monitoring loop starts. A typo in a pool or market id then fails at
startup instead of on the first trade.
"""

from dataclasses import dataclass, field

from chains.providers import SuiRPCProvider
from core.exceptions import ConfigError, InfraError, PoolError
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class VerificationReport:
    """Per-object verification outcome."""
    found: dict[str, str] = field(default_factory=dict)
    missing: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.missing


async def verify_objects(
    provider: SuiRPCProvider,
    objects: dict[str, str],
    expected_types: dict[str, str] | None = None,
) -> VerificationReport:
    """
    Fetch every named object and record its type.

    Args:
        provider: RPC provider
        objects: label -> object id
        expected_types: label -> substring the object type must contain

    Returns:
        VerificationReport (InfraError propagates)
    """
    expected_types = expected_types or {}
    report = VerificationReport()

    for label, object_id in objects.items():
        try:
            obj = await provider.get_object(object_id)
        except PoolError as e:
            report.missing[label] = e.message
            continue

        expected = expected_types.get(label)
        if expected and expected not in obj.type:
            report.missing[label] = f"unexpected type {obj.type}"
            continue
        report.found[label] = obj.type

    logger.info(
        "Object verification complete",
        extra={"context": {"found": len(report.found), "missing": report.missing}},
    )
    return report


async def require_objects(
    provider: SuiRPCProvider,
    objects: dict[str, str],
    expected_types: dict[str, str] | None = None,
) -> VerificationReport:
    """verify_objects, raising ConfigError on any missing object."""
    try:
        report = await verify_objects(provider, objects, expected_types)
    except InfraError:
        logger.error("Object verification could not reach RPC")
        raise
    if not report.ok:
        raise ConfigError(
            "Configured on-chain objects could not be verified",
            details={"missing": report.missing},
        )
    return report
