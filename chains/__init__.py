"""
chains/ - Sui interaction layer.

Modules:
- providers: JSON-RPC provider with endpoint failover
- verify: startup verification of configured object ids
"""

from chains.providers import (
    DynamicFieldPage,
    RPCResponse,
    RPCStats,
    SuiObject,
    SuiRPCProvider,
    parse_object_response,
)
from chains.verify import VerificationReport, require_objects, verify_objects

__all__ = [
    "DynamicFieldPage",
    "RPCResponse",
    "RPCStats",
    "SuiObject",
    "SuiRPCProvider",
    "parse_object_response",
    "VerificationReport",
    "require_objects",
    "verify_objects",
]
