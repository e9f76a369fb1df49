"""
chains/providers.py - Sui JSON-RPC provider with failover.

Provides reliable RPC access with:
- Multiple endpoint failover (tried in order)
- Per-request timeout
- Connection pooling
- Latency tracking
"""

import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from core.constants import TxStatus
from core.exceptions import ErrorCode, InfraError, PoolError
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RPCStats:
    """Statistics for an RPC endpoint."""
    url: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_latency_ms: int = 0
    last_error: str | None = None
    last_success_ts: int | None = None

    @property
    def avg_latency_ms(self) -> int:
        if self.successful_requests == 0:
            return 0
        return self.total_latency_ms // self.successful_requests

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests


@dataclass
class RPCResponse:
    """Response from an RPC call."""
    result: Any
    latency_ms: int
    endpoint_used: str


@dataclass
class SuiObject:
    """Parsed Move object content."""
    object_id: str
    type: str
    fields: dict[str, Any] = field(default_factory=dict)
    version: str | None = None


@dataclass
class DynamicFieldPage:
    """One page of dynamic-field names under a parent object."""
    entries: list[dict[str, Any]]
    next_cursor: str | None
    has_next_page: bool


class SuiRPCProvider:
    """
    Sui JSON-RPC provider with failover support.

    Tries endpoints in order until one succeeds. A JSON-RPC error is
    treated like a transport failure and moves on to the next endpoint.
    """

    def __init__(
        self,
        rpc_urls: list[str],
        timeout_seconds: float = 10,
        client: httpx.AsyncClient | None = None,
    ):
        self.rpc_urls = [u for u in rpc_urls if u]
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._request_id = 0

        self.stats: dict[str, RPCStats] = {
            url: RPCStats(url=url) for url in self.rpc_urls
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=10),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def call(
        self,
        method: str,
        params: list | None = None,
    ) -> RPCResponse:
        """
        Make an RPC call with failover.

        Raises:
            InfraError: If all endpoints fail
        """
        if not self.rpc_urls:
            raise InfraError(
                code=ErrorCode.INFRA_RPC_ERROR,
                message="No RPC endpoints configured",
                details={"method": method},
            )

        client = await self._get_client()
        last_error: str | None = None

        for url in self.rpc_urls:
            stats = self.stats[url]
            stats.total_requests += 1

            payload = {
                "jsonrpc": "2.0",
                "method": method,
                "params": params or [],
                "id": self._next_request_id(),
            }

            start_ms = int(time.time() * 1000)

            try:
                resp = await client.post(url, json=payload)
                latency_ms = int(time.time() * 1000) - start_ms
                resp.raise_for_status()
                result = resp.json()
            except httpx.TimeoutException:
                latency_ms = int(time.time() * 1000) - start_ms
                stats.failed_requests += 1
                stats.last_error = f"Timeout after {latency_ms}ms"
                last_error = stats.last_error
                logger.debug(f"RPC timeout for {url}: {latency_ms}ms")
                continue
            except (httpx.HTTPError, ValueError) as e:
                stats.failed_requests += 1
                stats.last_error = str(e)
                last_error = str(e)
                logger.debug(f"RPC failed for {url}: {e}")
                continue

            if "error" in result:
                error = result["error"]
                error_msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                stats.failed_requests += 1
                stats.last_error = error_msg
                last_error = error_msg
                logger.debug(f"RPC error from {url}: {error_msg}")
                continue

            stats.successful_requests += 1
            stats.total_latency_ms += latency_ms
            stats.last_success_ts = int(time.time() * 1000)

            return RPCResponse(
                result=result.get("result"),
                latency_ms=latency_ms,
                endpoint_used=url,
            )

        raise InfraError(
            code=ErrorCode.INFRA_RPC_ERROR,
            message=f"All RPC endpoints failed for {method}",
            details={
                "method": method,
                "endpoints_tried": len(self.rpc_urls),
                "last_error": last_error,
            },
        )

    # =========================================================================
    # SUI METHODS
    # =========================================================================

    async def get_object(self, object_id: str) -> SuiObject:
        """
        Fetch a Move object with its type and content.

        Raises:
            PoolError: object missing or has no Move content
            InfraError: all endpoints failed
        """
        response = await self.call(
            "sui_getObject",
            [object_id, {"showType": True, "showContent": True}],
        )
        return parse_object_response(object_id, response.result)

    async def get_dynamic_fields(
        self,
        parent_id: str,
        cursor: str | None = None,
        limit: int = 50,
    ) -> DynamicFieldPage:
        """List one page of dynamic fields under parent_id."""
        response = await self.call("suix_getDynamicFields", [parent_id, cursor, limit])
        result = response.result or {}
        return DynamicFieldPage(
            entries=result.get("data", []),
            next_cursor=result.get("nextCursor"),
            has_next_page=bool(result.get("hasNextPage")),
        )

    async def get_dynamic_field_object(self, parent_id: str, name: dict[str, Any]) -> SuiObject:
        """Fetch the object stored under a dynamic-field name."""
        response = await self.call("suix_getDynamicFieldObject", [parent_id, name])
        return parse_object_response(parent_id, response.result)

    async def execute_transaction(self, tx_bytes: str, signatures: list[str]) -> str:
        """
        Submit signed transaction bytes.

        Returns:
            Transaction digest
        """
        response = await self.call(
            "sui_executeTransactionBlock",
            [tx_bytes, signatures, {"showEffects": True}, "WaitForEffectsCert"],
        )
        digest = (response.result or {}).get("digest")
        if not digest:
            raise InfraError(
                code=ErrorCode.INFRA_RPC_ERROR,
                message="Submission returned no digest",
                details={"result": response.result},
            )
        return digest

    async def get_transaction_status(self, digest: str) -> TxStatus:
        """
        Finality status of a submitted transaction.

        A transaction the node does not know yet is PENDING.
        """
        try:
            response = await self.call(
                "sui_getTransactionBlock",
                [digest, {"showEffects": True}],
            )
        except InfraError as e:
            logger.debug(
                "Transaction not visible yet",
                extra={"context": {"digest": digest, "error": e.message}},
            )
            return TxStatus.PENDING

        effects = (response.result or {}).get("effects") or {}
        status = (effects.get("status") or {}).get("status")
        if status == "success":
            return TxStatus.SUCCESS
        if status == "failure":
            return TxStatus.FAILURE
        return TxStatus.PENDING

    def get_stats_summary(self) -> dict:
        """Get statistics summary for all endpoints."""
        return {
            url: {
                "total_requests": s.total_requests,
                "success_rate": round(s.success_rate, 3),
                "avg_latency_ms": s.avg_latency_ms,
                "last_error": s.last_error,
            }
            for url, s in self.stats.items()
        }


def parse_object_response(object_id: str, result: Any) -> SuiObject:
    """Turn a sui_getObject style result into a SuiObject."""
    if not isinstance(result, dict):
        raise PoolError(
            f"Object {object_id} not found",
            details={"object_id": object_id},
        )
    if result.get("error"):
        raise PoolError(
            f"Object {object_id} not found: {result['error']}",
            details={"object_id": object_id, "error": result["error"]},
        )

    data = result.get("data") or {}
    content = data.get("content") or {}
    if content.get("dataType") != "moveObject":
        raise PoolError(
            f"Object {object_id} has no Move content",
            details={"object_id": object_id, "data_type": content.get("dataType")},
        )

    return SuiObject(
        object_id=data.get("objectId", object_id),
        type=content.get("type") or data.get("type", ""),
        fields=content.get("fields") or {},
        version=data.get("version"),
    )
