"""
tests/unit/test_providers.py - Tests for chains/providers.py

Endpoints are served by httpx.MockTransport; nothing touches the network.
"""

import json

import httpx
import pytest

from chains.providers import SuiRPCProvider, parse_object_response
from core.constants import TxStatus
from core.exceptions import ErrorCode, InfraError, PoolError

PRIMARY = "https://primary.rpc"
BACKUP = "https://backup.rpc"

POOL_RESULT = {
    "data": {
        "objectId": "0x51e8",
        "version": "42",
        "content": {
            "dataType": "moveObject",
            "type": "0x1eab::pool::Pool<0x2::sui::SUI, 0xdba3::usdc::USDC>",
            "fields": {"current_sqrt_price": "11222706433573", "fee_rate": "500"},
        },
    }
}


def make_provider(handler, urls=(PRIMARY, BACKUP)) -> SuiRPCProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SuiRPCProvider(list(urls), client=client)


def rpc_result(request: httpx.Request, result) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


class TestFailover:
    async def test_primary_used(self):
        seen = []

        def handler(request):
            seen.append(request.url.host)
            return rpc_result(request, POOL_RESULT)

        provider = make_provider(handler)
        response = await provider.call("sui_getObject", ["0x51e8"])

        assert response.endpoint_used == PRIMARY
        assert seen == ["primary.rpc"]

    async def test_http_error_moves_on(self):
        def handler(request):
            if request.url.host == "primary.rpc":
                return httpx.Response(503)
            return rpc_result(request, POOL_RESULT)

        provider = make_provider(handler)
        response = await provider.call("sui_getObject", ["0x51e8"])

        assert response.endpoint_used == BACKUP
        assert provider.stats[PRIMARY].failed_requests == 1
        assert provider.stats[BACKUP].successful_requests == 1

    async def test_jsonrpc_error_moves_on(self):
        def handler(request):
            if request.url.host == "primary.rpc":
                return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "overloaded"}})
            return rpc_result(request, POOL_RESULT)

        provider = make_provider(handler)
        response = await provider.call("sui_getObject", ["0x51e8"])

        assert response.endpoint_used == BACKUP
        assert provider.stats[PRIMARY].last_error == "overloaded"

    async def test_timeout_moves_on(self):
        def handler(request):
            if request.url.host == "primary.rpc":
                raise httpx.ReadTimeout("slow", request=request)
            return rpc_result(request, POOL_RESULT)

        provider = make_provider(handler)
        response = await provider.call("sui_getObject", ["0x51e8"])
        assert response.endpoint_used == BACKUP

    async def test_all_fail(self):
        provider = make_provider(lambda request: httpx.Response(500))

        with pytest.raises(InfraError) as exc_info:
            await provider.call("sui_getObject", ["0x51e8"])

        assert exc_info.value.code == ErrorCode.INFRA_RPC_ERROR
        assert exc_info.value.details["endpoints_tried"] == 2

    async def test_no_endpoints(self):
        provider = SuiRPCProvider(["", ""])
        with pytest.raises(InfraError):
            await provider.call("sui_getObject")

    async def test_stats_summary(self):
        provider = make_provider(lambda request: rpc_result(request, POOL_RESULT))
        await provider.call("sui_getObject", ["0x51e8"])
        summary = provider.get_stats_summary()
        assert summary[PRIMARY]["success_rate"] == 1.0
        assert summary[BACKUP]["total_requests"] == 0


class TestSuiMethods:
    async def test_get_object(self):
        captured = {}

        def handler(request):
            captured.update(json.loads(request.content))
            return rpc_result(request, POOL_RESULT)

        obj = await make_provider(handler).get_object("0x51e8")

        assert captured["method"] == "sui_getObject"
        assert captured["params"][1] == {"showType": True, "showContent": True}
        assert obj.fields["fee_rate"] == "500"
        assert obj.version == "42"

    async def test_dynamic_fields_page(self):
        page_result = {"data": [{"name": {"type": "u64", "value": "0"}}], "nextCursor": "0xc", "hasNextPage": True}
        page = await make_provider(lambda request: rpc_result(request, page_result)).get_dynamic_fields("0xbag")
        assert len(page.entries) == 1
        assert page.next_cursor == "0xc"
        assert page.has_next_page is True

    async def test_execute_returns_digest(self):
        provider = make_provider(lambda request: rpc_result(request, {"digest": "9xYz"}))
        assert await provider.execute_transaction("AAAA", ["sig"]) == "9xYz"

    async def test_execute_without_digest(self):
        provider = make_provider(lambda request: rpc_result(request, {}))
        with pytest.raises(InfraError):
            await provider.execute_transaction("AAAA", ["sig"])

    @pytest.mark.parametrize(
        "status, expected",
        [("success", TxStatus.SUCCESS), ("failure", TxStatus.FAILURE), (None, TxStatus.PENDING)],
    )
    async def test_transaction_status(self, status, expected):
        effects = {"effects": {"status": {"status": status}}} if status else {}
        provider = make_provider(lambda request: rpc_result(request, effects))
        assert await provider.get_transaction_status("9xYz") is expected

    async def test_unknown_transaction_is_pending(self):
        provider = make_provider(
            lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"message": "Could not find"}})
        )
        assert await provider.get_transaction_status("9xYz") is TxStatus.PENDING


class TestParseObjectResponse:
    def test_parsed(self):
        obj = parse_object_response("0x51e8", POOL_RESULT)
        assert obj.type.startswith("0x1eab::pool::Pool<")

    def test_not_a_dict(self):
        with pytest.raises(PoolError):
            parse_object_response("0x51e8", None)

    def test_error_payload(self):
        with pytest.raises(PoolError):
            parse_object_response("0x51e8", {"error": {"code": "notExists"}})

    def test_package_has_no_move_content(self):
        with pytest.raises(PoolError) as exc_info:
            parse_object_response("0x2", {"data": {"content": {"dataType": "package"}}})
        assert exc_info.value.details["data_type"] == "package"
