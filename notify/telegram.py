"""
notify/telegram.py - Telegram notifications over the Bot API.

Notifications are best effort: a failed send is logged and never
propagates into the trading loop. Without a token and chat id the
notifier is a silent no-op.
"""

import html
from decimal import Decimal
from typing import Optional

import httpx

from core.constants import ArbDirection, ExecutionStatus
from core.logging import get_logger
from core.models import AssetPair, ExecutionResult
from core.time import now_iso

logger = get_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"

DIRECTION_TEXT = {
    ArbDirection.LOW_TO_HIGH: "Sell 0.05% pool, buy back on 0.25% pool",
    ArbDirection.HIGH_TO_LOW: "Sell 0.25% pool, buy back on 0.05% pool",
}


def _short_id(object_id: str) -> str:
    if len(object_id) <= 18:
        return object_id
    return f"{object_id[:10]}...{object_id[-6:]}"


class TelegramNotifier:
    """Sends HTML-formatted messages to one chat."""

    def __init__(
        self,
        bot_token: str = "",
        chat_id: str = "",
        pair: Optional[AssetPair] = None,
        timeout_seconds: float = 10,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.pair = pair
        self.enabled = bool(bot_token and chat_id)
        self._client = client
        self._owns_client = client is None
        self.timeout_seconds = timeout_seconds
        self.sent = 0
        self.failed = 0

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=TELEGRAM_API_URL, timeout=self.timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def send_message(self, text: str) -> bool:
        """Send one message. Returns False on any failure."""
        if not self.enabled:
            return False

        client = await self._get_client()
        try:
            response = await client.post(
                f"/bot{self.bot_token}/sendMessage",
                json={"chat_id": self.chat_id, "text": text, "parse_mode": "HTML"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.failed += 1
            logger.error(
                f"Telegram API error: {e.response.status_code}",
                extra={"context": {"body": e.response.text[:200]}},
            )
            return False
        except httpx.HTTPError as e:
            self.failed += 1
            logger.error(f"Failed to send Telegram notification: {type(e).__name__}")
            return False

        self.sent += 1
        return True

    def _base_amount(self, raw: int) -> str:
        if self.pair is None:
            return str(raw)
        base = self.pair.base
        return f"{Decimal(raw) / Decimal(10**base.decimals):f} {base.symbol}"

    async def notify_opportunity(
        self,
        low_fee_price: Decimal,
        high_fee_price: Decimal,
        spread_pct: Decimal,
        direction: ArbDirection,
        low_fee_pool_id: str,
        high_fee_pool_id: str,
    ) -> bool:
        message = "\n".join([
            "<b>Cetus Fee-Tier Arb Opportunity</b>",
            "",
            "<b>Prices:</b>",
            f"0.05% = {low_fee_price:.6f} USDC/SUI",
            f"0.25% = {high_fee_price:.6f} USDC/SUI",
            "",
            f"<b>Spread:</b> {spread_pct:.4f}%",
            f"<b>Direction:</b> {DIRECTION_TEXT[direction]}",
            "",
            "<b>Pools:</b>",
            f"0.05%: <code>{_short_id(low_fee_pool_id)}</code>",
            f"0.25%: <code>{_short_id(high_fee_pool_id)}</code>",
            "",
            f"<b>Time:</b> {now_iso()}",
        ])
        return await self.send_message(message)

    async def notify_execution_result(self, direction: ArbDirection, result: ExecutionResult, dry_run: bool) -> bool:
        ok = result.status in (ExecutionStatus.CONFIRMED, ExecutionStatus.SIMULATED)
        header = "DRY RUN" if dry_run else "LIVE"
        lines = [
            f"<b>{header} {'Success' if ok else 'Failed'}: {result.status.value}</b>",
            "",
            f"<b>Direction:</b> {DIRECTION_TEXT[direction]}",
        ]
        if result.plan is not None:
            lines.append(f"<b>Flashloan:</b> {self._base_amount(result.plan.principal)}")
            lines.append(f"<b>Expected Profit:</b> {self._base_amount(result.plan.expected_profit)}")
        if result.provider is not None:
            lines.append(f"<b>Provider:</b> {result.provider.value}")
        if result.digest:
            lines.append(f"<b>Tx:</b> <code>{result.digest}</code>")
        if result.error:
            lines.append(f"<b>Error:</b> {html.escape(result.error[:300])}")
        lines += ["", f"<b>Time:</b> {now_iso()}"]
        return await self.send_message("\n".join(lines))

    async def notify_kill_switch(self, reason: str) -> bool:
        return await self.send_message(f"<b>KILL SWITCH ACTIVATED</b>\n\n{html.escape(reason)}\n\n<b>Time:</b> {now_iso()}")
