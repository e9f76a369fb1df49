"""
lending/flash_loans.py - Flash-loan providers and primary/fallback selection.

A flash loan is borrowed and repaid inside the same transaction bundle.
Borrowing returns the loaned coin plus a hot-potato receipt that must be
consumed by the SAME provider's repay call for the SAME reserve. A
BorrowHandle carries that identity from borrow to repay, and repay
refuses any other handle.

Providers:
- Suilend (primary): reserve fee and capacity read from the market object
- Navi (secondary): configured fee and pool id
"""

from dataclasses import dataclass
from typing import Optional

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.constants import CLOCK_OBJECT_ID, DEFAULT_NAVI_FEE_BPS, DEFAULT_NAVI_POOL_ID, FlashProvider
from core.exceptions import (
    ErrorCode,
    ExecutionError,
    InfraError,
    PoolError,
    ReserveNotFoundError,
)
from core.logging import get_logger
from core.math import assert_within_capacity, repay_amount
from execution.transaction import Argument, NestedResult, ObjectArg, PureArg, TransactionBuilder
from lending.reserves import ReserveConfigResolver

logger = get_logger(__name__)

# Errors worth retrying before moving to the next provider
RETRYABLE_ERRORS = (InfraError, ReserveNotFoundError, PoolError)


@dataclass(frozen=True)
class FlashLoanTerms:
    """Resolved borrow terms for one provider and reserve."""
    provider: FlashProvider
    coin_type: str
    fee_bps: int
    reserve_key: str
    reserve_index: int
    available_amount: Optional[int] = None
    synthetic: bool = False

    def repay_for(self, principal: int) -> int:
        return repay_amount(principal, self.fee_bps)


@dataclass(frozen=True)
class BorrowHandle:
    """Output of a borrow call; the only valid input to its repay call."""
    terms: FlashLoanTerms
    principal: int
    coin: Argument
    receipt: Argument

    @property
    def provider(self) -> FlashProvider:
        return self.terms.provider

    @property
    def reserve_key(self) -> str:
        return self.terms.reserve_key


class FlashLoanProvider:
    """Base class for a flash-loan source."""

    name: FlashProvider

    async def prepare(self, principal: int, coin_type: str) -> FlashLoanTerms:
        raise NotImplementedError

    def add_borrow(self, builder: TransactionBuilder, terms: FlashLoanTerms, principal: int) -> BorrowHandle:
        raise NotImplementedError

    def add_repay(self, builder: TransactionBuilder, handle: BorrowHandle, coin: Argument) -> None:
        raise NotImplementedError

    def _check_handle(self, handle: BorrowHandle) -> None:
        if handle.provider is not self.name:
            raise ExecutionError(
                f"Repay to {self.name.value} with a {handle.provider.value} borrow handle",
                code=ErrorCode.REPAY_MISMATCH,
                details={"provider": self.name.value, "handle_provider": handle.provider.value},
            )


class SuilendFlashLoan(FlashLoanProvider):
    """Suilend lending::flash_borrow / lending::flash_repay."""

    name = FlashProvider.SUILEND

    def __init__(
        self,
        resolver: ReserveConfigResolver,
        package_id: str,
        market_id: str,
        market_type: str | None = None,
        safety_buffer: int = 0,
        live: bool = False,
    ):
        self.resolver = resolver
        self.package_id = package_id
        self.market_id = market_id
        self.market_type = market_type
        self.safety_buffer = safety_buffer
        self.live = live

    def _type_args(self, coin_type: str) -> list[str]:
        # Lending markets are generic over the market witness type P
        return [self.market_type, coin_type] if self.market_type else [coin_type]

    async def prepare(self, principal: int, coin_type: str) -> FlashLoanTerms:
        """
        Resolve the reserve and check capacity.

        Raises:
            CapacityError: live mode and principal exceeds capacity
            ReserveNotFoundError / InfraError: live mode lookup failure
        """
        reserve = await self.resolver.resolve_reserve(coin_type)
        assert_within_capacity(principal, reserve.available_amount, self.safety_buffer, self.live)
        return FlashLoanTerms(
            provider=self.name,
            coin_type=coin_type,
            fee_bps=reserve.fee_bps,
            reserve_key=reserve.reserve_key,
            reserve_index=reserve.reserve_index if reserve.reserve_index is not None else 0,
            available_amount=reserve.available_amount,
            synthetic=reserve.synthetic,
        )

    def add_borrow(self, builder: TransactionBuilder, terms: FlashLoanTerms, principal: int) -> BorrowHandle:
        call = builder.move_call(
            f"{self.package_id}::lending::flash_borrow",
            type_arguments=self._type_args(terms.coin_type),
            arguments=[
                ObjectArg(self.market_id),
                PureArg("u64", terms.reserve_index),
                PureArg("u64", principal),
            ],
            label="flash_borrow",
        )
        return BorrowHandle(
            terms=terms,
            principal=principal,
            coin=NestedResult(call.index, 0),
            receipt=NestedResult(call.index, 1),
        )

    def add_repay(self, builder: TransactionBuilder, handle: BorrowHandle, coin: Argument) -> None:
        self._check_handle(handle)
        builder.move_call(
            f"{self.package_id}::lending::flash_repay",
            type_arguments=self._type_args(handle.terms.coin_type),
            arguments=[
                ObjectArg(self.market_id),
                PureArg("u64", handle.terms.reserve_index),
                coin,
                handle.receipt,
            ],
            label="flash_repay",
        )


class NaviFlashLoan(FlashLoanProvider):
    """Navi lending::flash_loan / lending::repay_flash_loan."""

    name = FlashProvider.NAVI

    def __init__(
        self,
        package_id: str,
        storage_id: str,
        pool_id: int = DEFAULT_NAVI_POOL_ID,
        fee_bps: int = DEFAULT_NAVI_FEE_BPS,
    ):
        self.package_id = package_id
        self.storage_id = storage_id
        self.pool_id = pool_id
        self.fee_bps = fee_bps

    async def prepare(self, principal: int, coin_type: str) -> FlashLoanTerms:
        # Navi pool capacity is not read; the borrow aborts on-chain if short
        return FlashLoanTerms(
            provider=self.name,
            coin_type=coin_type,
            fee_bps=self.fee_bps,
            reserve_key=f"{self.storage_id}:{self.pool_id}",
            reserve_index=self.pool_id,
        )

    def add_borrow(self, builder: TransactionBuilder, terms: FlashLoanTerms, principal: int) -> BorrowHandle:
        call = builder.move_call(
            f"{self.package_id}::lending::flash_loan",
            type_arguments=[terms.coin_type],
            arguments=[
                ObjectArg(self.storage_id),
                PureArg("u8", terms.reserve_index),
                PureArg("u64", principal),
                ObjectArg(CLOCK_OBJECT_ID),
            ],
            label="flash_loan",
        )
        return BorrowHandle(
            terms=terms,
            principal=principal,
            coin=NestedResult(call.index, 0),
            receipt=NestedResult(call.index, 1),
        )

    def add_repay(self, builder: TransactionBuilder, handle: BorrowHandle, coin: Argument) -> None:
        self._check_handle(handle)
        builder.move_call(
            f"{self.package_id}::lending::repay_flash_loan",
            type_arguments=[handle.terms.coin_type],
            arguments=[
                ObjectArg(self.storage_id),
                PureArg("u8", handle.terms.reserve_index),
                coin,
                handle.receipt,
            ],
            label="repay_flash_loan",
        )


class FlashLoanRouter:
    """
    Pick the first provider whose terms resolve.

    Each provider is retried with exponential backoff
    (retry_delay_ms * 2^(attempt-1)) before falling back to the next.
    CapacityError is not retried and does not fall back.
    """

    def __init__(
        self,
        providers: list[FlashLoanProvider],
        max_retries: int = 3,
        retry_delay_ms: int = 1000,
    ):
        if not providers:
            raise ValueError("At least one flash-loan provider is required")
        self.providers = providers
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms

    async def prepare(self, principal: int, coin_type: str) -> tuple[FlashLoanProvider, FlashLoanTerms]:
        """
        Resolve terms from the first available provider.

        Raises:
            ExecutionError(FLASHLOAN_UNAVAILABLE): every provider exhausted its retries
            CapacityError: live capacity breach on a provider
        """
        failures: dict[str, str] = {}
        for provider in self.providers:
            try:
                terms = await self._prepare_with_retry(provider, principal, coin_type)
            except RetryError as e:
                error = e.last_attempt.exception()
                failures[provider.name.value] = str(error)
                logger.warning(
                    f"{provider.name.value} unavailable after {self.max_retries} attempts, trying next provider",
                    extra={"context": {"provider": provider.name.value, "error": str(error)}},
                )
                continue

            logger.info(
                "Flash-loan provider selected",
                extra={
                    "context": {
                        "provider": terms.provider.value,
                        "fee_bps": terms.fee_bps,
                        "reserve_key": terms.reserve_key,
                        "synthetic": terms.synthetic,
                    }
                },
            )
            return provider, terms

        raise ExecutionError(
            "No flash-loan provider available",
            code=ErrorCode.FLASHLOAN_UNAVAILABLE,
            details={"failures": failures},
        )

    async def _prepare_with_retry(
        self,
        provider: FlashLoanProvider,
        principal: int,
        coin_type: str,
    ) -> FlashLoanTerms:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_delay_ms / 1000, min=0, max=30),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
        )
        return await retrying(provider.prepare, principal, coin_type)
