"""
strategy/config.py - Strategy configuration.

Defaults come from config/strategy.yaml and config/addresses.yaml.
Environment variables (loaded from .env by python-dotenv) override
both. The result is frozen: it is loaded once per process.
"""

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from dotenv import load_dotenv

from config import CONFIG_DIR, load_yaml
from core.constants import (
    DEFAULT_EXPECTED_PRICE,
    DEFAULT_MAX_PRICE,
    DEFAULT_MIN_PRICE,
    DEFAULT_NAVI_FEE_BPS,
    DEFAULT_NAVI_POOL_ID,
    DEFAULT_ORIENTATION_TTL_MS,
    SUI_COIN_TYPE,
    SUI_DECIMALS,
    USDC_COIN_TYPE,
    USDC_DECIMALS,
    RunMode,
)
from core.exceptions import ConfigError, ValidationError
from core.logging import get_logger
from core.models import AssetInfo, AssetPair, FeeTierPools
from core.validators import coin_types_equal, is_valid_object_id, normalize_coin_type

logger = get_logger(__name__)

MAX_SLIPPAGE_LIMIT_PCT = Decimal("10")
LOW_SPREAD_WARNING_PCT = Decimal("0.1")


@dataclass(frozen=True)
class CetusConfig:
    package_id: str
    global_config_id: str
    low_fee_pool_id: str
    high_fee_pool_id: str

    @property
    def pools(self) -> FeeTierPools:
        return FeeTierPools(self.low_fee_pool_id, self.high_fee_pool_id)


@dataclass(frozen=True)
class SuilendConfig:
    package_id: str
    market_id: str
    market_type: Optional[str] = None


@dataclass(frozen=True)
class NaviConfig:
    package_id: str
    storage_id: str
    pool_id: int = DEFAULT_NAVI_POOL_ID
    fee_bps: int = DEFAULT_NAVI_FEE_BPS
    enabled: bool = True


@dataclass(frozen=True)
class PriceBand:
    """Accepted USDC-per-SUI range and its expected center."""
    min_price: Decimal = DEFAULT_MIN_PRICE
    max_price: Decimal = DEFAULT_MAX_PRICE
    expected_price: Decimal = DEFAULT_EXPECTED_PRICE


@dataclass(frozen=True)
class StrategyConfig:
    """Full strategy configuration."""

    cetus: CetusConfig
    suilend: SuilendConfig
    navi: NaviConfig
    pair: AssetPair

    mode: RunMode = RunMode.DRY_RUN
    rpc_urls: tuple[str, ...] = ()
    rpc_timeout_seconds: float = 10

    wallet_address: str = ""
    signer_command: str = ""

    # Raw base units of the base asset
    principal: int = 10_000_000_000
    max_principal: int = 5_000_000_000_000_000
    live_confirm: bool = False
    live_confirm_threshold: int = 100_000_000_000_000
    min_profit: int = 0
    safety_buffer: int = 0

    min_spread_pct: Decimal = Decimal("0.5")
    consecutive_spread_required: int = 2

    max_slippage_pct: Decimal = Decimal("1.0")
    gas_budget: int = 50_000_000
    max_consecutive_failures: int = 3
    strict_orientation: Optional[bool] = None

    check_interval_ms: int = 5000
    finality_poll_interval_ms: int = 500
    finality_max_wait_ms: int = 10_000
    tx_interval_ms: int = 3000
    max_pending_tx: int = 5
    price_cache_ttl_ms: int = 2000
    orientation_ttl_ms: int = DEFAULT_ORIENTATION_TTL_MS
    max_quote_age_ms: int = 2000

    max_retries: int = 3
    retry_delay_ms: int = 1000

    price_band: PriceBand = field(default_factory=PriceBand)
    verify_on_chain: bool = True

    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    @property
    def live(self) -> bool:
        return self.mode is RunMode.LIVE

    @property
    def strict(self) -> bool:
        """Orientation strictness; live mode is strict unless overridden."""
        if self.strict_orientation is None:
            return self.live
        return self.strict_orientation

    @property
    def pools(self) -> FeeTierPools:
        return self.cetus.pools

    def with_mode(self, mode: RunMode) -> "StrategyConfig":
        return replace(self, mode=mode)

    def validate(self) -> list[str]:
        """
        Check the configuration.

        Returns:
            Warnings that do not block startup

        Raises:
            ConfigError: with every blocking problem listed in details["errors"]
        """
        errors: list[str] = []
        warnings: list[str] = []

        if not self.rpc_urls:
            errors.append("At least one RPC URL is required")

        for name, value in (
            ("cetus.package_id", self.cetus.package_id),
            ("cetus.global_config_id", self.cetus.global_config_id),
            ("cetus.low_fee_pool_id", self.cetus.low_fee_pool_id),
            ("cetus.high_fee_pool_id", self.cetus.high_fee_pool_id),
            ("suilend.package_id", self.suilend.package_id),
            ("suilend.market_id", self.suilend.market_id),
        ):
            if not is_valid_object_id(value):
                errors.append(f"{name} is not a valid object id: {value!r}")
        if self.cetus.low_fee_pool_id == self.cetus.high_fee_pool_id:
            errors.append("Low-fee and high-fee pools must differ")

        if self.navi.enabled:
            for name, value in (("navi.package_id", self.navi.package_id), ("navi.storage_id", self.navi.storage_id)):
                if not is_valid_object_id(value):
                    errors.append(f"{name} is not a valid object id: {value!r}")

        if coin_types_equal(self.pair.base.coin_type, self.pair.quote.coin_type):
            errors.append("Base and quote assets must differ")

        if self.max_slippage_pct <= 0:
            errors.append("max_slippage_pct must be positive")
        elif self.max_slippage_pct > MAX_SLIPPAGE_LIMIT_PCT:
            errors.append(
                f"max_slippage_pct too high ({self.max_slippage_pct}% > {MAX_SLIPPAGE_LIMIT_PCT}%), "
                "possible configuration error"
            )

        if self.principal <= 0:
            errors.append("principal must be positive")
        elif self.principal > self.max_principal:
            errors.append(f"principal {self.principal} exceeds max_principal {self.max_principal}")
        elif self.principal > self.live_confirm_threshold and not self.live_confirm:
            errors.append(
                f"principal {self.principal} exceeds {self.live_confirm_threshold}; "
                "set LIVE_CONFIRM=true to proceed with large amounts"
            )

        if self.min_profit < 0:
            errors.append("min_profit must be >= 0")
        if self.consecutive_spread_required < 1:
            errors.append("consecutive_spread_required must be >= 1")
        if self.max_consecutive_failures < 1:
            errors.append("max_consecutive_failures must be >= 1")
        if self.gas_budget <= 0:
            errors.append("gas_budget must be positive")

        for name in ("check_interval_ms", "finality_poll_interval_ms", "finality_max_wait_ms", "max_quote_age_ms"):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        band = self.price_band
        if not (0 < band.min_price < band.expected_price < band.max_price):
            errors.append(
                f"Price band must satisfy 0 < min < expected < max "
                f"(got {band.min_price}, {band.expected_price}, {band.max_price})"
            )

        if self.live:
            if not is_valid_object_id(self.wallet_address):
                errors.append("WALLET_ADDRESS must be set for live trading")
            if not self.signer_command:
                errors.append("SIGNER_COMMAND must be set for live trading")

        if self.min_spread_pct < LOW_SPREAD_WARNING_PCT:
            warnings.append(
                f"min_spread_pct {self.min_spread_pct}% < {LOW_SPREAD_WARNING_PCT}% "
                "may result in unprofitable trades after fees"
            )
        if bool(self.telegram_bot_token) != bool(self.telegram_chat_id):
            warnings.append("Telegram needs both TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID; notifications disabled")

        if errors:
            raise ConfigError(
                f"Invalid configuration: {errors[0]}",
                details={"errors": errors},
            )

        for warning in warnings:
            logger.warning(warning)
        return warnings

    def to_dict(self) -> dict[str, Any]:
        """Summary safe to log (no secrets)."""
        return {
            "mode": self.mode.value,
            "rpc_urls": list(self.rpc_urls),
            "wallet_address": self.wallet_address or None,
            "principal": self.principal,
            "min_profit": self.min_profit,
            "min_spread_pct": str(self.min_spread_pct),
            "max_slippage_pct": str(self.max_slippage_pct),
            "low_fee_pool_id": self.cetus.low_fee_pool_id,
            "high_fee_pool_id": self.cetus.high_fee_pool_id,
            "navi_enabled": self.navi.enabled,
            "strict_orientation": self.strict,
            "telegram": bool(self.telegram_bot_token and self.telegram_chat_id),
        }


# =============================================================================
# LOADING
# =============================================================================

def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_optional_bool(value: Any) -> Optional[bool]:
    if value is None or str(value).strip().lower() in ("", "none", "null", "auto"):
        return None
    return _parse_bool(value)


def _parse_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, int):
        return value
    return int(str(value).strip().replace("_", ""))


def _parse_decimal(value: Any) -> Decimal:
    if isinstance(value, float):
        # YAML floats are converted through str to keep the written digits
        value = repr(value)
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"not a number: {value!r}") from e


def _parse_mode(value: Any) -> RunMode:
    text = str(value).strip().lower().replace("-", "_")
    try:
        return RunMode(text)
    except ValueError as e:
        raise ValueError(f"unknown mode {value!r}, expected 'live' or 'dry_run'") from e


# env var -> (config key, parser)
ENV_OVERRIDES: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "MODE": ("mode", _parse_mode),
    "WALLET_ADDRESS": ("wallet_address", str),
    "SIGNER_COMMAND": ("signer_command", str),
    "FLASHLOAN_AMOUNT": ("principal", _parse_int),
    "MAX_FLASHLOAN_AMOUNT": ("max_principal", _parse_int),
    "LIVE_CONFIRM": ("live_confirm", _parse_bool),
    "LIVE_CONFIRM_THRESHOLD": ("live_confirm_threshold", _parse_int),
    "MIN_PROFIT": ("min_profit", _parse_int),
    "SAFETY_BUFFER": ("safety_buffer", _parse_int),
    "MIN_SPREAD_PERCENT": ("min_spread_pct", _parse_decimal),
    "CONSECUTIVE_SPREAD_REQUIRED": ("consecutive_spread_required", _parse_int),
    "MAX_SLIPPAGE_PERCENT": ("max_slippage_pct", _parse_decimal),
    "GAS_BUDGET": ("gas_budget", _parse_int),
    "MAX_CONSECUTIVE_FAILURES": ("max_consecutive_failures", _parse_int),
    "STRICT_ORIENTATION": ("strict_orientation", _parse_optional_bool),
    "CHECK_INTERVAL_MS": ("check_interval_ms", _parse_int),
    "FINALITY_POLL_INTERVAL_MS": ("finality_poll_interval_ms", _parse_int),
    "FINALITY_MAX_WAIT_MS": ("finality_max_wait_ms", _parse_int),
    "TX_INTERVAL_MS": ("tx_interval_ms", _parse_int),
    "MAX_PENDING_TX": ("max_pending_tx", _parse_int),
    "PRICE_CACHE_TTL_MS": ("price_cache_ttl_ms", _parse_int),
    "ORIENTATION_TTL_MS": ("orientation_ttl_ms", _parse_int),
    "MAX_QUOTE_AGE_MS": ("max_quote_age_ms", _parse_int),
    "MAX_RETRIES": ("max_retries", _parse_int),
    "RETRY_DELAY_MS": ("retry_delay_ms", _parse_int),
    "VERIFY_ON_CHAIN": ("verify_on_chain", _parse_bool),
    "TELEGRAM_BOT_TOKEN": ("telegram_bot_token", str),
    "TELEGRAM_CHAT_ID": ("telegram_chat_id", str),
}

# env var -> (addresses section, key, parser)
ADDRESS_ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[Any], Any]]] = {
    "CETUS_PACKAGE_ID": ("cetus", "package_id", str),
    "CETUS_GLOBAL_CONFIG_ID": ("cetus", "global_config_id", str),
    "CETUS_LOW_FEE_POOL_ID": ("cetus", "low_fee_pool_id", str),
    "CETUS_HIGH_FEE_POOL_ID": ("cetus", "high_fee_pool_id", str),
    "SUILEND_PACKAGE_ID": ("suilend", "package_id", str),
    "SUILEND_MARKET_ID": ("suilend", "market_id", str),
    "SUILEND_MARKET_TYPE": ("suilend", "market_type", str),
    "NAVI_ENABLED": ("navi", "enabled", _parse_bool),
    "NAVI_PACKAGE_ID": ("navi", "package_id", str),
    "NAVI_STORAGE_ID": ("navi", "storage_id", str),
    "NAVI_POOL_ID": ("navi", "pool_id", _parse_int),
    "NAVI_FEE_BPS": ("navi", "fee_bps", _parse_int),
}

RPC_ENV_KEYS = ("SUI_RPC_MAINNET_PRIMARY", "SUI_RPC_MAINNET_BACKUP", "SUI_RPC_MAINNET_FALLBACK")

# Keys parsed from YAML with a non-trivial type
YAML_PARSERS: dict[str, Callable[[Any], Any]] = {
    key: parser for key, parser in ENV_OVERRIDES.values() if parser is not str
}
YAML_PARSERS["rpc_timeout_seconds"] = float


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = load_yaml(path)
    except FileNotFoundError:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def _convert(key: str, value: Any, parser: Callable[[Any], Any], source: str) -> Any:
    try:
        return parser(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(
            f"Invalid value for {key} from {source}: {e}",
            details={"key": key, "source": source, "value": str(value)},
        ) from e


def _asset(data: Mapping[str, Any], symbol: str, coin_type: str, decimals: int) -> AssetInfo:
    try:
        configured = str(data.get("coin_type", coin_type)).strip()
        # Validate only; the configured spelling is what goes on-chain
        normalize_coin_type(configured)
        return AssetInfo(
            symbol=str(data.get("symbol", symbol)),
            coin_type=configured,
            decimals=int(data.get("decimals", decimals)),
        )
    except (ValidationError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid asset configuration for {symbol}: {e}") from e


def load_strategy_config(
    config_path: Path | None = None,
    addresses_path: Path | None = None,
    env: Mapping[str, str] | None = None,
    mode: RunMode | None = None,
) -> StrategyConfig:
    """
    Load strategy configuration.

    Args:
        config_path: Path to strategy.yaml (default: config/strategy.yaml)
        addresses_path: Path to addresses.yaml (default: config/addresses.yaml)
        env: Environment mapping; None loads .env and uses os.environ
        mode: Run mode forced by the caller (e.g. the --live flag)

    Returns:
        StrategyConfig (not yet validated)
    """
    if env is None:
        load_dotenv()
        env = os.environ

    data = _read_yaml(config_path or CONFIG_DIR / "strategy.yaml")
    addresses = _read_yaml(addresses_path or CONFIG_DIR / "addresses.yaml")

    values: dict[str, Any] = {}
    for key, value in data.items():
        if key in ("rpc_urls", "price_band") or value is None:
            continue
        if key not in StrategyConfig.__dataclass_fields__:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        parser = YAML_PARSERS.get(key)
        values[key] = _convert(key, value, parser, "yaml") if parser else value

    rpc_urls = [str(url) for url in data.get("rpc_urls") or []]

    band = data.get("price_band") or {}
    price_band = PriceBand(
        min_price=_convert("price_band.min", band.get("min", DEFAULT_MIN_PRICE), _parse_decimal, "yaml"),
        max_price=_convert("price_band.max", band.get("max", DEFAULT_MAX_PRICE), _parse_decimal, "yaml"),
        expected_price=_convert(
            "price_band.expected", band.get("expected", DEFAULT_EXPECTED_PRICE), _parse_decimal, "yaml"
        ),
    )

    sections = {name: dict(addresses.get(name) or {}) for name in ("cetus", "suilend", "navi")}

    # Environment overrides
    for env_key, (key, parser) in ENV_OVERRIDES.items():
        raw = env.get(env_key)
        if raw is not None and raw != "":
            values[key] = _convert(env_key, raw, parser, "env")

    for env_key, (section, key, parser) in ADDRESS_ENV_OVERRIDES.items():
        raw = env.get(env_key)
        if raw is not None and raw != "":
            sections[section][key] = _convert(env_key, raw, parser, "env")

    env_rpc = [env[k] for k in RPC_ENV_KEYS if env.get(k)]
    if env_rpc:
        rpc_urls = env_rpc + [url for url in rpc_urls if url not in env_rpc]

    # DRY_RUN=true always wins over MODE
    if env.get("DRY_RUN") and _convert("DRY_RUN", env["DRY_RUN"], _parse_bool, "env"):
        values["mode"] = RunMode.DRY_RUN
    if mode is not None:
        values["mode"] = mode

    assets = addresses.get("assets") or {}
    pair = AssetPair(
        base=_asset(assets.get("base") or {}, "SUI", SUI_COIN_TYPE, SUI_DECIMALS),
        quote=_asset(assets.get("quote") or {}, "USDC", USDC_COIN_TYPE, USDC_DECIMALS),
    )

    try:
        cetus = CetusConfig(**sections["cetus"])
        suilend = SuilendConfig(**sections["suilend"])
        navi = NaviConfig(**sections["navi"])
    except TypeError as e:
        raise ConfigError(f"Incomplete protocol addresses: {e}") from e

    return StrategyConfig(
        cetus=cetus,
        suilend=suilend,
        navi=navi,
        pair=pair,
        rpc_urls=tuple(rpc_urls),
        price_band=price_band,
        **values,
    )
