"""
core/logging.py - Structured JSON logging.

All logs include:
- timestamp (ISO 8601)
- level
- logger
- message
- context (pool_id, direction, attempt_id, amounts, etc.)
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Global context that gets added to all log entries
_global_context: dict[str, Any] = {}


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Output format:
    {
        "timestamp": "2026-01-04T12:00:00.000Z",
        "level": "INFO",
        "logger": "tierarb.monitor",
        "message": "Spread detected",
        "context": {
            "mode": "dry_run",
            "spread_pct": "0.61",
            "direction": "low-to-high"
        }
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = {}
        context.update(_global_context)

        if hasattr(record, "context") and record.context:
            context.update(record.context)

        if record.exc_info:
            context["exception"] = self.formatException(record.exc_info)

        if context:
            log_entry["context"] = context

        return json.dumps(log_entry, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds context to all log entries.
    """

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        extra = kwargs.get("extra", {})
        context = {**self.extra, **extra.get("context", {})}

        kwargs["extra"] = {"context": context}
        return msg, kwargs


def set_global_context(**kwargs: Any) -> None:
    """
    Set global context that gets added to all log entries.

    Example:
        set_global_context(mode="live", version="0.3.0")
    """
    _global_context.update(kwargs)


def clear_global_context() -> None:
    """Clear global logging context."""
    _global_context.clear()


def get_logger(name: str, **context: Any) -> ContextAdapter:
    """
    Get a logger with optional default context.

    Example:
        logger = get_logger("tierarb.dex", pool_id="0x51e8...")
        logger.info("Quote computed", extra={"context": {"amount_out": 365}})
    """
    logger = logging.getLogger(name)
    return ContextAdapter(logger, context)


def setup_logging(
    level: str = "INFO",
    json_output: bool = True,
    log_file: str | None = None,
) -> None:
    """
    Setup logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON formatting (recommended for production)
        log_file: Optional file path for logging
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    if json_output:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def log_quote(
    logger: ContextAdapter,
    pool_id: str,
    a2b: bool,
    amount_in: int,
    amount_out: int,
    fresh: bool,
    **extra: Any,
) -> None:
    """Log a swap quote with standard context."""
    logger.debug(
        f"Quote: {'a2b' if a2b else 'b2a'} {pool_id[:10]}...",
        extra={
            "context": {
                "pool_id": pool_id,
                "a2b": a2b,
                "amount_in": amount_in,
                "amount_out": amount_out,
                "fresh": fresh,
                **extra,
            }
        },
    )


def log_plan(
    logger: ContextAdapter,
    attempt_id: str,
    plan_dict: dict[str, Any],
    **extra: Any,
) -> None:
    """Log a validated arbitrage plan."""
    logger.info(
        f"Plan: {attempt_id[:8]} | {plan_dict.get('direction')} | "
        f"profit {plan_dict.get('expected_profit')}",
        extra={"context": {"attempt_id": attempt_id, **plan_dict, **extra}},
    )


def log_trade(
    logger: ContextAdapter,
    attempt_id: str,
    status: str,
    digest: str | None = None,
    profit: int | None = None,
    **extra: Any,
) -> None:
    """Log a trade execution with standard context."""
    logger.info(
        f"Trade: {attempt_id[:8]} | {status}",
        extra={
            "context": {
                "attempt_id": attempt_id,
                "status": status,
                "digest": digest,
                "profit": profit,
                **extra,
            }
        },
    )


def log_error(
    logger: ContextAdapter,
    error_code: str,
    message: str,
    **extra: Any,
) -> None:
    """Log an error with standard context."""
    logger.error(
        f"[{error_code}] {message}",
        extra={
            "context": {
                "error_code": error_code,
                **extra,
            }
        },
    )
