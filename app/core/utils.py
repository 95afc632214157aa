"""Shared utility functions for the statement converter."""

import logging
import threading
import time
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, localcontext
from pathlib import Path

import colorlog

LOGGER_ROOT = "statement-converter"
CENTS = Decimal("0.01")

_stamp_lock = threading.Lock()
_last_stamp = 0


def get_logger(name: str) -> logging.Logger:
    """Get a project logger with a colorized format.

    Handlers live on the ``statement-converter`` logger; loggers named below it
    propagate there, so the file handler added at startup sees every module.
    """
    logger = logging.getLogger(LOGGER_ROOT)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        handler = logging.StreamHandler()
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False
    return logging.getLogger(name)


def ensure_dir(path: str | Path) -> None:
    """Ensure a directory exists (like mkdir -p)."""
    Path(path).mkdir(parents=True, exist_ok=True)


def utcnow_iso() -> str:
    """Get the current UTC time as an ISO8601 string."""
    return datetime.now(UTC).isoformat()


def unique_epoch_millis() -> int:
    """Milliseconds since the epoch, strictly increasing across calls in this process."""
    global _last_stamp  # noqa: PLW0603
    with _stamp_lock:
        stamp = max(int(time.time() * 1000), _last_stamp + 1)
        _last_stamp = stamp
        return stamp


def format_amount(value: float) -> str:
    """Format an amount as pt-BR text: two decimals, comma separator, no grouping.

    >>> format_amount(-1500.5)
    '-1500,50'
    """
    amount = Decimal(str(value))
    with localcontext() as ctx:
        # the context must hold every integer digit plus the two decimals
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        quantized = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    return f"{quantized:f}".replace(".", ",")
