"""Process-wide logging setup for the tracker service.

`configure_logging` runs once in the composition root. Records at INFO and
below go to stdout, WARNING and above to stderr, and every record carries a
correlation id: the request id inside an API call, the job id inside a poll
tick. Grepping a job id therefore yields its whole polling history.

When stdout is an interactive terminal, the stdout sink is a rich handler
instead of a plain stream handler.
"""

from __future__ import annotations

import contextvars
import logging
import sys
from typing import Optional

from rich.logging import RichHandler

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default="-"
)

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s %(correlation_id)s: %(message)s"
RICH_FORMAT = "%(correlation_id)s %(message)s"

# loggers of libraries that are chatty at INFO
NOISY_LOGGERS = ("uvicorn.access", "aiohttp.access")


def coerce_level(level: int | str | None) -> int:
    """Accept 'debug', 'INFO', 10 or None; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    if level is None:
        return logging.INFO
    return logging.getLevelNamesMapping().get(str(level).strip().upper(), logging.INFO)


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return True


class LevelRangeFilter(logging.Filter):
    """Pass records with low <= levelno <= high."""

    def __init__(self, low: int = logging.NOTSET, high: int = logging.CRITICAL):
        super().__init__()
        self.low = low
        self.high = high

    def filter(self, record: logging.LogRecord) -> bool:
        return self.low <= record.levelno <= self.high


def _stdout_handler(fmt: str, use_rich: bool) -> logging.Handler:
    if use_rich:
        handler: logging.Handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter(RICH_FORMAT))
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(LevelRangeFilter(high=logging.INFO))
    return handler


def _stderr_handler(fmt: str) -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(LevelRangeFilter(low=logging.WARNING))
    return handler


def configure_logging(
    level: int | str | None = None,
    fmt: Optional[str] = None,
    quiet_access_logs: bool = True,
    use_rich: Optional[bool] = None,
) -> None:
    """Install the stdout/stderr sinks on the root logger.

    Uvicorn inherits this setup when started with `log_config=None`. Calling
    it again replaces the previous handlers.
    """
    numeric_level = coerce_level(level)
    fmt = fmt or DEFAULT_FORMAT
    if use_rich is None:
        use_rich = sys.stdout.isatty()

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    cid_filter = CorrelationIdFilter()
    for handler in (_stdout_handler(fmt, use_rich), _stderr_handler(fmt)):
        handler.addFilter(cid_filter)
        root.addHandler(handler)

    if quiet_access_logs:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("cutscene").debug(
        "Logging configured level=%s rich=%s", logging.getLevelName(numeric_level), use_rich
    )
