import logging
from typing import Any

from cutscene.core.interfaces.logging import LoggingPort
from cutscene.core.logging_config import coerce_level


def format_event(tag: str, **fields: Any) -> str:
    """`[tag] k=v k=v`; None values are dropped, values with spaces are quoted."""
    parts = [f"[{tag}]"]
    for key, value in fields.items():
        if value is None:
            continue
        text = str(value)
        if " " in text:
            text = f'"{text}"'
        parts.append(f"{key}={text}")
    return " ".join(parts)


class LoggingAdapter(LoggingPort):
    """LoggingPort over a stdlib logger.

    Adds no handlers: sinks and the correlation id filter belong to
    `configure_logging`, records just propagate to the root logger.
    """

    def __init__(self, name: str = "cutscene", log_level: int | str = logging.INFO):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(coerce_level(log_level))
        self.logger.propagate = True

    def child(self, suffix: str) -> "LoggingAdapter":
        """Adapter for `<name>.<suffix>` sharing this adapter's level."""
        return LoggingAdapter(f"{self.logger.name}.{suffix}", self.logger.level)

    def debug(self, msg: str, *args) -> None:
        self.logger.debug(msg, *args)

    def info(self, msg: str, *args) -> None:
        self.logger.info(msg, *args)

    def warning(self, msg: str, *args) -> None:
        self.logger.warning(msg, *args)

    def error(self, msg: str, *args) -> None:
        self.logger.error(msg, *args)

    def event(self, level: int, tag: str, **fields: Any) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, format_event(tag, **fields))
