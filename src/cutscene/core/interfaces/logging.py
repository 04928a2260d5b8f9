from abc import ABC, abstractmethod
from typing import Any


class LoggingPort(ABC):
    """Operational logging used by core managers.

    Lines follow the `[component:action] key=value ...` convention so a job id
    or a provider name can be grepped across components. `event` builds such a
    line from keyword fields.
    """

    @abstractmethod
    def debug(self, msg: str) -> None:
        pass

    @abstractmethod
    def info(self, msg: str) -> None:
        pass

    @abstractmethod
    def warning(self, msg: str) -> None:
        pass

    @abstractmethod
    def error(self, msg: str) -> None:
        pass

    @abstractmethod
    def event(self, level: int, tag: str, **fields: Any) -> None:
        pass
