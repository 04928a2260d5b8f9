from typing import Protocol


class ClockPort(Protocol):
    def now(self) -> float:  # pragma: no cover - protocol
        """Current wall-clock time in epoch seconds."""
        ...
