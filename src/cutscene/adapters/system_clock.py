import time


class SystemClock:
    """ClockPort backed by the wall clock."""

    def now(self) -> float:
        return time.time()
