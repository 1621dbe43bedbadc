import time
from datetime import datetime
from typing import Callable

Clock = Callable[[], float]


def timestamp(clock: Clock = time.time) -> int:
    """Current Unix time in whole seconds."""
    return int(clock())


def hour_and_dow(clock: Clock = time.time) -> tuple[int, int]:
    """Local hour of day and day of week (0 = Sunday)."""
    now = datetime.fromtimestamp(clock())
    return now.hour, (now.weekday() + 1) % 7
