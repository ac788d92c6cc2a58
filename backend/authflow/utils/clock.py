import time
from typing import Callable

Clock = Callable[[], int]


def utc_now_secs() -> int:
    """Whole seconds since the unix epoch."""
    return int(time.time())
