import time
from typing import Callable


# All lease and queue timestamps are integer epoch milliseconds
Clock = Callable[[], int]


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def seconds_to_ms(seconds: float) -> int:
    return int(round(seconds * 1000))
