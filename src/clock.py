"""Wall-clock helpers. Timestamps are integer epoch milliseconds throughout."""

import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)
