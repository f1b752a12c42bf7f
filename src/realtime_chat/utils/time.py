"""Wall-clock helpers. All timestamps in the application are integer epoch milliseconds."""

import time
from typing import Callable

Clock = Callable[[], int]

MILLISECONDS_PER_DAY = 24 * 60 * 60 * 1000


def get_current_timestamp() -> int:
    return int(time.time() * 1000)


def days_to_milliseconds(days: float) -> int:
    return int(days * MILLISECONDS_PER_DAY)
