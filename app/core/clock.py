from __future__ import annotations

import datetime
import math


def utc_timestamp() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def round_half_up(value: float) -> int:
    # Built-in round() is banker's rounding: round(62.5) == 62.
    return math.floor(value + 0.5)
