from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round_to(value: float, places: int) -> float:
    factor = 10**places
    return round_half_up(value * factor) / factor


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_score(value: float) -> int:
    return int(clamp(round_half_up(value), 0, 100))
