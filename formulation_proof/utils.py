from __future__ import annotations

from typing import Iterable, Sequence
import math
import numpy as np


def clip01(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return float(min(1.0, max(0.0, value)))


def mean(values: Iterable[float], default: float = 0.0) -> float:
    arr = np.fromiter(values, dtype=float)
    if arr.size == 0:
        return default
    return float(arr.mean())


def variance(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.var(np.asarray(values, dtype=float)))


def contains(text: str, needle: str) -> bool:
    """Case-insensitive containment; an empty needle never matches."""
    if not needle:
        return False
    return needle.lower() in text.lower()


def exp_decay(age_s: float, time_constant_s: float) -> float:
    return float(math.exp(-max(0.0, age_s) / time_constant_s))


def goal_words(goal: str, min_length: int = 4) -> list:
    return [w for w in goal.lower().split() if len(w) >= min_length]
