from __future__ import annotations

from typing import Sequence

import numpy as np

from delivery_forecast.common.numeric import round_half_up


def percentile(p: float, values: Sequence[float]) -> float:
    """Linearly interpolated percentile, rounded to two decimals."""
    if not 0 <= p <= 100:
        raise ValueError(f"Percentile must be within [0, 100], got {p}")
    if len(values) == 0:
        raise ValueError("Percentile of an empty distribution is undefined")
    value = float(np.percentile(np.asarray(values, dtype=float), p, method="linear"))
    return round_half_up(value, 2)


def percent_rank(values: Sequence[float], target: float) -> float:
    """Position of `target` within the distribution, as a fraction in [0, 1].

    A target at or below the minimum ranks 0 and at or above the maximum
    ranks 1. A target present in the distribution ranks by the number of
    values strictly below it; any other target is interpolated between the
    ranks of its neighbours.
    """
    arr = np.sort(np.asarray(values, dtype=float))
    n = arr.size
    if n == 0 or target <= arr[0]:
        return 0.0
    if target >= arr[-1]:
        return 1.0

    idx = int(np.searchsorted(arr, target, side="left"))
    if arr[idx] == target:
        return idx / (n - 1)

    lower = float(arr[idx - 1])
    higher = float(arr[idx])
    lower_rank = _rank_of_member(arr, lower)
    higher_rank = _rank_of_member(arr, higher)
    position = (target - lower) / (higher - lower)
    return lower_rank + position * (higher_rank - lower_rank)


def _rank_of_member(arr: np.ndarray, value: float) -> float:
    if value >= arr[-1]:
        return 1.0
    return int(np.searchsorted(arr, value, side="left")) / (arr.size - 1)
