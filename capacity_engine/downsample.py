"""
Reduce a daily series to a fixed number of chart points.

Long inputs are split into contiguous, near-equal buckets and each
bucket is averaged, which keeps the overall shape. Short inputs are
stretched by evenly spaced index sampling, which repeats values.
"""

from typing import Sequence

import numpy as np


def downsample(
    values: Sequence[float],
    size: int,
    neutral: float = 50.0,
    lower: float = 0.0,
    upper: float = 100.0,
) -> list:
    """
    Return exactly `size` rounded values clamped to [lower, upper].

    Empty input yields `size` copies of `neutral`.
    """
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")

    data = np.asarray(values, dtype=np.float64)
    n = len(data)

    if n == 0:
        out = np.full(size, neutral, dtype=np.float64)
    elif n >= size:
        out = np.array([bucket.mean() for bucket in np.array_split(data, size)])
    elif size == 1:
        out = np.array([data.mean()])
    else:
        # Stretch: evenly spaced indices over the short input
        step = (n - 1) / (size - 1)
        idx = [int(round(i * step)) for i in range(size)]
        out = data[idx]

    return [int(round(v)) for v in np.clip(out, lower, upper)]


def sample_evenly(items: Sequence, cap: int) -> list:
    """
    Keep at most `cap` items by picking index floor(i * n / cap).

    Used for the daily capacity chart, where points must remain real days.
    """
    items = list(items)
    n = len(items)
    if n <= cap:
        return items
    return [items[(i * n) // cap] for i in range(cap)]
