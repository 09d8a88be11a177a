from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


def round_half_up(x: float) -> int:
    """Round to the nearest integer, with halves rounded away from zero.

    The builtin `round` uses banker's rounding, which would turn a 2.5-step dead
    time into 2 steps instead of 3.
    """
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def centered_coords(n: int, spacing: float) -> NDArray[np.float64]:
    """Return `n` coordinates spaced by `spacing` and centered on zero.

    Examples
    --------
    >>> centered_coords(3, 0.5)
    array([-0.5,  0. ,  0.5])
    """
    return np.arange(n) * spacing - (n - 1) * spacing / 2


def orbit_coords(
    n: int, radius: float
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Return x and y of `n` equally spaced points on a circle, starting at +x."""
    theta = np.arange(n) * (2 * np.pi / n)
    return radius * np.cos(theta), radius * np.sin(theta)
