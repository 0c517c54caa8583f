# -*- coding: utf-8 -*-
"""
Umbra: Black-point estimation for ICC colour profiles
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: umbra_fitting.py — Curve fitting for the destination black-point search.

The round-trip L* response of a printer profile has a flat toe near black
and a nearly straight run to white.  The toe is located by fitting

    ff = t·L*² + u·L* + c

to the normalised responses inside a band and taking the smaller root of
ff = 0 as the L* where the device starts to respond.  The fit uses the
3x3 normal equations built from power sums of L* up to L*⁴, solved once.

Degenerate fits are reported as None, never as a numeric sentinel, so a
caller cannot mistake a failed fit for a black point at L* = 0.

Reference:
    Least Squares Fit of a Quadratic Curve to Data,
    http://www.personal.psu.edu/jhm/f90/lectures/lsq2.html
"""

import numpy as np
from numba import njit, float64
from typing import NamedTuple, Optional, Sequence, Union

__all__ = [
    "QuadraticFit",
    "fit_quadratic",
    "root_of_least_squares_quadratic",
    "is_monotonic",
]

# Below four samples the 3-parameter fit has at most one degree of freedom.
MIN_FIT_SAMPLES: int = 4


@njit(float64[:](float64[:], float64[:]), cache=True, fastmath=False)
def _power_sums_kernel(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """
    Accumulates Σx, Σx², Σx³, Σx⁴, Σy, Σyx, Σyx² in one pass.

    fastmath stays off: the normal equations are badly conditioned for
    L* in [0, 100] and reassociation changes the last digits of the root.
    """
    sums = np.zeros(7, dtype=np.float64)
    for i in range(x.shape[0]):
        xn = x[i]
        yn = y[i]
        x2 = xn * xn
        sums[0] += xn
        sums[1] += x2
        sums[2] += x2 * xn
        sums[3] += x2 * x2
        sums[4] += yn
        sums[5] += yn * xn
        sums[6] += yn * x2
    return sums


class QuadraticFit(NamedTuple):
    """Coefficients of y = t·x² + u·x + c."""
    t: float
    u: float
    c: float

    def __call__(self, x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        return (self.t * x + self.u) * x + self.c

    @property
    def discriminant(self) -> float:
        return self.u * self.u - 4.0 * self.t * self.c

    def root(self) -> Optional[float]:
        """
        Smaller real root, (−u − √disc) / 2t.

        None when the parabola has no real root or does not open upwards.
        """
        disc = self.discriminant
        if disc < 0.0 or self.t <= 0.0:
            return None
        return float((-self.u - np.sqrt(disc)) / (2.0 * self.t))


def fit_quadratic(x: Sequence[float], y: Sequence[float]) -> Optional[QuadraticFit]:
    """
    Least-squares quadratic through the points (x, y).

    Args:
        x: Abscissae (source L*).
        y: Ordinates (normalised response), same length as x.

    Returns:
        The fitted coefficients, or None for fewer than four points or a
        singular normal matrix.
    """
    xs = np.ascontiguousarray(x, dtype=np.float64).ravel()
    ys = np.ascontiguousarray(y, dtype=np.float64).ravel()
    if xs.shape != ys.shape:
        raise ValueError(f"Sample length mismatch: {xs.shape[0]} x vs {ys.shape[0]} y")

    n = xs.shape[0]
    if n < MIN_FIT_SAMPLES:
        return None

    s_x, s_x2, s_x3, s_x4, s_y, s_yx, s_yx2 = _power_sums_kernel(xs, ys)

    m = np.array([
        [n,    s_x,  s_x2],
        [s_x,  s_x2, s_x3],
        [s_x2, s_x3, s_x4],
    ], dtype=np.float64)
    v = np.array([s_y, s_yx, s_yx2], dtype=np.float64)

    try:
        c, u, t = np.linalg.solve(m, v)
    except np.linalg.LinAlgError:
        return None

    return QuadraticFit(float(t), float(u), float(c))


def root_of_least_squares_quadratic(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    """Fit a quadratic to (x, y) and return its smaller root, or None."""
    fit = fit_quadratic(x, y)
    if fit is None:
        return None
    return fit.root()


def is_monotonic(values: Sequence[float]) -> bool:
    """
    True when *values* never decreases from first to last element.

    Equal neighbours are allowed (a flat toe is still well behaved).  Empty
    and single-element sequences are monotonic.
    """
    arr = np.asarray(values, dtype=np.float64).ravel()
    if arr.size < 2:
        return True
    return bool(np.all(arr[:-1] <= arr[1:]))
