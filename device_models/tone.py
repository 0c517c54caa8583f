# -*- coding: utf-8 -*-
"""
Umbra: Black-point estimation for ICC colour profiles
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: tone.py — One-dimensional device tone curves.

A ToneCurve maps a normalised device value in [0, 1] to a normalised
response in [0, 1].  Curves are either tabulated (measured ramps, with a
choice of interpolators) or parametric (pure gamma).  The inverse is
evaluated from a dense resampling of the forward curve, which is how
output tables of synthetic profiles are built.
"""

import warnings
import numpy as np
from typing import Optional, Union
from scipy.interpolate import CubicSpline, PchipInterpolator, Akima1DInterpolator

__all__ = ["ToneCurve"]

_INVERSE_SAMPLES: int = 4096


class ToneCurve:
    """
    Tabulated tone response curve.

    Parameters:
        x: Strictly increasing device values in [0, 1].
        y: Responses at x, same length.
        interpolation: 'linear', 'cubicspline', 'pchip', 'akima' or 'makima'.

    Examples:
        # Display gamma
        trc = ToneCurve.from_gamma(2.2)

        # Printer ramp with a flat toe
        trc = ToneCurve([0.0, 0.1, 0.5, 1.0], [0.0, 0.0, 0.35, 1.0], "pchip")
    """

    def __init__(
        self,
        x: Union[np.ndarray, list],
        y: Union[np.ndarray, list],
        interpolation: str = "linear",
    ):
        self.x = np.asarray(x, dtype=np.float64).ravel()
        self.y = np.asarray(y, dtype=np.float64).ravel()
        if self.x.shape != self.y.shape:
            raise ValueError(
                f"ToneCurve shape mismatch: {self.x.shape} vs {self.y.shape}"
            )
        if self.x.size < 2:
            raise ValueError("ToneCurve needs at least two points.")
        if np.any(np.diff(self.x) <= 0.0):
            raise ValueError("ToneCurve abscissae must be strictly increasing.")

        self.interpolation = interpolation
        self._forward = self._build_interpolator(interpolation)
        self._inverse_table: Optional[tuple] = None

    @classmethod
    def from_gamma(cls, gamma: float, points: int = 256) -> "ToneCurve":
        """Pure power-law curve y = x**gamma sampled on *points* nodes."""
        if gamma <= 0.0:
            raise ValueError(f"Gamma must be > 0, got {gamma}")
        x = np.linspace(0.0, 1.0, points)
        return cls(x, x ** gamma, interpolation="pchip")

    @classmethod
    def identity(cls) -> "ToneCurve":
        return cls([0.0, 1.0], [0.0, 1.0])

    def _build_interpolator(self, interpolation_type: str):
        x, y = self.x, self.y
        methods = {
            "linear": lambda: (lambda v: np.interp(v, x, y)),
            "cubicspline": lambda: CubicSpline(x, y, extrapolate=True),
            "pchip": lambda: PchipInterpolator(x, y, extrapolate=True),
            "akima": lambda: Akima1DInterpolator(x, y, method="akima", extrapolate=True),
            "makima": lambda: Akima1DInterpolator(x, y, method="makima", extrapolate=True),
        }
        if interpolation_type not in methods:
            raise ValueError(
                f"Unknown interpolation type '{interpolation_type}'. "
                f"Choose from: {list(methods.keys())}"
            )
        return methods[interpolation_type]()

    def __call__(self, values: Union[float, np.ndarray]) -> np.ndarray:
        v = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
        return np.clip(self._forward(v), 0.0, 1.0)

    def is_monotonic(self) -> bool:
        """True when the resampled curve never decreases."""
        xs, ys = self._sampled()
        return bool(np.all(np.diff(ys) >= 0.0))

    def inverse(self, values: Union[float, np.ndarray]) -> np.ndarray:
        """
        Device value producing each response in *values*.

        Flat sections resolve to their lowest device value.  A decreasing
        curve is made monotonic first (with a warning), since otherwise
        the inverse is not a function.
        """
        if self._inverse_table is None:
            xs, ys = self._sampled()
            if np.any(np.diff(ys) < 0.0):
                warnings.warn(
                    "ToneCurve is not monotonic; inverting its running maximum.",
                    stacklevel=2,
                )
                ys = np.maximum.accumulate(ys)
            # Keep the first node of every plateau so np.interp sees a
            # strictly increasing abscissa.
            keep = np.concatenate(([True], np.diff(ys) > 0.0))
            self._inverse_table = (ys[keep], xs[keep])

        ys, xs = self._inverse_table
        v = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
        return np.interp(v, ys, xs)

    def _sampled(self):
        xs = np.linspace(0.0, 1.0, _INVERSE_SAMPLES)
        return xs, self(xs)

    def __repr__(self) -> str:
        return f"ToneCurve(points={self.x.size}, interpolation='{self.interpolation}')"
