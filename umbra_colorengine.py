# -*- coding: utf-8 -*-
"""
Umbra: Black-point estimation for ICC colour profiles
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Colorimetric Primitives
=======================
The small set of CIE conversions the black-point estimators rely on:

1. CIELAB <-> XYZ relative to the ICC D50 connection-space white.
2. Bradford chromatic adaptation between arbitrary white points.
3. Reference whites and the sRGB primaries matrix used by the synthetic
   matrix-shaper device models.

All public conversions accept a single triplet ``(3,)`` or a batch
``(N, 3)`` and return the same shape.  The non-linear CIELAB transfer
functions are Numba kernels; ``set_strict_ieee`` swaps them for
``fastmath=False`` variants.

References:
    - CIE 15:2004 "Colorimetry"
    - ICC.1:2010 Annex A (PCS encoding, D50 = 0.9642, 1.0, 0.8249)
    - Lam, K.M. (1985). Bradford chromatic adaptation transform.
"""

import functools
import numpy as np
import numpy.typing as npt
from numba import njit
from typing import Tuple, Final, TypeAlias, Callable, Union, Sequence, Any

__all__ = [
    "ArrayFloat",
    "REF_WHITE_D50",
    "REF_WHITE_D65",
    "LAB_EPSILON",
    "LAB_KAPPA",
    "M_SRGB_TO_XYZ_T",
    "M_BRADFORD_T",
    "M_BRADFORD_INV_T",
    "set_strict_ieee",
    "handle_shapes",
    "ColorSpaceEngine",
    "ChromaticAdaptation",
]

ArrayFloat: TypeAlias = npt.NDArray[np.floating]

# --- Reference whites (Y = 1.0) ---
# ICC connection-space D50, as encoded in every v2/v4 profile header.
REF_WHITE_D50: Final[ArrayFloat] = np.array([0.9642, 1.0000, 0.8249], dtype=np.float64)
REF_WHITE_D65: Final[ArrayFloat] = np.array([0.95047, 1.00000, 1.08883], dtype=np.float64)

# sRGB primaries (IEC 61966-2-1), D65 relative, pre-transposed for row vectors.
_M_SRGB_TO_XYZ_BASE = np.array([
    [ 0.4124564,  0.3575761,  0.1804375],
    [ 0.2126729,  0.7151522,  0.0721750],
    [ 0.0193339,  0.1191920,  0.9503041]
], dtype=np.float64)
M_SRGB_TO_XYZ_T: Final[ArrayFloat] = _M_SRGB_TO_XYZ_BASE.T.copy()

_M_BRADFORD = np.array([
    [ 0.8951000,  0.2664000, -0.1614000],
    [-0.7502000,  1.7135000,  0.0367000],
    [ 0.0389000, -0.0685000,  1.0296000]
], dtype=np.float64)
M_BRADFORD_T: Final[ArrayFloat] = _M_BRADFORD.T.copy()
M_BRADFORD_INV_T: Final[ArrayFloat] = np.linalg.inv(_M_BRADFORD).T.copy()

# CIE 1976 rational constants: delta = 6/29 is the cubic/linear switch.
_LAB_DELTA: Final[float] = 6.0 / 29.0
LAB_EPSILON: Final[float] = _LAB_DELTA * _LAB_DELTA * _LAB_DELTA  # ~0.008856
LAB_KAPPA: Final[float]   = (116.0 * 29.0 * 29.0) / (3.0 * 6.0 * 6.0) # ~903.296


# --- Runtime Configuration ---
_STRICT_IEEE: bool = False

def set_strict_ieee(enabled: bool = True) -> None:
    """
    Toggle between fast (default) and strict IEEE 754 Lab kernels.

    Black-point results are compared bit-for-bit in idempotence checks, so
    strict mode is useful when chasing a difference between machines.

    Args:
        enabled: If True, use the ``fastmath=False`` kernels.
    """
    global _STRICT_IEEE
    _STRICT_IEEE = bool(enabled)


# =============================================================================
# 1. DECORATORS
# =============================================================================

def handle_shapes(func: Callable[..., ArrayFloat]) -> Callable[..., ArrayFloat]:
    """
    Normalize inputs to contiguous float64 (N, 3) and restore the caller's shape.

    - If input is (3,), returns (3,)
    - If input is (N, 3), returns (N, 3)
    """
    @functools.wraps(func)
    def wrapper(arr: Any, *args: Any, **kwargs: Any) -> ArrayFloat:
        arr = np.asarray(arr, dtype=np.float64)
        arr_in = np.ascontiguousarray(np.atleast_2d(arr))

        if arr_in.shape[-1] != 3:
            raise ValueError(f"Expected last dimension size 3, got {arr_in.shape[-1]}")

        res = func(arr_in, *args, **kwargs)

        if arr.ndim == 1:
            return res[0]
        return res
    return wrapper


# =============================================================================
# 2. LAB TRANSFER KERNELS (Numba)
# =============================================================================

@njit(cache=True, fastmath=True)
def _xyz_to_lab_f(t: ArrayFloat) -> ArrayFloat:
    """
    Non-linear transfer function f(t) for CIELAB.

    Cube root above epsilon, linear slope below it.
    """
    out = np.empty_like(t)
    t_flat = t.ravel()
    out_flat = out.ravel()

    for i in range(t.size):
        v = t_flat[i]
        if v > LAB_EPSILON:
            out_flat[i] = v ** (1.0/3.0)
        else:
            out_flat[i] = (LAB_KAPPA * v + 16.0) / 116.0
    return out

@njit(cache=True, fastmath=True)
def _lab_to_xyz_f_inv(t: ArrayFloat) -> ArrayFloat:
    """
    Inverse transfer function for CIELAB.

    Uses (116*t - 16)/kappa below delta to keep the linear toe exact; the
    black points handled here live almost entirely in that segment.
    """
    out = np.empty_like(t)
    t_flat = t.ravel()
    out_flat = out.ravel()

    for i in range(t.size):
        v = t_flat[i]
        if v > _LAB_DELTA:
            out_flat[i] = v ** 3.0
        else:
            out_flat[i] = (116.0 * v - 16.0) / LAB_KAPPA
    return out

@njit(cache=True, fastmath=False)
def _xyz_to_lab_f_strict(t: ArrayFloat) -> ArrayFloat:
    """Lab f(t), strict IEEE 754 variant."""
    out = np.empty_like(t)
    t_flat = t.ravel()
    out_flat = out.ravel()
    for i in range(t.size):
        v = t_flat[i]
        if v > LAB_EPSILON:
            out_flat[i] = v ** (1.0/3.0)
        else:
            out_flat[i] = (LAB_KAPPA * v + 16.0) / 116.0
    return out

@njit(cache=True, fastmath=False)
def _lab_to_xyz_f_inv_strict(t: ArrayFloat) -> ArrayFloat:
    """Lab f_inv(t), strict IEEE 754 variant."""
    out = np.empty_like(t)
    t_flat = t.ravel()
    out_flat = out.ravel()
    for i in range(t.size):
        v = t_flat[i]
        if v > _LAB_DELTA:
            out_flat[i] = v ** 3.0
        else:
            out_flat[i] = (116.0 * v - 16.0) / LAB_KAPPA
    return out

def _lab_f(t: ArrayFloat) -> ArrayFloat:
    if _STRICT_IEEE:
        return _xyz_to_lab_f_strict(t)
    return _xyz_to_lab_f(t)

def _lab_f_inv(t: ArrayFloat) -> ArrayFloat:
    if _STRICT_IEEE:
        return _lab_to_xyz_f_inv_strict(t)
    return _lab_to_xyz_f_inv(t)


# =============================================================================
# 3. COLOR SPACE ENGINE
# =============================================================================

class ColorSpaceEngine:
    """Static Lab <-> XYZ conversions referenced to the ICC D50 white.

    ``_raw`` variants assume validated (N, 3) float64 input and are used by
    the transform engine, which already works on batches.
    """

    @staticmethod
    def _xyz_to_lab_raw(xyz_array: ArrayFloat, illuminant: ArrayFloat = REF_WHITE_D50) -> ArrayFloat:
        """Raw XYZ → Lab.  *xyz_array* must be (N, 3) float64."""
        xyz_norm = xyz_array / illuminant
        f_xyz = _lab_f(np.ascontiguousarray(xyz_norm))

        out = np.empty_like(xyz_array)
        out[..., 0] = 116.0 * f_xyz[..., 1] - 16.0
        out[..., 1] = 500.0 * (f_xyz[..., 0] - f_xyz[..., 1])
        out[..., 2] = 200.0 * (f_xyz[..., 1] - f_xyz[..., 2])
        return out

    @staticmethod
    def _lab_to_xyz_raw(lab_array: ArrayFloat, illuminant: ArrayFloat = REF_WHITE_D50) -> ArrayFloat:
        """Raw Lab → XYZ.  *lab_array* must be (N, 3) float64."""
        L, a, b = lab_array[..., 0], lab_array[..., 1], lab_array[..., 2]

        fy = (L + 16.0) / 116.0
        fx = a / 500.0 + fy
        fz = fy - b / 200.0

        xyz = np.empty_like(lab_array)
        xyz[..., 0] = _lab_f_inv(np.ascontiguousarray(fx))
        xyz[..., 1] = _lab_f_inv(np.ascontiguousarray(fy))
        xyz[..., 2] = _lab_f_inv(np.ascontiguousarray(fz))

        xyz *= illuminant
        return xyz

    @staticmethod
    @handle_shapes
    def xyz_to_lab(xyz_array: ArrayFloat, illuminant: ArrayFloat = REF_WHITE_D50) -> ArrayFloat:
        """
        Converts XYZ to CIELAB (L*a*b*).

        Args:
            xyz_array: Input XYZ data, shape (N, 3) or (3,).
            illuminant: Reference white point (default ICC D50).

        Returns:
            Lab coordinates.
        """
        return ColorSpaceEngine._xyz_to_lab_raw(xyz_array, illuminant)

    @staticmethod
    @handle_shapes
    def lab_to_xyz(lab_array: ArrayFloat, illuminant: ArrayFloat = REF_WHITE_D50) -> ArrayFloat:
        """
        Converts CIELAB to XYZ.

        Args:
            lab_array: Input Lab data, shape (N, 3) or (3,).
            illuminant: Reference white point (default ICC D50).

        Returns:
            XYZ coordinates.
        """
        return ColorSpaceEngine._lab_to_xyz_raw(lab_array, illuminant)


# =============================================================================
# 4. CHROMATIC ADAPTATION
# =============================================================================

def _to_hashable(obj: Union[ArrayFloat, Sequence[float]]) -> Tuple[float, ...]:
    """Helper to ensure inputs are hashable tuples for caching."""
    if isinstance(obj, np.ndarray):
        return tuple(float(v) for v in obj.ravel())
    return tuple(float(v) for v in obj)

@functools.lru_cache(maxsize=16)
def _get_cached_bradford_matrix(src_white_tuple: Tuple[float, ...], dst_white_tuple: Tuple[float, ...]) -> ArrayFloat:
    """
    Cached worker for the Bradford matrix.

    Row-vector form of M_inv * Gain * M:  M.T @ diag(gain) @ M_inv.T
    """
    src = np.array(src_white_tuple, dtype=np.float64)
    dst = np.array(dst_white_tuple, dtype=np.float64)

    src_lms = np.dot(src, M_BRADFORD_T)
    dst_lms = np.dot(dst, M_BRADFORD_T)

    # Media whites read from broken profiles can be (0, 0, 0)
    src_lms = np.where(np.abs(src_lms) < 1e-12, 1e-12, src_lms)
    gains = dst_lms / src_lms

    return M_BRADFORD_T @ np.diag(gains) @ M_BRADFORD_INV_T

class ChromaticAdaptation:
    """White point adaptation (Bradford method)."""

    @staticmethod
    def calc_transform_matrix(src_white: ArrayFloat, dst_white: ArrayFloat) -> ArrayFloat:
        """
        Computes the Bradford adaptation matrix between two white points.

        Args:
            src_white: Source white point (XYZ).
            dst_white: Destination white point (XYZ).

        Returns:
            3x3 Adaptation Matrix (for row-vector multiplication).
        """
        return _get_cached_bradford_matrix(_to_hashable(src_white), _to_hashable(dst_white))

    @staticmethod
    @handle_shapes
    def adapt(xyz: ArrayFloat, src_white: ArrayFloat, dst_white: ArrayFloat, clip_negative: bool = True) -> ArrayFloat:
        """
        Adapts XYZ color(s) from source to destination white point.

        Args:
            xyz: Input XYZ colors.
            src_white: Source white point.
            dst_white: Destination white point.
            clip_negative: If True (default), clamps negative XYZ values to 0.0.

        Returns:
            Adapted XYZ colors.
        """
        if np.allclose(src_white, dst_white):
            if clip_negative:
                return np.where(xyz < -1e-6, 0.0, xyz)
            return xyz
        M = ChromaticAdaptation.calc_transform_matrix(src_white, dst_white)
        res = np.dot(xyz, M)
        if clip_negative:
            return np.where(res < -1e-6, 0.0, res)
        return res
