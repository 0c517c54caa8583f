# -*- coding: utf-8 -*-
"""
Umbra: Black-point estimation for ICC colour profiles
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: profiles.py — Synthetic device profiles.

In-memory stand-ins for ICC profiles.  Each profile carries per-intent
device -> Lab (``a2b``) and Lab -> device (``b2a``) callables evaluated on
(N, channels) batches, so the PipelineEngine can link them exactly like
tables read from disk.

Factories:
  - gray_profile               single-channel display or printer
  - matrix_shaper_rgb_profile  sRGB primaries adapted to D50 + tone curve
  - cmyk_output_profile        printer with an ink-limited relative table
                               and a black-preserving perceptual table
  - device_link_profile        device -> device link

The physical models are deliberately simple.  What matters is where the
black of each intent lands, since that is what the estimators look for.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from umbra_colorengine import (
    REF_WHITE_D50,
    REF_WHITE_D65,
    M_SRGB_TO_XYZ_T,
    ChromaticAdaptation,
    ColorSpaceEngine,
)
from umbra_profile import (
    ColorSpaceSignature,
    Direction,
    ProfileClass,
    RenderingIntent,
    StageFunction,
    TagSignature,
)

from .tone import ToneCurve

__all__ = [
    "SyntheticProfile",
    "gray_profile",
    "matrix_shaper_rgb_profile",
    "cmyk_output_profile",
    "device_link_profile",
]

# sRGB primaries re-referenced to the D50 connection space (row vectors).
M_SRGB_D50_T = M_SRGB_TO_XYZ_T @ ChromaticAdaptation.calc_transform_matrix(
    REF_WHITE_D65, REF_WHITE_D50
)
M_SRGB_D50_INV_T = np.linalg.inv(M_SRGB_D50_T)

_DEFAULT_INTENTS = (RenderingIntent.PERCEPTUAL, RenderingIntent.RELATIVE_COLORIMETRIC)


def _table_intent(intent: int) -> int:
    # Absolute colorimetric is stored in the relative table.
    if intent == RenderingIntent.ABSOLUTE_COLORIMETRIC:
        return int(RenderingIntent.RELATIVE_COLORIMETRIC)
    return int(intent)


@dataclass(eq=False)
class SyntheticProfile:
    """
    Profile built from Python callables.

    ``a2b`` / ``b2a`` are keyed by rendering intent.  For device links,
    ``a2b`` maps device values of ``color_space`` to device values of
    ``pcs``.
    """
    device_class: ProfileClass
    color_space: ColorSpaceSignature
    pcs: ColorSpaceSignature = ColorSpaceSignature.LAB
    version: float = 2.1
    a2b: Dict[int, StageFunction] = field(default_factory=dict)
    b2a: Dict[int, StageFunction] = field(default_factory=dict)
    tags: Dict[TagSignature, Any] = field(default_factory=dict)
    matrix_shaper: bool = False
    description: str = ""

    def _table(self, direction: Direction) -> Dict[int, StageFunction]:
        return self.a2b if direction == Direction.INPUT else self.b2a

    def is_intent_supported(self, intent: int, direction: Direction) -> bool:
        if self.is_clut(intent, direction):
            return True
        return self.matrix_shaper

    def is_matrix_shaper(self) -> bool:
        return self.matrix_shaper

    def is_clut(self, intent: int, direction: Direction) -> bool:
        if self.matrix_shaper:
            return False
        key = _table_intent(intent)
        if direction == Direction.PROOF:
            return key in self.a2b and key in self.b2a
        return key in self._table(direction)

    def has_tag(self, signature: TagSignature) -> bool:
        return signature in self.tags

    def read_tag(self, signature: TagSignature) -> Optional[Any]:
        return self.tags.get(signature)

    def pipeline(self, intent: int, direction: Direction) -> Optional[StageFunction]:
        if direction == Direction.PROOF:
            return None
        return self._table(direction).get(int(intent))


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════
def _lab_from_y(y: np.ndarray) -> np.ndarray:
    """Neutral Lab for luminance *y* (shape (N,))."""
    xyz = np.asarray(y, dtype=np.float64)[:, None] * REF_WHITE_D50
    lab = ColorSpaceEngine.xyz_to_lab(xyz)
    lab[:, 1:] = 0.0
    return lab


def _y_from_lab(lab: np.ndarray) -> np.ndarray:
    return ColorSpaceEngine.lab_to_xyz(lab)[:, 1]


def _build_tags(media_white, media_black) -> Dict[TagSignature, Any]:
    tags: Dict[TagSignature, Any] = {
        TagSignature.MEDIA_WHITE_POINT: (
            REF_WHITE_D50.copy() if media_white is None
            else np.asarray(media_white, dtype=np.float64)
        ),
    }
    if media_black is not None:
        tags[TagSignature.MEDIA_BLACK_POINT] = np.asarray(media_black, dtype=np.float64)
    return tags


def _check_black(black_y: float) -> None:
    if not 0.0 <= black_y < 1.0:
        raise ValueError(f"black_y must be in [0, 1), got {black_y}")


# ═══════════════════════════════════════════════════════════════════════════════
# Gray
# ═══════════════════════════════════════════════════════════════════════════════
def gray_profile(
    trc: Optional[ToneCurve] = None,
    black_y: float = 0.0,
    version: float = 2.1,
    device_class: ProfileClass = ProfileClass.DISPLAY,
    intents: Iterable[int] = _DEFAULT_INTENTS,
    media_white=None,
    media_black=None,
) -> SyntheticProfile:
    """
    Single-channel profile, device value 0 = black.

    The colorimetric tables reproduce the measured black ``black_y``; the
    perceptual table maps device black onto PCS black.
    """
    _check_black(black_y)
    curve = trc if trc is not None else ToneCurve.from_gamma(2.2)

    def rel_a2b(g: np.ndarray) -> np.ndarray:
        return _lab_from_y(black_y + (1.0 - black_y) * curve(g[:, 0]))

    def rel_b2a(lab: np.ndarray) -> np.ndarray:
        t = (_y_from_lab(lab) - black_y) / (1.0 - black_y)
        return curve.inverse(t)[:, None]

    def perc_a2b(g: np.ndarray) -> np.ndarray:
        return _lab_from_y(curve(g[:, 0]))

    def perc_b2a(lab: np.ndarray) -> np.ndarray:
        return curve.inverse(_y_from_lab(lab))[:, None]

    profile = SyntheticProfile(
        device_class=device_class,
        color_space=ColorSpaceSignature.GRAY,
        version=version,
        tags=_build_tags(media_white, media_black),
        description="Synthetic gray",
    )
    for intent in intents:
        if intent == RenderingIntent.PERCEPTUAL:
            profile.a2b[int(intent)], profile.b2a[int(intent)] = perc_a2b, perc_b2a
        else:
            profile.a2b[_table_intent(intent)] = rel_a2b
            profile.b2a[_table_intent(intent)] = rel_b2a
    return profile


# ═══════════════════════════════════════════════════════════════════════════════
# Matrix-shaper RGB
# ═══════════════════════════════════════════════════════════════════════════════
def matrix_shaper_rgb_profile(
    trc: Optional[ToneCurve] = None,
    black_y: float = 0.0,
    version: float = 2.1,
    media_white=None,
    media_black=None,
) -> SyntheticProfile:
    """Display profile with sRGB primaries; the same shaper serves every intent."""
    _check_black(black_y)
    curve = trc if trc is not None else ToneCurve.from_gamma(2.2)

    def a2b(rgb: np.ndarray) -> np.ndarray:
        linear = black_y + (1.0 - black_y) * curve(rgb)
        return ColorSpaceEngine.xyz_to_lab(linear @ M_SRGB_D50_T)

    def b2a(lab: np.ndarray) -> np.ndarray:
        linear = ColorSpaceEngine.lab_to_xyz(lab) @ M_SRGB_D50_INV_T
        return curve.inverse((linear - black_y) / (1.0 - black_y))

    shaper_intents = (
        RenderingIntent.PERCEPTUAL,
        RenderingIntent.RELATIVE_COLORIMETRIC,
        RenderingIntent.SATURATION,
    )
    return SyntheticProfile(
        device_class=ProfileClass.DISPLAY,
        color_space=ColorSpaceSignature.RGB,
        version=version,
        a2b={int(i): a2b for i in shaper_intents},
        b2a={int(i): b2a for i in shaper_intents},
        tags=_build_tags(media_white, media_black),
        matrix_shaper=True,
        description="Synthetic sRGB matrix/shaper",
    )


# ═══════════════════════════════════════════════════════════════════════════════
# CMYK output
# ═══════════════════════════════════════════════════════════════════════════════
def _cmyk_coverage(cmyk: np.ndarray) -> np.ndarray:
    """Remaining light per R/G/B band after C/M/Y and K absorb."""
    cover = 1.0 - cmyk[:, 3:4]
    return (1.0 - cmyk[:, :3]) * cover


def _separate(s: np.ndarray, black_generation: float, ink_limit: float) -> np.ndarray:
    """
    Split target coverage *s* (N, 3) into CMYK.

    K replaces ``black_generation`` of the grey component; C/M/Y are then
    scaled down so that the total ink stays below ``ink_limit``.
    """
    k = black_generation * (1.0 - s.max(axis=1))
    cover = 1.0 - k
    safe = np.where(cover > 1e-12, cover, 1.0)[:, None]
    cmy = np.where(cover[:, None] > 1e-12, 1.0 - s / safe, 0.0)
    cmy = np.clip(cmy, 0.0, 1.0)

    total = cmy.sum(axis=1)
    budget = np.maximum(ink_limit - k, 0.0)
    over = total > budget
    scale = np.where(over, budget / np.where(total > 0.0, total, 1.0), 1.0)
    cmy *= scale[:, None]
    return np.column_stack([cmy, k])


def cmyk_output_profile(
    black_y: float = 0.02,
    ink_limit: float = 3.0,
    black_generation: float = 0.8,
    version: float = 2.1,
    intents: Iterable[int] = _DEFAULT_INTENTS,
    media_white=None,
    media_black=None,
) -> SyntheticProfile:
    """
    Printer profile.

    Device 400 % ink reaches ``black_y``, but the relative output table
    never lays down more than ``ink_limit`` total ink, so colorimetric
    round trips bottom out lighter than the device black.  The perceptual
    output table lays down pure K for PCS black.
    """
    _check_black(black_y)
    if not 1.0 <= ink_limit <= 4.0:
        raise ValueError(f"ink_limit must be in [1, 4], got {ink_limit}")

    def rel_a2b(cmyk: np.ndarray) -> np.ndarray:
        rho = black_y + (1.0 - black_y) * _cmyk_coverage(cmyk)
        return ColorSpaceEngine.xyz_to_lab(rho @ M_SRGB_D50_T)

    def rel_b2a(lab: np.ndarray) -> np.ndarray:
        rho = ColorSpaceEngine.lab_to_xyz(lab) @ M_SRGB_D50_INV_T
        s = np.clip((rho - black_y) / (1.0 - black_y), 0.0, 1.0)
        return _separate(s, black_generation, ink_limit)

    def perc_a2b(cmyk: np.ndarray) -> np.ndarray:
        return ColorSpaceEngine.xyz_to_lab(_cmyk_coverage(cmyk) @ M_SRGB_D50_T)

    def perc_b2a(lab: np.ndarray) -> np.ndarray:
        rho = ColorSpaceEngine.lab_to_xyz(lab) @ M_SRGB_D50_INV_T
        return _separate(np.clip(rho, 0.0, 1.0), 1.0, 4.0)

    profile = SyntheticProfile(
        device_class=ProfileClass.OUTPUT,
        color_space=ColorSpaceSignature.CMYK,
        version=version,
        tags=_build_tags(media_white, media_black),
        description="Synthetic CMYK press",
    )
    for intent in intents:
        if intent == RenderingIntent.PERCEPTUAL:
            profile.a2b[int(intent)], profile.b2a[int(intent)] = perc_a2b, perc_b2a
        else:
            profile.a2b[_table_intent(intent)] = rel_a2b
            profile.b2a[_table_intent(intent)] = rel_b2a
    return profile


# ═══════════════════════════════════════════════════════════════════════════════
# Device link
# ═══════════════════════════════════════════════════════════════════════════════
def device_link_profile(
    color_space: ColorSpaceSignature = ColorSpaceSignature.RGB,
    output_space: ColorSpaceSignature = ColorSpaceSignature.CMYK,
    version: float = 4.3,
) -> SyntheticProfile:
    """RGB -> CMYK (or RGB -> RGB) link; naive complement with full GCR."""

    def link(samples: np.ndarray) -> np.ndarray:
        if output_space == ColorSpaceSignature.CMYK:
            return _separate(samples[:, :3], 1.0, 4.0)
        return samples.copy()

    all_intents = (
        RenderingIntent.PERCEPTUAL,
        RenderingIntent.RELATIVE_COLORIMETRIC,
        RenderingIntent.SATURATION,
    )
    return SyntheticProfile(
        device_class=ProfileClass.LINK,
        color_space=color_space,
        pcs=output_space,
        version=version,
        a2b={int(i): link for i in all_intents},
        description="Synthetic device link",
    )
