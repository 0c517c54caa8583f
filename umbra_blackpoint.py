# -*- coding: utf-8 -*-
"""
Umbra: Black-point estimation for ICC colour profiles
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: umbra_blackpoint.py — Black-point detection.

Estimates the darkest neutral a profile can reproduce, as D50-relative
XYZ, for a given rendering intent.  The result feeds black-point
compensation, which lives elsewhere.

Contents:
  1.  Constants, the darker-colorant table and runtime configuration.
  2.  BlackPoint result type.
  3.  BlackPointDetector
        as_darker_colorant     evaluate the darkest device colorant
        using_perceptual_black Lab black through a perceptual round trip
        detect                 input-side resolver (dispatch of the above)
        detect_destination     output-side resolver; locates the toe of
                               the round-trip L* response with a quadratic
                               fit (Adobe black-point detection algorithm)
  4.  Module-level entry points bound to the default engine.

Every estimator is total: unsupported profiles, intents or engine failures
come back as ``BlackPoint(zeros, False)``.  A zero triplet with ``ok`` set
is a real answer ("PCS black").  Transforms and auxiliary profiles are
closed on every path.

Reference:
    Adobe Systems, "Adobe Black Point Compensation", 2006.
"""

from __future__ import annotations

import logging
from contextlib import closing
from typing import Dict, Final, NamedTuple, Optional, Tuple

import numpy as np

from umbra_colorengine import (
    REF_WHITE_D50,
    ArrayFloat,
    ChromaticAdaptation,
    ColorSpaceEngine,
)
from umbra_fitting import is_monotonic, root_of_least_squares_quadratic
from umbra_profile import (
    ColorSpaceSignature,
    Direction,
    ProfileClass,
    ProfileReader,
    RenderingIntent,
    TagSignature,
    read_media_white_point,
)
from umbra_transform import (
    TYPE_LAB_DBL,
    ColorTransform,
    PipelineEngine,
    TransformEngine,
    TransformFlags,
    formatter_for_colorspace_of_profile,
)

__all__ = [
    "PERCEPTUAL_BLACK",
    "BlackPoint",
    "end_points_by_space",
    "set_use_black_point_tag",
    "set_default_engine",
    "get_default_engine",
    "BlackPointDetector",
    "black_point_as_darker_colorant",
    "black_point_using_perceptual_black",
    "detect_black_point",
    "detect_destination_black_point",
]

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# 1.  Constants and configuration
# ═══════════════════════════════════════════════════════════════════════════════
# ICC v4 perceptual reference medium black (D50 XYZ).
PERCEPTUAL_BLACK: Final[ArrayFloat] = np.array([0.00336, 0.0034731, 0.00287], dtype=np.float64)

MAX_BLACK_L: Final[float] = 50.0

# Probes must see the raw tables.
_PROBE_FLAGS: Final[int] = int(TransformFlags.NOCACHE | TransformFlags.NOOPTIMIZE)

_LAB_V2: Final[float] = 2.1
_LAB_V4: Final[float] = 4.3

# 16-bit device codes of the darkest colorant combination, and channel count.
_DARKER_COLORANTS: Final[Dict[ColorSpaceSignature, Tuple[Tuple[int, ...], int]]] = {
    ColorSpaceSignature.GRAY: ((0,), 1),
    ColorSpaceSignature.RGB:  ((0, 0, 0), 3),
    ColorSpaceSignature.LAB:  ((0, 0x8080, 0x8080), 3),
    ColorSpaceSignature.CMYK: ((0xFFFF, 0xFFFF, 0xFFFF, 0xFFFF), 4),
    ColorSpaceSignature.CMY:  ((0xFFFF, 0xFFFF, 0xFFFF), 3),
}

_LIGHTER_COLORANTS: Final[Dict[ColorSpaceSignature, Tuple[int, ...]]] = {
    ColorSpaceSignature.GRAY: (0xFFFF,),
    ColorSpaceSignature.RGB:  (0xFFFF, 0xFFFF, 0xFFFF),
    ColorSpaceSignature.LAB:  (0xFFFF, 0x8080, 0x8080),
    ColorSpaceSignature.CMYK: (0, 0, 0, 0),
    ColorSpaceSignature.CMY:  (0, 0, 0),
}

_DESTINATION_INTENTS: Final[frozenset] = frozenset({
    RenderingIntent.PERCEPTUAL,
    RenderingIntent.RELATIVE_COLORIMETRIC,
    RenderingIntent.SATURATION,
})

_DESTINATION_SPACES: Final[frozenset] = frozenset({
    ColorSpaceSignature.GRAY,
    ColorSpaceSignature.RGB,
    ColorSpaceSignature.CMYK,
})

# Normalised-response band kept for the toe fit: (low inclusive, high exclusive).
_RELATIVE_BAND: Final[Tuple[float, float]] = (0.1, 0.5)
_PERCEPTUAL_BAND: Final[Tuple[float, float]] = (0.03, 0.25)

# Straightness test of the relative round trip.
_STRAIGHT_FLOOR: Final[float] = 0.2
_STRAIGHT_TOLERANCE: Final[float] = 4.0

_SWEEP_L: Final[ArrayFloat] = np.arange(101, dtype=np.float64)


def end_points_by_space(
    space: ColorSpaceSignature,
) -> Optional[Tuple[Tuple[int, ...], Tuple[int, ...], int]]:
    """
    Device end points of *space* as 16-bit codes.

    Returns:
        ``(white, black, channels)``, or None for spaces without a known
        colorant order.
    """
    entry = _DARKER_COLORANTS.get(space)
    if entry is None:
        return None
    black, channels = entry
    return _LIGHTER_COLORANTS[space], black, channels


# --- Runtime Configuration ---
_USE_BLACK_POINT_TAG: bool = False
_DEFAULT_ENGINE: Optional[TransformEngine] = None


def set_use_black_point_tag(enabled: bool = True) -> None:
    """
    Trust the ``bkpt`` tag for relative-colorimetric input detection.

    Off by default: most ``bkpt`` tags in the wild are unreliable.
    """
    global _USE_BLACK_POINT_TAG
    _USE_BLACK_POINT_TAG = bool(enabled)


def set_default_engine(engine: Optional[TransformEngine]) -> None:
    """Engine used when none is passed; None restores the PipelineEngine."""
    global _DEFAULT_ENGINE
    _DEFAULT_ENGINE = engine


def get_default_engine() -> TransformEngine:
    global _DEFAULT_ENGINE
    if _DEFAULT_ENGINE is None:
        _DEFAULT_ENGINE = PipelineEngine()
    return _DEFAULT_ENGINE


# ═══════════════════════════════════════════════════════════════════════════════
# 2.  Result type
# ═══════════════════════════════════════════════════════════════════════════════
class BlackPoint(NamedTuple):
    """Estimated black point: D50 XYZ ``(3,)`` and a success flag."""
    xyz: ArrayFloat
    ok: bool


def _failed() -> BlackPoint:
    return BlackPoint(np.zeros(3, dtype=np.float64), False)


def _neutral_black(lab: ArrayFloat) -> ArrayFloat:
    """Zero a*/b*, clip L* to 50 and return XYZ."""
    lab = np.array(lab, dtype=np.float64).reshape(3)
    lab[0] = min(lab[0], MAX_BLACK_L)
    lab[1] = 0.0
    lab[2] = 0.0
    return ColorSpaceEngine.lab_to_xyz(lab)


def _is_v4_perceptual(profile: ProfileReader, intent: int) -> bool:
    return profile.version >= 4.0 and intent in (
        RenderingIntent.PERCEPTUAL,
        RenderingIntent.SATURATION,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# 3.  Detector
# ═══════════════════════════════════════════════════════════════════════════════
class BlackPointDetector:
    """
    Black-point estimators bound to a transform engine.

    Args:
        engine: Transform engine; the module default when None.
        use_black_point_tag: Overrides ``set_use_black_point_tag`` for this
            detector when not None.
    """

    def __init__(
        self,
        engine: Optional[TransformEngine] = None,
        use_black_point_tag: Optional[bool] = None,
    ) -> None:
        self._engine = engine
        self._use_black_point_tag = use_black_point_tag

    @property
    def engine(self) -> TransformEngine:
        if self._engine is not None:
            return self._engine
        return get_default_engine()

    @property
    def use_black_point_tag(self) -> bool:
        if self._use_black_point_tag is not None:
            return self._use_black_point_tag
        return _USE_BLACK_POINT_TAG

    # -- estimators ------------------------------------------------------------
    def as_darker_colorant(self, profile: ProfileReader, intent: int, flags: int = 0) -> BlackPoint:
        """
        Black point as the Lab of the darkest device colorant at *intent*.

        Works on input, output and display profiles alike.  *flags* is
        accepted for symmetry with the resolvers and not used.
        """
        if not profile.is_intent_supported(intent, Direction.INPUT):
            logger.debug("[BlackPoint] Intent %d not supported as input", int(intent))
            return _failed()

        device_format = formatter_for_colorspace_of_profile(profile, 2)

        entry = _DARKER_COLORANTS.get(profile.color_space)
        if entry is None:
            logger.debug("[BlackPoint] No darker colorant for %s", profile.color_space)
            return _failed()

        black, channels = entry
        if channels != device_format.channels:
            logger.debug(
                "[BlackPoint] Colorant table has %d channels, profile format %d",
                channels, device_format.channels,
            )
            return _failed()

        engine = self.engine
        lab_profile = engine.create_lab_profile(_LAB_V2)
        if lab_profile is None:
            return _failed()

        with closing(lab_profile):
            transform = engine.create_transform(
                profile, device_format, lab_profile, TYPE_LAB_DBL, intent, _PROBE_FLAGS
            )
        if transform is None:
            logger.debug("[BlackPoint] Darker-colorant transform not available")
            return _failed()

        with closing(transform):
            lab = transform.do_transform(np.array(black, dtype=np.float64))

        return BlackPoint(_neutral_black(lab), True)

    def using_perceptual_black(self, profile: ProfileReader) -> BlackPoint:
        """
        Black point as PCS black sent out through the perceptual table and
        read back colorimetrically.  Avoids evaluating the 400 % corner of
        ink-limited CMYK profiles.
        """
        if not profile.is_intent_supported(RenderingIntent.PERCEPTUAL, Direction.INPUT):
            # No perceptual table: PCS black is the answer.
            return BlackPoint(np.zeros(3, dtype=np.float64), True)

        roundtrip = self._create_roundtrip(profile, RenderingIntent.PERCEPTUAL)
        if roundtrip is None:
            return _failed()

        with closing(roundtrip):
            lab = roundtrip.do_transform(np.zeros(3, dtype=np.float64))

        return BlackPoint(_neutral_black(lab), True)

    def detect(self, profile: ProfileReader, intent: int, flags: int = 0) -> BlackPoint:
        """
        Black point of *profile* used on the input side at *intent*.

        Resolution order: device links fail; v4 perceptual/saturation use
        the reference medium black (or the colorant for matrix shapers);
        the ``bkpt`` tag when enabled; the perceptual round trip for CMYK
        printers at relative colorimetric; the darker colorant otherwise.
        """
        if profile.device_class == ProfileClass.LINK:
            logger.debug("[BlackPoint] Device links have no black point")
            return _failed()

        v4 = self._v4_perceptual_black(profile, intent)
        if v4 is not None:
            return v4

        if (
            self.use_black_point_tag
            and intent == RenderingIntent.RELATIVE_COLORIMETRIC
            and profile.has_tag(TagSignature.MEDIA_BLACK_POINT)
        ):
            tagged = self._from_black_point_tag(profile)
            if tagged is not None:
                return tagged

        if (
            intent == RenderingIntent.RELATIVE_COLORIMETRIC
            and profile.device_class == ProfileClass.OUTPUT
            and profile.color_space == ColorSpaceSignature.CMYK
        ):
            return self.using_perceptual_black(profile)

        return self.as_darker_colorant(profile, intent, flags)

    def detect_destination(self, profile: ProfileReader, intent: int, flags: int = 0) -> BlackPoint:
        """
        Black point of *profile* used on the output side at *intent*.

        The profile is round-tripped (Lab -> device at *intent* -> Lab at
        relative colorimetric) along L* = 0..100.  Where the response has a
        toe, its start is found by fitting a parabola to the normalised
        response inside a band just above black.  Clean profiles take one
        of the early exits and return the input-side estimate.
        """
        if intent not in _DESTINATION_INTENTS:
            return _failed()

        v4 = self._v4_perceptual_black(profile, intent)
        if v4 is not None:
            return v4

        if (
            not profile.is_clut(intent, Direction.OUTPUT)
            or profile.color_space not in _DESTINATION_SPACES
        ):
            return self.detect(profile, intent, flags)

        relative = intent == RenderingIntent.RELATIVE_COLORIMETRIC
        if relative:
            initial = self.detect(profile, intent, flags)
            if not initial.ok:
                return _failed()
            initial_lab = ColorSpaceEngine.xyz_to_lab(initial.xyz)
        else:
            initial_lab = np.zeros(3, dtype=np.float64)

        roundtrip = self._create_roundtrip(profile, intent)
        if roundtrip is None:
            return _failed()

        probes = np.empty((_SWEEP_L.size, 3), dtype=np.float64)
        probes[:, 0] = _SWEEP_L
        probes[:, 1] = initial_lab[1]
        probes[:, 2] = initial_lab[2]
        with closing(roundtrip):
            dest_l = np.asarray(roundtrip.do_transform(probes), dtype=np.float64)[:, 0]

        min_l = dest_l[0]
        max_l = dest_l[-1]
        if relative:
            initial_guess = initial
        else:
            initial_guess = BlackPoint(ColorSpaceEngine.lab_to_xyz(initial_lab), True)

        if relative and self._nearly_straight(dest_l, min_l, max_l):
            logger.debug("[BlackPoint] Round trip is nearly straight, keeping initial guess")
            return initial_guess

        lo, hi = _RELATIVE_BAND if relative else _PERCEPTUAL_BAND
        with np.errstate(divide="ignore", invalid="ignore"):
            ff = (dest_l - min_l) / (max_l - min_l)
        band = (ff >= lo) & (ff < hi)
        x = _SWEEP_L[band]
        y = ff[band]

        if x.size == 0:
            logger.debug("[BlackPoint] No samples in band (%.2f, %.2f)", lo, hi)
            return self.detect(profile, intent, flags)

        if is_monotonic(y):
            logger.debug("[BlackPoint] Response is monotonic, keeping initial guess")
            return initial_guess

        root = root_of_least_squares_quadratic(x, y)
        if root is None:
            logger.debug("[BlackPoint] Degenerate toe fit over %d samples", x.size)
            return self.detect(profile, intent, flags)

        if root < 0.0 or root > MAX_BLACK_L:
            root = 0.0
        logger.debug("[BlackPoint] Toe fit over %d samples, L* = %.4f", x.size, root)

        lab = np.array([root, initial_lab[1], initial_lab[2]], dtype=np.float64)
        return BlackPoint(ColorSpaceEngine.lab_to_xyz(lab), True)

    # -- internals -------------------------------------------------------------
    def _v4_perceptual_black(self, profile: ProfileReader, intent: int) -> Optional[BlackPoint]:
        # v4 perceptual and saturation tables are referred to the reference
        # medium, whose black is fixed.  Matrix shapers have no such tables.
        if not _is_v4_perceptual(profile, intent):
            return None
        if profile.is_matrix_shaper():
            return self.as_darker_colorant(profile, RenderingIntent.RELATIVE_COLORIMETRIC)
        return BlackPoint(PERCEPTUAL_BLACK.copy(), True)

    def _from_black_point_tag(self, profile: ProfileReader) -> Optional[BlackPoint]:
        tag = profile.read_tag(TagSignature.MEDIA_BLACK_POINT)
        if tag is None:
            return None

        media_white = read_media_white_point(profile)
        black = ChromaticAdaptation.adapt(
            np.asarray(tag, dtype=np.float64).reshape(3), media_white, REF_WHITE_D50
        )
        return BlackPoint(_neutral_black(ColorSpaceEngine.xyz_to_lab(black)), True)

    def _create_roundtrip(self, profile: ProfileReader, intent: int) -> Optional[ColorTransform]:
        """Lab -> profile (intent) -> profile (relative) -> Lab, no BPC."""
        engine = self.engine
        lab_profile = engine.create_lab_profile(_LAB_V4)
        if lab_profile is None:
            return None

        relative = RenderingIntent.RELATIVE_COLORIMETRIC
        with closing(lab_profile):
            transform = engine.create_extended_transform(
                [lab_profile, profile, profile, lab_profile],
                [False, False, False, False],
                [relative, intent, relative, relative],
                TYPE_LAB_DBL,
                TYPE_LAB_DBL,
                _PROBE_FLAGS,
            )
        if transform is None:
            logger.debug("[BlackPoint] Round-trip transform not available")
        return transform

    @staticmethod
    def _nearly_straight(dest_l: ArrayFloat, min_l: float, max_l: float) -> bool:
        above = dest_l > min_l + _STRAIGHT_FLOOR * (max_l - min_l)
        deviation = np.abs(dest_l[above] - _SWEEP_L[above])
        return bool(np.all(deviation <= _STRAIGHT_TOLERANCE))


# ═══════════════════════════════════════════════════════════════════════════════
# 4.  Module-level entry points
# ═══════════════════════════════════════════════════════════════════════════════
def black_point_as_darker_colorant(
    profile: ProfileReader,
    intent: int,
    flags: int = 0,
    engine: Optional[TransformEngine] = None,
) -> BlackPoint:
    return BlackPointDetector(engine).as_darker_colorant(profile, intent, flags)


def black_point_using_perceptual_black(
    profile: ProfileReader,
    engine: Optional[TransformEngine] = None,
) -> BlackPoint:
    return BlackPointDetector(engine).using_perceptual_black(profile)


def detect_black_point(
    profile: ProfileReader,
    intent: int,
    flags: int = 0,
    engine: Optional[TransformEngine] = None,
) -> BlackPoint:
    """Input-side black point of *profile*; see ``BlackPointDetector.detect``."""
    return BlackPointDetector(engine).detect(profile, intent, flags)


def detect_destination_black_point(
    profile: ProfileReader,
    intent: int,
    flags: int = 0,
    engine: Optional[TransformEngine] = None,
) -> BlackPoint:
    """Output-side black point of *profile*; see ``BlackPointDetector.detect_destination``."""
    return BlackPointDetector(engine).detect_destination(profile, intent, flags)
