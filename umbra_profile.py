# -*- coding: utf-8 -*-
"""
Umbra: Black-point estimation for ICC colour profiles
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: umbra_profile.py — Profile vocabulary and the read-only profile interface.

Contents:
  1.  ICC enumerations: rendering intents, usage directions, device classes,
      colour-space and tag signatures.
  2.  ProfileReader protocol: everything the black-point estimators are
      allowed to ask a profile.  Profiles are never mutated here.
  3.  StageProvider protocol: what a transform engine needs from a profile
      to evaluate it (vectorised device <-> Lab callables).
  4.  read_media_white_point: media white with the v2 display-class rule.
  5.  LabProfile: the identity connection-space profile created as an
      auxiliary stage by round-trip probes.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import (
    Any,
    Callable,
    Dict,
    Final,
    Optional,
    Protocol,
    TypeAlias,
    runtime_checkable,
)

import numpy as np

from umbra_colorengine import REF_WHITE_D50, ArrayFloat

__all__ = [
    "RenderingIntent",
    "Direction",
    "ProfileClass",
    "ColorSpaceSignature",
    "TagSignature",
    "PCS_SPACES",
    "channels_of",
    "StageFunction",
    "ProfileReader",
    "StageProvider",
    "LinkableProfile",
    "ProfileHandle",
    "read_media_white_point",
    "LabProfile",
]

StageFunction: TypeAlias = Callable[[np.ndarray], np.ndarray]


# ═══════════════════════════════════════════════════════════════════════════════
# 1.  Enumerations
# ═══════════════════════════════════════════════════════════════════════════════
class RenderingIntent(IntEnum):
    PERCEPTUAL = 0
    RELATIVE_COLORIMETRIC = 1
    SATURATION = 2
    ABSOLUTE_COLORIMETRIC = 3


class Direction(IntEnum):
    """Usage direction of a profile inside a transform."""
    INPUT = 0     # device -> PCS
    OUTPUT = 1    # PCS -> device
    PROOF = 2


class ProfileClass(str, Enum):
    INPUT = "scnr"
    DISPLAY = "mntr"
    OUTPUT = "prtr"
    LINK = "link"
    ABSTRACT = "abst"
    COLORSPACE = "spac"
    NAMED_COLOR = "nmcl"


class ColorSpaceSignature(str, Enum):
    XYZ = "XYZ "
    LAB = "Lab "
    LUV = "Luv "
    YCBCR = "YCbr"
    YXY = "Yxy "
    RGB = "RGB "
    GRAY = "GRAY"
    HSV = "HSV "
    HLS = "HLS "
    CMYK = "CMYK"
    CMY = "CMY "
    MCH5 = "5CLR"
    MCH6 = "6CLR"


class TagSignature(str, Enum):
    MEDIA_WHITE_POINT = "wtpt"
    MEDIA_BLACK_POINT = "bkpt"


PCS_SPACES: Final[frozenset] = frozenset(
    {ColorSpaceSignature.XYZ, ColorSpaceSignature.LAB}
)

_CHANNELS: Final[Dict[ColorSpaceSignature, int]] = {
    ColorSpaceSignature.GRAY: 1,
    ColorSpaceSignature.CMYK: 4,
    ColorSpaceSignature.MCH5: 5,
    ColorSpaceSignature.MCH6: 6,
}


def channels_of(space: ColorSpaceSignature) -> int:
    """Number of device channels of *space*; three-component spaces are the default."""
    return _CHANNELS.get(space, 3)


# ═══════════════════════════════════════════════════════════════════════════════
# 2.  Profile interfaces
# ═══════════════════════════════════════════════════════════════════════════════
@runtime_checkable
class ProfileReader(Protocol):
    """
    Read-only profile introspection.

    ``version`` is the encoded ICC version as a float (2.1, 4.3, ...).
    ``read_tag`` returns the parsed tag value or None when absent or
    unreadable.
    """
    @property
    def device_class(self) -> ProfileClass: ...
    @property
    def color_space(self) -> ColorSpaceSignature: ...
    @property
    def pcs(self) -> ColorSpaceSignature: ...
    @property
    def version(self) -> float: ...

    def is_intent_supported(self, intent: int, direction: Direction) -> bool: ...
    def is_matrix_shaper(self) -> bool: ...
    def is_clut(self, intent: int, direction: Direction) -> bool: ...
    def has_tag(self, signature: TagSignature) -> bool: ...
    def read_tag(self, signature: TagSignature) -> Optional[Any]: ...


@runtime_checkable
class StageProvider(Protocol):
    """
    Evaluation hook used by transform engines.

    ``pipeline(intent, Direction.INPUT)`` maps device values in [0, 1],
    shape (N, channels), to Lab (N, 3); ``Direction.OUTPUT`` maps Lab to
    device values.  None means no table exists for that intent/direction.
    """
    def pipeline(self, intent: int, direction: Direction) -> Optional[StageFunction]: ...


class LinkableProfile(ProfileReader, StageProvider, Protocol):
    """A profile a transform engine can both inspect and evaluate."""


class ProfileHandle(LinkableProfile, Protocol):
    """A profile owned by its creator, who must close it."""
    def close(self) -> None: ...


# ═══════════════════════════════════════════════════════════════════════════════
# 3.  Media white point
# ═══════════════════════════════════════════════════════════════════════════════
def read_media_white_point(profile: ProfileReader) -> ArrayFloat:
    """
    Media white point of *profile* as XYZ.

    Missing tag → D50.  Version 2 display profiles are always treated as
    D50: their ``wtpt`` holds the native display white, which v2 already
    folded into the colorant tags.
    """
    tag = profile.read_tag(TagSignature.MEDIA_WHITE_POINT)
    if tag is None:
        return REF_WHITE_D50.copy()

    if profile.version < 4.0 and profile.device_class == ProfileClass.DISPLAY:
        return REF_WHITE_D50.copy()

    return np.asarray(tag, dtype=np.float64).reshape(3)


# ═══════════════════════════════════════════════════════════════════════════════
# 4.  LabProfile: identity connection space
# ═══════════════════════════════════════════════════════════════════════════════
def _identity(samples: np.ndarray) -> np.ndarray:
    return samples


class LabProfile:
    """
    Abstract Lab identity profile (class ``abst``, Lab -> Lab).

    Round-trip probes wrap a device profile between two of these.  Version
    2 and 4 differ only in the Lab encoding on disk, which is irrelevant in
    this float pipeline; the version is kept because estimators choose it
    deliberately (a v2 Lab profile never triggers the v4 perceptual rules).
    """
    __slots__ = ("_version", "closed")

    def __init__(self, version: float = 4.3) -> None:
        self._version = float(version)
        self.closed = False

    @property
    def device_class(self) -> ProfileClass:
        return ProfileClass.ABSTRACT

    @property
    def color_space(self) -> ColorSpaceSignature:
        return ColorSpaceSignature.LAB

    @property
    def pcs(self) -> ColorSpaceSignature:
        return ColorSpaceSignature.LAB

    @property
    def version(self) -> float:
        return self._version

    def is_intent_supported(self, intent: int, direction: Direction) -> bool:
        return True

    def is_matrix_shaper(self) -> bool:
        return False

    def is_clut(self, intent: int, direction: Direction) -> bool:
        return True

    def has_tag(self, signature: TagSignature) -> bool:
        return signature == TagSignature.MEDIA_WHITE_POINT

    def read_tag(self, signature: TagSignature) -> Optional[Any]:
        if signature == TagSignature.MEDIA_WHITE_POINT:
            return REF_WHITE_D50.copy()
        return None

    def pipeline(self, intent: int, direction: Direction) -> Optional[StageFunction]:
        return _identity

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"LabProfile(version={self._version}, closed={self.closed})"
