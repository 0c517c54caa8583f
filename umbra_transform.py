# -*- coding: utf-8 -*-
"""
Umbra: Black-point estimation for ICC colour profiles
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: umbra_transform.py — Transform vocabulary and the reference pipeline engine.

Contents:
  1.  PixelFormat / TransformFlags: how samples enter and leave a transform.
  2.  ColorTransform / TransformEngine protocols: the only transform
      surface the black-point estimators use.  Engines signal a failed
      construction by returning None.
  3.  PipelineEngine: in-memory engine that chains profile stages the way
      an ICC CMM links them (device <-> PCS alternation), evaluated as
      vectorised NumPy callables.  It never caches or optimises, so the
      NOCACHE / NOOPTIMIZE flags are recorded only.  Black-point
      compensation is recorded on the transform and not applied.
"""

from __future__ import annotations

import logging
from enum import IntFlag
from typing import (
    Final,
    List,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

import numpy as np

from umbra_colorengine import REF_WHITE_D50, ColorSpaceEngine
from umbra_profile import (
    PCS_SPACES,
    ColorSpaceSignature,
    Direction,
    LabProfile,
    LinkableProfile,
    ProfileClass,
    ProfileHandle,
    ProfileReader,
    RenderingIntent,
    StageFunction,
    channels_of,
    read_media_white_point,
)

__all__ = [
    "PixelFormat",
    "TYPE_LAB_DBL",
    "TransformFlags",
    "formatter_for_colorspace_of_profile",
    "ColorTransform",
    "TransformEngine",
    "PipelineTransform",
    "PipelineEngine",
]

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# 1.  Formats and flags
# ═══════════════════════════════════════════════════════════════════════════════
class PixelFormat(NamedTuple):
    """
    Sample layout of one side of a transform.

    ``bytes_per_channel`` 0 means float64 (device values in [0, 1], Lab in
    natural units); 1 and 2 mean 8- and 16-bit integer device codes.
    """
    color_space: ColorSpaceSignature
    channels: int
    bytes_per_channel: int = 0

    @property
    def is_float(self) -> bool:
        return self.bytes_per_channel == 0


TYPE_LAB_DBL: Final[PixelFormat] = PixelFormat(ColorSpaceSignature.LAB, 3, 0)

_CODE_MAX: Final[dict] = {1: 255.0, 2: 65535.0}


class TransformFlags(IntFlag):
    NONE = 0
    NOCACHE = 0x0040
    NOOPTIMIZE = 0x0100
    BLACKPOINTCOMPENSATION = 0x2000


def formatter_for_colorspace_of_profile(profile: ProfileReader, nbytes: int = 2) -> PixelFormat:
    """Device-side format of *profile*: its colour space, channel count and word size."""
    space = profile.color_space
    return PixelFormat(space, channels_of(space), nbytes)


# ═══════════════════════════════════════════════════════════════════════════════
# 2.  Protocols
# ═══════════════════════════════════════════════════════════════════════════════
@runtime_checkable
class ColorTransform(Protocol):
    def do_transform(self, samples: np.ndarray) -> np.ndarray: ...
    def close(self) -> None: ...


@runtime_checkable
class TransformEngine(Protocol):
    """
    Factory for transforms and auxiliary connection-space profiles.

    Every object returned must be closed by the caller.  None signals a
    construction failure (unsupported intent, format mismatch, ...).
    """
    def create_lab_profile(self, version: float = 4.3) -> Optional[ProfileHandle]: ...

    def create_transform(
        self,
        src: LinkableProfile,
        src_format: PixelFormat,
        dst: LinkableProfile,
        dst_format: PixelFormat,
        intent: int,
        flags: int = 0,
    ) -> Optional[ColorTransform]: ...

    def create_extended_transform(
        self,
        profiles: Sequence[LinkableProfile],
        bpc: Sequence[bool],
        intents: Sequence[int],
        input_format: PixelFormat,
        output_format: PixelFormat,
        flags: int = 0,
    ) -> Optional[ColorTransform]: ...


# ═══════════════════════════════════════════════════════════════════════════════
# 3.  Pipeline engine
# ═══════════════════════════════════════════════════════════════════════════════
class PipelineTransform:
    """
    A linked chain of stage callables.

    ``do_transform`` accepts one sample (shape (channels,)) or a batch
    (shape (N, channels)) and returns the same rank.
    """
    __slots__ = ("_stages", "input_format", "output_format", "intents", "bpc", "flags", "closed")

    def __init__(
        self,
        stages: List[Tuple[StageFunction, bool]],
        input_format: PixelFormat,
        output_format: PixelFormat,
        intents: Tuple[int, ...],
        bpc: Tuple[bool, ...],
        flags: int,
    ) -> None:
        self._stages = stages
        self.input_format = input_format
        self.output_format = output_format
        self.intents = intents
        self.bpc = bpc
        self.flags = TransformFlags(flags)
        self.closed = False

    def do_transform(self, samples: np.ndarray) -> np.ndarray:
        if self.closed:
            raise ValueError("Transform has been closed.")

        arr = np.asarray(samples, dtype=np.float64)
        single = arr.ndim == 1
        data = np.atleast_2d(arr)
        if data.shape[-1] != self.input_format.channels:
            raise ValueError(
                f"Expected {self.input_format.channels} input channels, got {data.shape[-1]}"
            )

        data = _decode(data, self.input_format)
        for stage, device_out in self._stages:
            data = np.asarray(stage(data), dtype=np.float64)
            if device_out:
                data = np.clip(data, 0.0, 1.0)
        out = _encode(data, self.output_format)

        if single:
            return out[0]
        return out

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return (
            f"PipelineTransform(stages={len(self._stages)}, "
            f"intents={self.intents}, flags={self.flags!r}, closed={self.closed})"
        )


def _decode(data: np.ndarray, fmt: PixelFormat) -> np.ndarray:
    if fmt.is_float:
        return data.copy()
    code_max = _CODE_MAX[fmt.bytes_per_channel]
    if fmt.color_space == ColorSpaceSignature.LAB:
        # ICC v4 integer Lab: L* spans the full code range, a*/b* are
        # offset by 128 with 0x80 (0x8080) as neutral.
        step = code_max / 255.0
        out = np.empty_like(data)
        out[:, 0] = data[:, 0] * 100.0 / code_max
        out[:, 1:] = data[:, 1:] / step - 128.0
        return out
    return np.clip(data / code_max, 0.0, 1.0)


def _encode(data: np.ndarray, fmt: PixelFormat) -> np.ndarray:
    if fmt.is_float:
        return data
    code_max = _CODE_MAX[fmt.bytes_per_channel]
    if fmt.color_space == ColorSpaceSignature.LAB:
        step = code_max / 255.0
        out = np.empty_like(data)
        out[:, 0] = np.clip(data[:, 0], 0.0, 100.0) * code_max / 100.0
        out[:, 1:] = (np.clip(data[:, 1:], -128.0, 127.0) + 128.0) * step
        return np.round(out)
    return np.round(np.clip(data, 0.0, 1.0) * code_max)


def _absolute_scaling(profile: LinkableProfile, stage: StageFunction, direction: Direction) -> StageFunction:
    """
    Wrap a relative-colorimetric stage into an absolute one.

    XYZ is scaled per channel by media white / D50 on the way into the PCS
    and by the inverse on the way out.
    """
    scale = read_media_white_point(profile) / REF_WHITE_D50
    if direction == Direction.OUTPUT:
        scale = 1.0 / scale

    def to_pcs(samples: np.ndarray) -> np.ndarray:
        lab = stage(samples)
        xyz = ColorSpaceEngine.lab_to_xyz(lab) * scale
        return ColorSpaceEngine.xyz_to_lab(xyz)

    def from_pcs(samples: np.ndarray) -> np.ndarray:
        xyz = ColorSpaceEngine.lab_to_xyz(samples) * scale
        return stage(ColorSpaceEngine.xyz_to_lab(xyz))

    return to_pcs if direction == Direction.INPUT else from_pcs


class PipelineEngine:
    """
    Reference ``TransformEngine``.

    Linking rule: the first profile is used as input; every later profile
    is used as input when the running colour space is a device space and
    as output when it is a PCS.  A missing intent table falls back to the
    perceptual one.
    """

    def create_lab_profile(self, version: float = 4.3) -> Optional[ProfileHandle]:
        return LabProfile(version)

    def create_transform(
        self,
        src: LinkableProfile,
        src_format: PixelFormat,
        dst: LinkableProfile,
        dst_format: PixelFormat,
        intent: int,
        flags: int = 0,
    ) -> Optional[ColorTransform]:
        bpc = bool(flags & TransformFlags.BLACKPOINTCOMPENSATION)
        return self._link(
            [src, dst], [bpc, bpc], [intent, intent], src_format, dst_format, flags
        )

    def create_extended_transform(
        self,
        profiles: Sequence[LinkableProfile],
        bpc: Sequence[bool],
        intents: Sequence[int],
        input_format: PixelFormat,
        output_format: PixelFormat,
        flags: int = 0,
    ) -> Optional[ColorTransform]:
        return self._link(profiles, bpc, intents, input_format, output_format, flags)

    # -- internals ---------------------------------------------------------
    def _link(
        self,
        profiles: Sequence[LinkableProfile],
        bpc: Sequence[bool],
        intents: Sequence[int],
        input_format: PixelFormat,
        output_format: PixelFormat,
        flags: int,
    ) -> Optional[PipelineTransform]:
        n = len(profiles)
        if n == 0:
            raise ValueError("At least one profile is required.")
        if len(intents) != n or len(bpc) != n:
            raise ValueError(
                f"Stage list mismatch: {n} profiles, {len(intents)} intents, {len(bpc)} bpc flags"
            )
        for fmt in (input_format, output_format):
            if fmt.color_space == ColorSpaceSignature.XYZ and not fmt.is_float:
                raise ValueError("XYZ formats must be floating point.")

        current = profiles[0].color_space
        if input_format.color_space != current:
            logger.debug(
                "[Pipeline] Input format %s does not match %s",
                input_format.color_space, current,
            )
            return None

        stages: List[Tuple[StageFunction, bool]] = []
        for i, (profile, intent) in enumerate(zip(profiles, intents)):
            is_input = i == 0 or current not in PCS_SPACES
            if profile.device_class == ProfileClass.LINK:
                is_input = True
            direction = Direction.INPUT if is_input else Direction.OUTPUT

            stage = self._resolve_stage(profile, int(intent), direction)
            if stage is None:
                logger.debug(
                    "[Pipeline] Stage %d has no table for intent %d (%s)",
                    i, int(intent), direction.name,
                )
                return None

            current = profile.pcs if is_input else profile.color_space
            stages.append((stage, current not in PCS_SPACES))

        if output_format.color_space != current:
            logger.debug(
                "[Pipeline] Output format %s does not match %s",
                output_format.color_space, current,
            )
            return None

        return PipelineTransform(
            stages,
            input_format,
            output_format,
            tuple(int(v) for v in intents),
            tuple(bool(v) for v in bpc),
            flags,
        )

    @staticmethod
    def _resolve_stage(profile: LinkableProfile, intent: int, direction: Direction) -> Optional[StageFunction]:
        if intent == RenderingIntent.ABSOLUTE_COLORIMETRIC:
            stage = PipelineEngine._resolve_stage(
                profile, RenderingIntent.RELATIVE_COLORIMETRIC, direction
            )
            if stage is None or profile.color_space in PCS_SPACES:
                return stage
            return _absolute_scaling(profile, stage, direction)

        stage = profile.pipeline(intent, direction)
        if stage is None and intent != RenderingIntent.PERCEPTUAL:
            stage = profile.pipeline(RenderingIntent.PERCEPTUAL, direction)
        return stage
