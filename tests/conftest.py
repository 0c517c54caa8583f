# -*- coding: utf-8 -*-
"""
Umbra: Black-point estimation for ICC colour profiles
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Shared fixtures: resource-counting and scripted transform engines.
"""

import numpy as np
import pytest

import umbra_blackpoint
import umbra_colorengine
from umbra_profile import (
    ColorSpaceSignature,
    ProfileClass,
    RenderingIntent,
    LabProfile,
)
from umbra_transform import PipelineEngine
from device_models.profiles import SyntheticProfile


# ═══════════════════════════════════════════════════════════════════════════════
# Resource tracking
# ═══════════════════════════════════════════════════════════════════════════════
class CountedLabProfile(LabProfile):
    """Lab identity profile reporting its close() to the owning engine."""

    def __init__(self, owner, version=4.3):
        super().__init__(version)
        self.owner = owner

    def close(self):
        if not self.closed:
            self.owner.closed += 1
        super().close()


class TrackedTransform:
    """Proxy around a transform that reports its close() once."""

    def __init__(self, inner, owner):
        self.inner = inner
        self.owner = owner
        self.closed = False
        owner.created += 1

    def do_transform(self, samples):
        if self.closed:
            raise ValueError("Transform has been closed.")
        self.owner.samples.append(np.array(samples, dtype=np.float64))
        return self.inner.do_transform(samples)

    def close(self):
        if not self.closed:
            self.closed = True
            self.owner.closed += 1
        self.inner.close()


class CountingEngine(PipelineEngine):
    """PipelineEngine that counts every profile and transform it hands out."""

    def __init__(self):
        self.created = 0
        self.closed = 0
        self.samples = []

    @property
    def open_count(self):
        return self.created - self.closed

    def create_lab_profile(self, version=4.3):
        self.created += 1
        return CountedLabProfile(self, version)

    def create_transform(self, *args, **kwargs):
        return self._track(super().create_transform(*args, **kwargs))

    def create_extended_transform(self, *args, **kwargs):
        return self._track(super().create_extended_transform(*args, **kwargs))

    def _track(self, transform):
        if transform is None:
            return None
        return TrackedTransform(transform, self)


# ═══════════════════════════════════════════════════════════════════════════════
# Scripted engine
# ═══════════════════════════════════════════════════════════════════════════════
class ScriptedTransform:
    def __init__(self, fn, owner):
        self.fn = fn
        self.closed = False
        self.owner = owner
        owner.created += 1

    def do_transform(self, samples):
        arr = np.asarray(samples, dtype=np.float64)
        self.owner.samples.append(arr.copy())
        out = self.fn(np.atleast_2d(arr))
        return out[0] if arr.ndim == 1 else out

    def close(self):
        if not self.closed:
            self.closed = True
            self.owner.closed += 1


class ScriptedEngine:
    """
    TransformEngine with canned answers.

    ``darker_lab``: Lab returned by every single-stage transform (None makes
    creation fail).  ``roundtrip``: vectorised L* -> L* response of every
    extended transform, a*/b* pass through (None makes creation fail).
    """

    def __init__(self, darker_lab=None, roundtrip=None, fail_lab_profile=False):
        self.darker_lab = darker_lab
        self.roundtrip = roundtrip
        self.fail_lab_profile = fail_lab_profile
        self.created = 0
        self.closed = 0
        self.samples = []
        self.lab_versions = []
        self.transform_calls = []
        self.extended_calls = []

    @property
    def open_count(self):
        return self.created - self.closed

    def create_lab_profile(self, version=4.3):
        self.lab_versions.append(version)
        if self.fail_lab_profile:
            return None
        self.created += 1
        return CountedLabProfile(self, version)

    def create_transform(self, src, src_format, dst, dst_format, intent, flags=0):
        self.transform_calls.append(
            dict(src=src, src_format=src_format, dst=dst, dst_format=dst_format,
                 intent=intent, flags=flags)
        )
        if self.darker_lab is None:
            return None
        lab = np.asarray(self.darker_lab, dtype=np.float64)
        return ScriptedTransform(lambda s: np.tile(lab, (s.shape[0], 1)), self)

    def create_extended_transform(self, profiles, bpc, intents, input_format, output_format, flags=0):
        self.extended_calls.append(
            dict(profiles=list(profiles), bpc=list(bpc), intents=list(intents),
                 input_format=input_format, output_format=output_format, flags=flags)
        )
        if self.roundtrip is None:
            return None
        response = self.roundtrip

        def run(samples):
            out = samples.copy()
            out[:, 0] = response(samples[:, 0])
            return out

        return ScriptedTransform(run, self)


# ═══════════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════════
@pytest.fixture(autouse=True)
def default_configuration(monkeypatch):
    """Every test starts from the library defaults."""
    monkeypatch.setattr(umbra_blackpoint, "_USE_BLACK_POINT_TAG", False)
    monkeypatch.setattr(umbra_blackpoint, "_DEFAULT_ENGINE", None)
    monkeypatch.setattr(umbra_colorengine, "_STRICT_IEEE", False)


@pytest.fixture
def counting_engine():
    return CountingEngine()


def _passthrough(samples):
    return samples


@pytest.fixture
def clut_profile():
    """v2 RGB printer with tables for every intent; contents are never evaluated."""
    tables = {
        int(RenderingIntent.PERCEPTUAL): _passthrough,
        int(RenderingIntent.RELATIVE_COLORIMETRIC): _passthrough,
        int(RenderingIntent.SATURATION): _passthrough,
    }
    return SyntheticProfile(
        device_class=ProfileClass.OUTPUT,
        color_space=ColorSpaceSignature.RGB,
        version=2.1,
        a2b=dict(tables),
        b2a=dict(tables),
    )
