# -*- coding: utf-8 -*-
"""
Umbra: Black-point estimation for ICC colour profiles
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Tests for tone curves and the synthetic device profiles.
"""

import numpy as np
import pytest

from umbra_colorengine import REF_WHITE_D50, ColorSpaceEngine
from umbra_profile import (
    ColorSpaceSignature,
    Direction,
    ProfileClass,
    ProfileReader,
    RenderingIntent,
    StageProvider,
    TagSignature,
)
from device_models.tone import ToneCurve
from device_models.profiles import (
    cmyk_output_profile,
    device_link_profile,
    gray_profile,
    matrix_shaper_rgb_profile,
)

REL = RenderingIntent.RELATIVE_COLORIMETRIC
PERC = RenderingIntent.PERCEPTUAL


def _lab_of_y(y):
    return ColorSpaceEngine.xyz_to_lab(y * REF_WHITE_D50)[0]


class TestToneCurve:
    @pytest.mark.parametrize("kind", ["linear", "cubicspline", "pchip", "akima", "makima"])
    def test_passes_through_nodes(self, kind):
        x = np.linspace(0.0, 1.0, 5)
        curve = ToneCurve(x, x ** 2, interpolation=kind)
        np.testing.assert_allclose(curve(x), x ** 2, atol=1e-12)

    def test_gamma(self):
        curve = ToneCurve.from_gamma(2.2)
        assert curve(0.0) == 0.0
        assert curve(1.0) == pytest.approx(1.0)
        assert curve(0.5) == pytest.approx(0.5 ** 2.2, rel=1e-3)

    def test_inverse(self):
        curve = ToneCurve.from_gamma(2.2)
        x = np.array([0.2, 0.5, 0.9])
        np.testing.assert_allclose(curve.inverse(curve(x)), x, atol=1e-3)

    def test_inverse_of_flat_toe_is_its_start(self):
        curve = ToneCurve([0.0, 0.2, 1.0], [0.0, 0.0, 1.0])
        assert curve.inverse(0.0) == 0.0
        assert curve.inverse(0.5) == pytest.approx(0.6, abs=1e-3)

    def test_input_is_clipped(self):
        curve = ToneCurve.identity()
        np.testing.assert_allclose(curve(np.array([-0.5, 1.5])), [0.0, 1.0])

    def test_non_monotonic_inverse_warns(self):
        curve = ToneCurve([0.0, 0.5, 1.0], [0.0, 0.6, 0.4])
        assert not curve.is_monotonic()
        with pytest.warns(UserWarning):
            curve.inverse(0.3)

    @pytest.mark.parametrize("x, y, kind", [
        ([0.0, 1.0], [0.0, 1.0], "quadratic"),
        ([0.0, 0.0, 1.0], [0.0, 0.5, 1.0], "linear"),
        ([0.0, 1.0], [0.0, 0.5, 1.0], "linear"),
        ([0.5], [0.5], "linear"),
    ])
    def test_invalid_tables(self, x, y, kind):
        with pytest.raises(ValueError):
            ToneCurve(x, y, interpolation=kind)

    def test_invalid_gamma(self):
        with pytest.raises(ValueError):
            ToneCurve.from_gamma(0.0)


class TestSyntheticProfiles:
    def test_protocols(self):
        profile = gray_profile()
        assert isinstance(profile, ProfileReader)
        assert isinstance(profile, StageProvider)

    def test_gray_tables(self):
        profile = gray_profile(black_y=0.01)
        rel = profile.pipeline(REL, Direction.INPUT)
        perc = profile.pipeline(PERC, Direction.INPUT)
        dark = np.zeros((1, 1))
        assert rel(dark)[0, 0] == pytest.approx(_lab_of_y(0.01), abs=1e-9)
        assert perc(dark)[0, 0] == pytest.approx(0.0, abs=1e-9)
        assert rel(np.ones((1, 1)))[0, 0] == pytest.approx(100.0, abs=1e-6)

    def test_gray_output_inverts_input(self):
        profile = gray_profile(black_y=0.01)
        g = np.array([[0.25], [0.5], [0.75]])
        lab = profile.pipeline(REL, Direction.INPUT)(g)
        back = profile.pipeline(REL, Direction.OUTPUT)(lab)
        np.testing.assert_allclose(back, g, atol=1e-3)

    def test_intent_support(self):
        profile = gray_profile(intents=(REL,))
        assert profile.is_intent_supported(REL, Direction.INPUT)
        assert profile.is_intent_supported(RenderingIntent.ABSOLUTE_COLORIMETRIC, Direction.OUTPUT)
        assert not profile.is_intent_supported(PERC, Direction.INPUT)
        assert profile.is_clut(REL, Direction.PROOF)

    def test_matrix_shaper(self):
        profile = matrix_shaper_rgb_profile()
        assert profile.is_matrix_shaper()
        assert not profile.is_clut(PERC, Direction.OUTPUT)
        assert profile.is_intent_supported(RenderingIntent.SATURATION, Direction.INPUT)
        white = profile.pipeline(REL, Direction.INPUT)(np.ones((1, 3)))[0]
        np.testing.assert_allclose(white, [100.0, 0.0, 0.0], atol=1e-3)
        black = profile.pipeline(REL, Direction.INPUT)(np.zeros((1, 3)))[0]
        np.testing.assert_allclose(black, np.zeros(3), atol=1e-9)

    def test_cmyk_relative_output_respects_ink_limit(self):
        profile = cmyk_output_profile(ink_limit=3.0)
        lab = np.array([[0.0, 0.0, 0.0], [10.0, 0.0, 0.0], [20.0, 5.0, -5.0]])
        cmyk = profile.pipeline(REL, Direction.OUTPUT)(lab)
        assert cmyk.shape == (3, 4)
        assert np.all(cmyk.sum(axis=1) <= 3.0 + 1e-9)

    def test_cmyk_perceptual_black_is_pure_k(self):
        profile = cmyk_output_profile()
        cmyk = profile.pipeline(PERC, Direction.OUTPUT)(np.zeros((1, 3)))
        np.testing.assert_allclose(cmyk, [[0.0, 0.0, 0.0, 1.0]], atol=1e-12)

    def test_cmyk_full_ink_reaches_device_black(self):
        profile = cmyk_output_profile(black_y=0.02)
        lab = profile.pipeline(REL, Direction.INPUT)(np.ones((1, 4)))[0]
        assert lab[0] == pytest.approx(_lab_of_y(0.02), abs=1e-3)
        np.testing.assert_allclose(lab[1:], 0.0, atol=1e-2)

    def test_tags(self):
        profile = gray_profile(media_black=[0.01, 0.01, 0.01])
        assert profile.has_tag(TagSignature.MEDIA_WHITE_POINT)
        assert profile.has_tag(TagSignature.MEDIA_BLACK_POINT)
        np.testing.assert_allclose(profile.read_tag(TagSignature.MEDIA_WHITE_POINT), REF_WHITE_D50)
        assert not gray_profile().has_tag(TagSignature.MEDIA_BLACK_POINT)

    def test_device_link(self):
        link = device_link_profile()
        assert link.device_class == ProfileClass.LINK
        assert link.pcs == ColorSpaceSignature.CMYK
        cmyk = link.pipeline(REL, Direction.INPUT)(np.zeros((1, 3)))
        np.testing.assert_allclose(cmyk, [[0.0, 0.0, 0.0, 1.0]])

    @pytest.mark.parametrize("factory", [gray_profile, matrix_shaper_rgb_profile, cmyk_output_profile])
    def test_invalid_black(self, factory):
        with pytest.raises(ValueError):
            factory(black_y=1.0)
