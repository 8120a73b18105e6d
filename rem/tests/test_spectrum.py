#!/usr/bin/env python3
"""
Unit tests for rem/spectrum.py and the dB helpers in rem/utils.py

Run with:
  pytest rem/tests/test_spectrum.py -v
"""

import math
import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from rem.errors import NumericDegenerateSample
from rem.spectrum import (
    SpectrumModel,
    convert_psd,
    create_noise_psd,
    create_tx_psd,
    integrated_power,
)
from rem.utils import (
    db_to_linear,
    dbm_to_watts,
    direction_angles,
    linear_to_db_strict,
)


class TestSpectrumModel:
    """Tests for the resource-block bin layout."""

    def test_rb_count_numerology_0(self):
        """20 MHz at 15 kHz SCS holds 111 RBs of 180 kHz."""
        model = SpectrumModel(2e9, 20e6, 0)
        assert model.subcarrier_spacing_hz == 15e3
        assert model.bin_width_hz == 180e3
        assert model.num_bins == 111

    def test_rb_count_numerology_1(self):
        model = SpectrumModel(3.5e9, 100e6, 1)
        assert model.bin_width_hz == 360e3
        assert model.num_bins == 277

    def test_bins_centred_on_carrier(self):
        model = SpectrumModel(2e9, 10e6, 0)
        assert np.mean(model.centers) == pytest.approx(2e9)
        assert np.diff(model.centers) == pytest.approx([180e3] * (model.num_bins - 1))

    def test_zero_bandwidth_is_empty(self):
        model = SpectrumModel(2e9, 0.0, 0)
        assert model.is_empty()
        assert model.centers.size == 0

    def test_invalid_numerology(self):
        with pytest.raises(ValueError):
            SpectrumModel(2e9, 10e6, 7)

    def test_overlap(self):
        a = SpectrumModel(2e9, 10e6, 0)
        b = SpectrumModel(2.005e9, 10e6, 0)
        c = SpectrumModel(2.1e9, 10e6, 0)
        assert a.overlaps(b)
        assert not a.overlaps(c)
        assert not a.overlaps(SpectrumModel(2e9, 0.0, 0))


class TestPsd:
    """Tests for transmit and noise PSDs."""

    def test_tx_psd_integrates_to_power(self):
        """The whole transmit power is spread over the bins."""
        model = SpectrumModel(2e9, 20e6, 0)
        psd = create_tx_psd(30.0, model)
        assert psd.shape == (model.num_bins,)
        assert integrated_power(psd, model) == pytest.approx(1.0)
        assert np.all(psd == psd[0])

    def test_tx_psd_empty_model(self):
        assert create_tx_psd(30.0, SpectrumModel(2e9, 0.0, 0)).size == 0

    def test_noise_psd_ktf(self):
        """Noise PSD is k*T*NF with T = 290 K."""
        model = SpectrumModel(2e9, 10e6, 0)
        psd = create_noise_psd(0.0, model)
        assert psd[0] == pytest.approx(1.380649e-23 * 290.0)
        psd9 = create_noise_psd(9.0, model)
        assert psd9[0] / psd[0] == pytest.approx(10 ** 0.9)

    def test_noise_power_dbm(self):
        """-174 dBm/Hz thermal floor over one RB."""
        model = SpectrumModel(2e9, 180e3, 0)
        p_w = integrated_power(create_noise_psd(0.0, model), model)
        assert 10 * math.log10(p_w) + 30 == pytest.approx(-174.0 + 10 * math.log10(180e3), abs=0.05)


class TestConvertPsd:
    """Tests for moving a PSD between spectrum models."""

    def test_identity(self):
        model = SpectrumModel(2e9, 10e6, 0)
        psd = create_tx_psd(20.0, model)
        out = convert_psd(psd, model, model)
        assert out == pytest.approx(psd)
        out[0] = 0.0
        assert psd[0] != 0.0

    def test_non_overlapping_is_zero(self):
        src = SpectrumModel(2e9, 10e6, 0)
        dst = SpectrumModel(2.1e9, 10e6, 0)
        out = convert_psd(create_tx_psd(20.0, src), src, dst)
        assert out.shape == (dst.num_bins,)
        assert np.all(out == 0.0)

    def test_half_shift_preserves_overlapping_power(self):
        """Shifting by half a bin gives half weight at the edges."""
        src = SpectrumModel(2e9, 180e3 * 4, 0)
        dst = SpectrumModel(2e9 + 90e3, 180e3 * 4, 0)
        psd = np.ones(4)
        out = convert_psd(psd, src, dst)
        assert out == pytest.approx([1.0, 1.0, 1.0, 0.5])

    def test_wider_numerology(self):
        """Flat PSD stays flat when moving onto wider bins covering the same band."""
        src = SpectrumModel(2e9, 180e3 * 4, 0)
        dst = SpectrumModel(2e9, 360e3 * 2, 1)
        out = convert_psd(np.full(4, 2.0), src, dst)
        assert out == pytest.approx([2.0, 2.0])


class TestDbHelpers:
    """Tests for dB conversion and geometry helpers."""

    def test_db_to_linear(self):
        assert db_to_linear(20.0) == pytest.approx(100.0)
        assert db_to_linear([0.0, -10.0]) == pytest.approx([1.0, 0.1])
        assert dbm_to_watts(30.0) == pytest.approx(1.0)

    def test_strict_conversion_raises(self):
        with pytest.raises(NumericDegenerateSample):
            linear_to_db_strict(0.0)
        with pytest.raises(NumericDegenerateSample):
            linear_to_db_strict(float("nan"))
        assert linear_to_db_strict(10.0) == pytest.approx(10.0)

    def test_direction_angles(self):
        az, zen = direction_angles((0, 0, 0), (0, 1, 0))
        assert az == pytest.approx(math.pi / 2)
        assert zen == pytest.approx(math.pi / 2)
        _, zen_down = direction_angles((0, 0, 10), (0, 0, 0))
        assert zen_down == pytest.approx(math.pi)
