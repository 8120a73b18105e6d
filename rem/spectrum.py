"""
Spectrum description and power spectral density helpers.

A SpectrumModel splits a bandwidth part into resource-block bins:

    subcarrier spacing  scs = 15 kHz * 2^numerology
    bin width           12 * scs
    number of bins      floor(bandwidth / bin width)

Bins are centred on the carrier frequency. PSDs are numpy arrays in W/Hz,
one value per bin. A PSD defined on one model is moved onto another by bin
overlap, so bands that do not overlap convert to all zeros.
"""

import math
from dataclasses import dataclass
from functools import cached_property

import numpy as np
from scipy import constants

from rem.utils import db_to_linear, dbm_to_watts

SUBCARRIERS_PER_RB = 12
BASE_SUBCARRIER_SPACING_HZ = 15e3
MAX_NUMEROLOGY = 6
NOISE_TEMPERATURE_K = 290.0


@dataclass(frozen=True)
class SpectrumModel:
    """Resource-block bins of one bandwidth part."""
    center_frequency_hz: float
    bandwidth_hz: float
    numerology: int = 0

    def __post_init__(self):
        if not 0 <= self.numerology <= MAX_NUMEROLOGY:
            raise ValueError(f"Numerology must be 0-{MAX_NUMEROLOGY}, got {self.numerology}")
        if self.bandwidth_hz < 0:
            raise ValueError(f"Bandwidth must be non-negative, got {self.bandwidth_hz}")
        if self.center_frequency_hz <= 0:
            raise ValueError(f"Carrier frequency must be positive, got {self.center_frequency_hz}")

    @property
    def subcarrier_spacing_hz(self) -> float:
        return BASE_SUBCARRIER_SPACING_HZ * (2 ** self.numerology)

    @property
    def bin_width_hz(self) -> float:
        return SUBCARRIERS_PER_RB * self.subcarrier_spacing_hz

    @property
    def num_bins(self) -> int:
        return int(math.floor(self.bandwidth_hz / self.bin_width_hz + 1e-9))

    @cached_property
    def centers(self) -> np.ndarray:
        n = self.num_bins
        start = self.center_frequency_hz - n * self.bin_width_hz / 2.0
        return start + (np.arange(n) + 0.5) * self.bin_width_hz

    @property
    def lower_edges(self) -> np.ndarray:
        return self.centers - self.bin_width_hz / 2.0

    @property
    def upper_edges(self) -> np.ndarray:
        return self.centers + self.bin_width_hz / 2.0

    def is_empty(self) -> bool:
        return self.num_bins == 0

    def overlaps(self, other: "SpectrumModel") -> bool:
        """True if any bin of this model shares spectrum with a bin of other."""
        if self.is_empty() or other.is_empty():
            return False
        return bool(np.any(_overlap_matrix(self, other) > 0.0))


def _overlap_matrix(src: SpectrumModel, dst: SpectrumModel) -> np.ndarray:
    """Overlap width in Hz between every src bin (rows) and dst bin (columns)."""
    lo = np.maximum(src.lower_edges[:, None], dst.lower_edges[None, :])
    hi = np.minimum(src.upper_edges[:, None], dst.upper_edges[None, :])
    return np.clip(hi - lo, 0.0, None)


def create_tx_psd(tx_power_dbm: float, model: SpectrumModel) -> np.ndarray:
    """Spread the transmit power uniformly over all bins (W/Hz)."""
    if model.is_empty():
        return np.zeros(0)
    total_w = dbm_to_watts(tx_power_dbm)
    return np.full(model.num_bins, total_w / (model.num_bins * model.bin_width_hz))


def create_noise_psd(noise_figure_db: float, model: SpectrumModel) -> np.ndarray:
    """Thermal noise PSD k*T*NF per bin (W/Hz)."""
    kt = constants.Boltzmann * NOISE_TEMPERATURE_K
    return np.full(model.num_bins, kt * db_to_linear(noise_figure_db))


def convert_psd(psd: np.ndarray, src: SpectrumModel, dst: SpectrumModel) -> np.ndarray:
    """
    Move a PSD from the src bins onto the dst bins.

    Each dst bin receives the power falling into it, divided by its width.
    """
    if src == dst:
        return np.array(psd, dtype=float, copy=True)
    if src.is_empty() or dst.is_empty():
        return np.zeros(dst.num_bins)
    weights = _overlap_matrix(src, dst) / dst.bin_width_hz
    return np.asarray(psd, dtype=float) @ weights


def integrated_power(psd: np.ndarray, model: SpectrumModel) -> float:
    """Total power in Watts of a PSD defined on model."""
    if model.is_empty():
        return 0.0
    return float(np.sum(psd) * model.bin_width_hz)
