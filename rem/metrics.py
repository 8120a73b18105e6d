"""
SNR/SINR computation and averaging for a single rem point.

For every iteration the received PSD of each transmitter is computed with
fresh channel models and mapped onto the receiver bins. The transmitter with
the largest integrated received power is the serving one, all others
interfere. Wideband values are reduced per iteration, averaged in the
linear domain, and converted to dB once at the end.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np

from rem.config import WidebandPolicy
from rem.errors import NumericDegenerateSample
from rem.spectrum import convert_psd, integrated_power
from rem.utils import DEGENERATE_SAMPLE_DB, db_to_linear, linear_to_db_strict

logger = logging.getLogger(__name__)


def reduce_wideband(values: np.ndarray, policy: WidebandPolicy) -> float:
    """Reduce per-bin linear ratios to one wideband linear value."""
    if values.size == 0:
        return 0.0
    if policy == WidebandPolicy.MAX:
        return float(np.max(values))
    if policy == WidebandPolicy.MEAN:
        return float(np.mean(values))
    if policy == WidebandPolicy.CAPACITY:
        return float(2.0 ** np.mean(np.log2(1.0 + values)) - 1.0)
    raise ValueError(f"Unknown wideband policy: {policy}")


class SignalMetricCalculator:
    """Computes the averaged SNR and SINR of rem points."""

    def __init__(self, realizer, beamforming, iterations: int = 1,
                 policy: WidebandPolicy = WidebandPolicy.MAX):
        self.realizer = realizer
        self.beamforming = beamforming
        self.iterations = iterations
        self.policy = policy
        self.degenerate_points = 0

    def received_psd(self, ptd, prd) -> np.ndarray:
        """PSD of one transmitter at the receiver, on the receiver bins (W/Hz)."""
        if ptd.spectrum.is_empty() or not ptd.spectrum.overlaps(prd.spectrum):
            return np.zeros(prd.spectrum.num_bins)
        self.beamforming.aim_receiver_at(prd, ptd)
        models = self.realizer.realize(ptd, prd)
        los = models.condition.is_los(ptd, prd)
        loss_db = models.propagation.loss_db(ptd, prd, los)
        psd = ptd.tx_psd() * db_to_linear(-loss_db)
        psd = models.spectrum.received_psd(psd, ptd, prd, los)
        return convert_psd(psd, ptd.spectrum, prd.spectrum)

    def compute_iteration(self, ptds: Sequence, prd) -> Tuple[float, float]:
        """Wideband linear (SNR, SINR) of one channel realization."""
        noise = prd.noise_psd()
        rx_psds: List[np.ndarray] = [self.received_psd(ptd, prd) for ptd in ptds]
        powers = [integrated_power(psd, prd.spectrum) for psd in rx_psds]

        best = int(np.argmax(powers))
        useful = rx_psds[best]
        interference = np.zeros_like(noise)
        for i, psd in enumerate(rx_psds):
            if i != best:
                interference += psd

        snr = reduce_wideband(useful / noise, self.policy)
        sinr = reduce_wideband(useful / (noise + interference), self.policy)
        return snr, sinr

    def compute_point(self, point, ptds: Sequence, prd) -> Tuple[float, float]:
        """
        Average the configured number of iterations and store the result.

        Returns:
            (avg_snr_db, avg_sinr_db) as stored on the point
        """
        prd.move_to(point.position)
        # Running means: identical samples average to themselves exactly
        snr_mean = 0.0
        sinr_mean = 0.0
        with self.beamforming.session(ptds, prd, point):
            for k in range(1, self.iterations + 1):
                snr, sinr = self.compute_iteration(ptds, prd)
                snr_mean += (snr - snr_mean) / k
                sinr_mean += (sinr - sinr_mean) / k

        try:
            snr_db = linear_to_db_strict(snr_mean)
            sinr_db = linear_to_db_strict(sinr_mean)
        except NumericDegenerateSample as e:
            logger.debug(f"Degenerate sample at {point.position}: {e}")
            self.degenerate_points += 1
            snr_db = sinr_db = DEGENERATE_SAMPLE_DB

        point.store_result(snr_db, sinr_db)
        return snr_db, sinr_db
