"""
Beam configuration of the probe devices for each rem point.

BeamShape keeps the transmitter beams the scenario configured and uses a
quasi-omni receiver. CoverageArea aims every transmitter at the rem point
and the receiver at the transmitter under computation.

Transmitter antennas are shared by all points, so every change made for a
point is undone when its session closes.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Sequence

from rem.config import RemMode

logger = logging.getLogger(__name__)


class BeamformingConfigurator:
    """Aims probe antennas according to the map mode."""

    def __init__(self, mode: RemMode):
        self.mode = mode

    def prepare_receiver(self, prd) -> None:
        """Initial receiver beam for the whole build."""
        if self.mode == RemMode.BEAM_SHAPE:
            prd.antenna.set_quasi_omni()
            logger.debug(f"Receiver {prd.name} set to quasi-omni")

    def configure_for_point(self, ptds: Sequence, prd, point) -> None:
        """Aim every transmitter at the point (CoverageArea only)."""
        if self.mode != RemMode.COVERAGE_AREA:
            return
        for ptd in ptds:
            ptd.antenna.point_towards(ptd.position, point.position)

    def aim_receiver_at(self, prd, ptd) -> None:
        """Aim the receiver at the transmitter being computed (CoverageArea only)."""
        if self.mode == RemMode.COVERAGE_AREA:
            prd.antenna.point_towards(prd.position, ptd.position)

    @contextmanager
    def session(self, ptds: Sequence, prd, point) -> Iterator[None]:
        """
        Configure beams for one point and restore them on exit.

        Usage:
            with beamforming.session(ptds, prd, point):
                ...compute the point...
        """
        saved_tx = [ptd.antenna.beam for ptd in ptds]
        saved_rx = prd.antenna.beam
        try:
            self.configure_for_point(ptds, prd, point)
            yield
        finally:
            for ptd, beam in zip(ptds, saved_tx):
                ptd.antenna.beam = beam
            prd.antenna.beam = saved_rx
