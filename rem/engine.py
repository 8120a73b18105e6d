"""
Radio environment map orchestrator.

PURPOSE:
Builds a complete map in one deferred step. The engine is installed into a
running network, waits for the configured settle delay, snapshots the real
devices and then computes every rem point in order before writing the map.

STATES:
    CONFIGURED -> AWAITING_SETTLE_DELAY -> BUILDING -> FINALIZED

USAGE:
    engine = RemEngine(RemConfig(mode=RemMode.COVERAGE_AREA, sim_tag="uma"))
    host = SimpyHost()
    engine.install(gnbs, ue, bwp_index=0, schedule=host.schedule)
    host.run()

    # without a scheduler the caller triggers the build itself
    engine.install(gnbs, ue)
    engine.tick()
"""

import logging
import time
from enum import Enum, auto
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from rem.beamforming import BeamformingConfigurator
from rem.channel import ChannelRealizer
from rem.config import RemConfig
from rem.devices import DeviceRegistry
from rem.errors import ConfigurationError
from rem.grid import SamplePoint, axis_values, build_points
from rem.metrics import SignalMetricCalculator
from rem.writer import MapWriter

logger = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], Any]], Any]


class RemState(Enum):
    CONFIGURED = auto()
    AWAITING_SETTLE_DELAY = auto()
    BUILDING = auto()
    FINALIZED = auto()


class RemEngine:
    """
    One-shot map builder.

    Args:
        config: map configuration
        buildings: obstacles listed in the output (and plotted)
        receivers: real receivers listed in the output; defaults to the
            receiver passed to install()
        writer: output writer; defaults to a MapWriter on config.output_dir
    """

    def __init__(
        self,
        config: RemConfig,
        buildings: Sequence = (),
        receivers: Optional[Sequence] = None,
        writer: Optional[MapWriter] = None,
    ):
        self.config = config
        self.buildings = list(buildings)
        self.receivers = list(receivers) if receivers is not None else None
        self.writer = writer if writer is not None else MapWriter(config)
        self.state = RemState.CONFIGURED

        self.points: List[SamplePoint] = []
        self.output_files: List[Path] = []
        self.degenerate_points = 0
        self.build_duration_s = 0.0

        self._transmitters: Sequence = ()
        self._receiver = None
        self._bwp_index = config.bwp_index
        self.registry: Optional[DeviceRegistry] = None
        self.realizer: Optional[ChannelRealizer] = None

    def _transition(self, expected: RemState, new: RemState) -> None:
        if self.state != expected:
            raise RuntimeError(f"Cannot enter {new.name} from {self.state.name}")
        logger.info(f"REM state: {self.state.name} -> {new.name}")
        self.state = new

    def install(
        self,
        transmitters: Sequence,
        receiver,
        bwp_index: Optional[int] = None,
        schedule: Optional[Scheduler] = None,
    ) -> None:
        """
        Attach to the real network and arm the deferred build.

        schedule(delay_s, callback) is called once with the settle delay and
        tick(). Without a scheduler the caller must call tick() itself.

        Raises:
            ConfigurationError: invalid grid, empty transmitter list or bwp index
            RuntimeError: engine already installed
        """
        if self.state != RemState.CONFIGURED:
            raise RuntimeError(f"Cannot install from {self.state.name}")
        c = self.config
        axis_values(c.x_min, c.x_max, c.x_res)
        axis_values(c.y_min, c.y_max, c.y_res)
        if not transmitters:
            raise ConfigurationError("At least one transmitter is required")
        if receiver is None:
            raise ConfigurationError("A receiver is required")
        bwp_index = c.bwp_index if bwp_index is None else bwp_index
        if bwp_index < 0:
            raise ConfigurationError(f"bwp_index must be non-negative, got {bwp_index}")

        self._transmitters = list(transmitters)
        self._receiver = receiver
        self._bwp_index = bwp_index
        self._transition(RemState.CONFIGURED, RemState.AWAITING_SETTLE_DELAY)
        logger.info(f"REM '{c.sim_tag}': {c.mode.value} map, {c.x_res}x{c.y_res} points, "
                    f"{len(self._transmitters)} transmitter(s), "
                    f"settle delay {c.installation_delay_s}s")
        if schedule is not None:
            schedule(c.installation_delay_s, self.tick)

    def tick(self) -> List[Path]:
        """
        Build the whole map. Runs once, after the settle delay.

        Returns:
            Paths of the written files
        """
        self._transition(RemState.AWAITING_SETTLE_DELAY, RemState.BUILDING)
        start = time.time()
        c = self.config

        try:
            self.registry = DeviceRegistry.build(
                self._transmitters, self._receiver, self._bwp_index, c.noise_figure_db
            )
        except Exception as e:
            logger.error(f"REM aborted while snapshotting devices: {e}")
            raise
        self.realizer = ChannelRealizer(self.registry.factory, seed=c.seed)
        beamforming = BeamformingConfigurator(c.mode)
        calculator = SignalMetricCalculator(
            self.realizer, beamforming, iterations=c.iterations, policy=c.wideband_policy
        )
        ptds = self.registry.transmitters
        prd = self.registry.receiver
        beamforming.prepare_receiver(prd)

        self.points = build_points(c)
        total = len(self.points)
        for i, point in enumerate(self.points, start=1):
            calculator.compute_point(point, ptds, prd)
            if i % c.progress_every == 0 or i == total:
                logger.info(f"REM progress: {i}/{total} points ({100.0 * i / total:.1f}%)")
        self.degenerate_points = calculator.degenerate_points
        if self.degenerate_points:
            logger.warning(f"{self.degenerate_points} point(s) received no power")

        receivers = self.receivers if self.receivers is not None else [self._receiver]
        self.output_files = self.writer.write(
            self.points, self._transmitters, receivers, self.buildings
        )

        self.build_duration_s = time.time() - start
        self.registry = None
        self.realizer = None
        self._transition(RemState.BUILDING, RemState.FINALIZED)
        logger.info(f"REM '{c.sim_tag}' finished in {self.build_duration_s:.2f}s")
        return self.output_files

    @property
    def finalized(self) -> bool:
        return self.state == RemState.FINALIZED
