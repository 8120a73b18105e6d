"""
Real network description and the probe device registry.

The registry copies the PHY configuration of the real transmitters and of
one real receiver into probe devices at the start of a map build. Positions
are copied as tuples and antennas deep-copied, so nothing done to a probe
device can reach the real network.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from rem.antenna import AntennaArray
from rem.channel import ChannelModelFactory
from rem.errors import ConfigurationError
from rem.spectrum import SpectrumModel, create_noise_psd, create_tx_psd
from rem.utils import Position, as_position

logger = logging.getLogger(__name__)


# ============================================================================
# REAL NETWORK
# ============================================================================


@dataclass(frozen=True)
class BandwidthPart:
    """Carrier frequency, bandwidth and numerology of one bandwidth part."""
    bandwidth_hz: float
    frequency_hz: float
    numerology: int = 0

    def __post_init__(self):
        if self.bandwidth_hz < 0:
            raise ConfigurationError(f"Bandwidth must be non-negative, got {self.bandwidth_hz}")
        if self.frequency_hz <= 0:
            raise ConfigurationError(f"Carrier frequency must be positive, got {self.frequency_hz}")
        if not 0 <= self.numerology <= 6:
            raise ConfigurationError(f"Numerology must be 0-6, got {self.numerology}")

    def spectrum_model(self) -> SpectrumModel:
        return SpectrumModel(self.frequency_hz, self.bandwidth_hz, self.numerology)


@dataclass
class SpectrumChannel:
    """Live model instances of the real simulation."""
    propagation_loss: object
    spectrum_loss: object
    condition: object


@dataclass
class NetworkDevice:
    """A transmitter (gNB sector) or receiver (UE) of the real network."""
    name: str
    position: Position
    antenna: AntennaArray
    bandwidth_parts: List[BandwidthPart] = field(default_factory=list)
    tx_power_dbm: float = 0.0
    noise_figure_db: float = 5.0
    channel: Optional[SpectrumChannel] = None


@dataclass(frozen=True)
class Building:
    """Rectangular obstacle."""
    x_min: float
    x_max: float
    y_min: float
    y_max: float
    height: float

    def __post_init__(self):
        if self.x_max <= self.x_min or self.y_max <= self.y_min:
            raise ConfigurationError(f"Building footprint is empty: {self}")
        if self.height <= 0:
            raise ConfigurationError(f"Building height must be positive, got {self.height}")

    def corners(self) -> Tuple[float, float, float, float]:
        return self.x_min, self.y_min, self.x_max, self.y_max


# ============================================================================
# PROBE DEVICES
# ============================================================================


@dataclass
class ProbeDevice:
    """
    Synthetic device used only for map computation.

    Transmitting probes carry tx_power_dbm; the receiving probe leaves it
    None and carries the noise figure instead.
    """
    name: str
    position: Position
    antenna: AntennaArray
    spectrum: SpectrumModel
    tx_power_dbm: Optional[float] = None
    noise_figure_db: Optional[float] = None

    @property
    def bandwidth_hz(self) -> float:
        return self.spectrum.bandwidth_hz

    @property
    def frequency_hz(self) -> float:
        return self.spectrum.center_frequency_hz

    @property
    def numerology(self) -> int:
        return self.spectrum.numerology

    def move_to(self, position: Sequence[float]) -> None:
        self.position = as_position(position)

    def tx_psd(self) -> np.ndarray:
        if self.tx_power_dbm is None:
            raise RuntimeError(f"{self.name} is not a transmitting probe")
        return create_tx_psd(self.tx_power_dbm, self.spectrum)

    def noise_psd(self) -> np.ndarray:
        if self.noise_figure_db is None:
            raise RuntimeError(f"{self.name} is not a receiving probe")
        return create_noise_psd(self.noise_figure_db, self.spectrum)


def _bandwidth_part(device: NetworkDevice, bwp_index: int) -> BandwidthPart:
    if not 0 <= bwp_index < len(device.bandwidth_parts):
        raise ConfigurationError(
            f"{device.name} has {len(device.bandwidth_parts)} bandwidth part(s), "
            f"index {bwp_index} is out of range"
        )
    return device.bandwidth_parts[bwp_index]


def _antenna_copy(device: NetworkDevice) -> AntennaArray:
    if not isinstance(device.antenna, AntennaArray):
        raise ConfigurationError(
            f"{device.name} has an unsupported antenna ({type(device.antenna).__name__})"
        )
    return device.antenna.copy()


class DeviceRegistry:
    """Probe transmitters, the probe receiver and the channel model factory."""

    def __init__(self, transmitters: List[ProbeDevice], receiver: ProbeDevice,
                 factory: ChannelModelFactory):
        self.transmitters = transmitters
        self.receiver = receiver
        self.factory = factory

    @classmethod
    def build(
        cls,
        transmitters: Sequence[NetworkDevice],
        receiver: NetworkDevice,
        bwp_index: int = 0,
        noise_figure_db: Optional[float] = None,
    ) -> "DeviceRegistry":
        """
        Snapshot the real devices.

        Args:
            transmitters: real transmitters to map
            receiver: real receiver whose PHY configuration the probe copies
            bwp_index: bandwidth part used on every device
            noise_figure_db: overrides the receiver noise figure

        Raises:
            ConfigurationError: empty transmitter list, missing bandwidth
                part, unsupported antenna or unusable receiver band
            ModelUnavailableError: a channel model cannot be copied
        """
        if not transmitters:
            raise ConfigurationError("At least one transmitter is required")
        if not receiver.bandwidth_parts:
            raise ConfigurationError(f"Receiver {receiver.name} exposes no bandwidth parts")

        rx_bwp = _bandwidth_part(receiver, bwp_index)
        rx_spectrum = rx_bwp.spectrum_model()
        if rx_spectrum.is_empty():
            raise ConfigurationError(
                f"Receiver {receiver.name} bandwidth {rx_bwp.bandwidth_hz} Hz holds no "
                f"resource block at numerology {rx_bwp.numerology}"
            )
        prd = ProbeDevice(
            name="rem-receiver",
            position=as_position(receiver.position),
            antenna=_antenna_copy(receiver),
            spectrum=rx_spectrum,
            noise_figure_db=receiver.noise_figure_db if noise_figure_db is None else noise_figure_db,
        )

        ptds = []
        for device in transmitters:
            bwp = _bandwidth_part(device, bwp_index)
            ptds.append(ProbeDevice(
                name=device.name,
                position=as_position(device.position),
                antenna=_antenna_copy(device),
                spectrum=bwp.spectrum_model(),
                tx_power_dbm=device.tx_power_dbm,
            ))
            if not ptds[-1].spectrum.overlaps(rx_spectrum):
                logger.debug(f"{device.name} does not overlap the receiver band")

        channel = next((d.channel for d in transmitters if d.channel is not None), receiver.channel)
        if channel is None:
            raise ConfigurationError("No spectrum channel attached to the transmitters or receiver")
        factory = ChannelModelFactory.from_spectrum_channel(channel)

        logger.info(f"Probe registry: {len(ptds)} transmitter(s), receiver band "
                    f"{rx_spectrum.center_frequency_hz / 1e6:.1f} MHz / "
                    f"{rx_spectrum.num_bins} RBs, NF {prd.noise_figure_db:.1f} dB")
        return cls(ptds, prd, factory)
