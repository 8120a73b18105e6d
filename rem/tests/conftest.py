"""
Shared fixtures for the rem tests.
"""

import sys
from pathlib import Path

import pytest

# Repository root on the path so that `rem` imports as a package
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from rem.antenna import AntennaArray
from rem.devices import BandwidthPart, NetworkDevice, SpectrumChannel
from rem.propagation import create_model
from rem.tests.stubs import BeamRecorder

FREQ_HZ = 2e9
BW_HZ = 10e6


@pytest.fixture(autouse=True)
def reset_beam_records():
    """Every test starts with an empty BeamRecorder log."""
    BeamRecorder.records.clear()
    yield
    BeamRecorder.records.clear()


@pytest.fixture
def bwp():
    """10 MHz at 2 GHz, numerology 0 (55 RBs)."""
    return BandwidthPart(bandwidth_hz=BW_HZ, frequency_hz=FREQ_HZ, numerology=0)


@pytest.fixture
def free_space_channel():
    return SpectrumChannel(
        propagation_loss=create_model("propagation", "free_space", frequency_hz=FREQ_HZ),
        spectrum_loss=create_model("spectrum", "flat"),
        condition=create_model("condition", "always_los"),
    )


@pytest.fixture
def make_device(bwp, free_space_channel):
    """Factory for isotropic network devices sharing one channel."""
    def _make(name="gnb", position=(0.0, 0.0, 10.0), tx_power_dbm=30.0,
              bandwidth_parts=None, channel=None, antenna=None, noise_figure_db=5.0):
        return NetworkDevice(
            name=name,
            position=position,
            antenna=antenna if antenna is not None else AntennaArray(),
            bandwidth_parts=[bwp] if bandwidth_parts is None else bandwidth_parts,
            tx_power_dbm=tx_power_dbm,
            noise_figure_db=noise_figure_db,
            channel=free_space_channel if channel is None else channel,
        )
    return _make


@pytest.fixture
def receiver(make_device):
    return make_device(name="ue", position=(0.0, 0.0, 1.5), tx_power_dbm=0.0, noise_figure_db=9.0)
