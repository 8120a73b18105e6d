"""
Stub channel models for engine tests.

The stubs are regular ChannelModel subclasses, so they go through the same
snapshot/copy path as the real providers.
"""

from typing import Dict, List, Optional

import numpy as np

from rem.propagation import ConditionModel, FlatSpectrumLoss, PropagationLossModel


class SingleUseCondition(ConditionModel):
    """Always LOS; fails if one instance is asked twice."""
    name = "single_use"

    def __init__(self, rng: Optional[np.random.Generator] = None):
        super().__init__(rng)
        self.calls = 0

    def is_los(self, tx, rx) -> bool:
        self.calls += 1
        if self.calls > 1:
            raise AssertionError("condition model reused across samples")
        return super().is_los(tx, rx)

    def _decide(self, tx, rx) -> bool:
        return True


class FixedLoss(PropagationLossModel):
    """Loss looked up by transmitter name, independent of distance."""
    name = "fixed"
    ATTRIBUTES = ("frequency_hz", "losses_db", "default_db")

    def __init__(self, frequency_hz: float = 2e9, losses_db: Optional[Dict[str, float]] = None,
                 default_db: float = 100.0, rng: Optional[np.random.Generator] = None):
        super().__init__(frequency_hz, rng)
        self.losses_db = dict(losses_db or {})
        self.default_db = default_db

    def loss_db(self, tx, rx, los: bool = True) -> float:
        return self.losses_db.get(tx.name, self.default_db)


class BeamRecorder(FlatSpectrumLoss):
    """Flat spectrum loss that records the beams in use at every call."""
    name = "beam_recorder"
    records: List[dict] = []

    def received_psd(self, psd, tx, rx, los=True):
        BeamRecorder.records.append({
            "tx": tx.name,
            "tx_beam": tx.antenna.beam,
            "rx_beam": rx.antenna.beam,
            "rx_position": rx.position,
        })
        return super().received_psd(psd, tx, rx, los)


class UnsafeSpectrumLoss(FlatSpectrumLoss):
    """A model that cannot be copied for probing."""
    name = "unsafe"
    probe_safe = False


class NotAModel:
    """Something attached to a channel that is not a channel model at all."""

    def received_psd(self, psd, tx, rx, los=True):
        return psd
