"""
Per-point channel model realization.

The factory snapshots the attribute values of the live models of the real
network once, at registry build time. The realizer then hands out brand new
model instances for every (point, iteration, transmitter) computation, each
with its own random stream spawned from a single SeedSequence, so no cached
draw can leak from one sample into another.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from rem.errors import ModelUnavailableError
from rem.propagation import (
    ChannelModel,
    ConditionModel,
    PropagationLossModel,
    SpectrumLossModel,
    create_model,
)

logger = logging.getLogger(__name__)


@dataclass
class ChannelModels:
    """Model instances owned by a single sample computation."""
    propagation: PropagationLossModel
    spectrum: SpectrumLossModel
    condition: ConditionModel


def probe_copy(model: Any, expected_kind: str) -> ChannelModel:
    """
    Snapshot a live model by value.

    Raises:
        ModelUnavailableError: the object is not a copyable model of the expected kind
    """
    if not isinstance(model, ChannelModel):
        raise ModelUnavailableError(
            f"{type(model).__name__} is not a copyable {expected_kind} model"
        )
    if not model.probe_safe:
        raise ModelUnavailableError(f"{type(model).__name__} does not support probe copies")
    if model.kind != expected_kind:
        raise ModelUnavailableError(
            f"Expected a {expected_kind} model, got {type(model).__name__} ({model.kind})"
        )
    return model.copy()


class ChannelModelFactory:
    """Creates fresh model triples from snapshotted templates."""

    def __init__(self, propagation: ChannelModel, spectrum: ChannelModel, condition: ChannelModel):
        self._templates = {
            "propagation": probe_copy(propagation, "propagation"),
            "spectrum": probe_copy(spectrum, "spectrum"),
            "condition": probe_copy(condition, "condition"),
        }
        logger.debug(f"Channel templates: {self.describe()}")

    @classmethod
    def from_spectrum_channel(cls, channel) -> "ChannelModelFactory":
        """Snapshot the models attached to a SpectrumChannel."""
        return cls(channel.propagation_loss, channel.spectrum_loss, channel.condition)

    @classmethod
    def from_names(
        cls,
        propagation: str = "free_space",
        spectrum: str = "flat",
        condition: str = "always_los",
        propagation_attrs: Optional[Dict[str, Any]] = None,
        spectrum_attrs: Optional[Dict[str, Any]] = None,
        condition_attrs: Optional[Dict[str, Any]] = None,
    ) -> "ChannelModelFactory":
        return cls(
            create_model("propagation", propagation, **(propagation_attrs or {})),
            create_model("spectrum", spectrum, **(spectrum_attrs or {})),
            create_model("condition", condition, **(condition_attrs or {})),
        )

    def describe(self) -> Dict[str, Dict[str, Any]]:
        """Model family and attributes of every template."""
        return {
            kind: {"model": type(m).__name__, **m.attributes()}
            for kind, m in self._templates.items()
        }

    def create(self, rngs) -> ChannelModels:
        """Fresh instances, one generator each (propagation, spectrum, condition)."""
        rng_prop, rng_spec, rng_cond = rngs
        return ChannelModels(
            propagation=self._templates["propagation"].copy(rng_prop),
            spectrum=self._templates["spectrum"].copy(rng_spec),
            condition=self._templates["condition"].copy(rng_cond),
        )


class ChannelRealizer:
    """
    Hands out isolated model triples.

    Every call spawns three child seeds from the root SeedSequence, so runs
    with the same seed are reproducible and no two realizations share a
    random stream.
    """

    def __init__(self, factory: ChannelModelFactory, seed: Optional[int] = None):
        self.factory = factory
        self._seed_seq = np.random.SeedSequence(seed)
        logger.debug(f"Channel realizer entropy: {self._seed_seq.entropy}")
        self.realizations = 0

    def realize(self, ptd, prd) -> ChannelModels:
        """Fresh models attached only to this ptd/prd pair."""
        children = self._seed_seq.spawn(3)
        self.realizations += 1
        return self.factory.create([np.random.default_rng(s) for s in children])
