"""
Channel model providers.

PURPOSE:
Concrete channel-condition, propagation-loss and spectrum-loss models. Every
model is a ChannelModel: it can report the attribute values it was built
with and produce a fresh copy with an empty cache and its own random stream.

MODELS SUPPORTED:
    condition:    always_los, never_los, uma, umi, rma, buildings
    propagation:  free_space, log_distance, uma, umi, rma
    spectrum:     flat, rayleigh, rician

The 3GPP models follow TR 38.901 (Table 7.4.1-1 path loss, Table 7.4.2-1
LOS probability) with the simplified effective environment height h_E = 1 m.

All models cache their random draws per device pair (LOS decision,
shadowing, fading), so a model instance must never be shared between
independent samples.

USAGE:
    cond = create_model("condition", "uma")
    prop = create_model("propagation", "uma", frequency_hz=2e9)
    fresh = prop.copy(np.random.default_rng(7))
"""

from __future__ import annotations

import math
from typing import Any, Dict, Hashable, Optional, Sequence, Tuple, Type

import numpy as np
from scipy import constants

from rem.errors import ConfigurationError
from rem.utils import distance_2d, distance_3d


C = constants.speed_of_light
MIN_DISTANCE_M = 1.0
EFFECTIVE_ENV_HEIGHT_M = 1.0
# Lowest antenna height the TR 38.901 formulas are evaluated at
MIN_ANTENNA_HEIGHT_M = 1.0


def _pair_key(tx, rx) -> Tuple[int, int]:
    return (id(tx), id(rx))


def _heights(tx, rx) -> Tuple[float, float]:
    """(h_BS, h_UT): the higher end is taken as the base station."""
    h1 = max(tx.position[2], MIN_ANTENNA_HEIGHT_M)
    h2 = max(rx.position[2], MIN_ANTENNA_HEIGHT_M)
    return max(h1, h2), min(h1, h2)


# ============================================================================
# BASE CLASS
# ============================================================================


class ChannelModel:
    """
    Base class of all channel models.

    Subclasses list their constructor attributes in ATTRIBUTES; copy()
    rebuilds the model from those values.
    """
    kind: str = ""
    name: str = ""
    probe_safe: bool = True
    ATTRIBUTES: Tuple[str, ...] = ()

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()
        self._cache: Dict[Hashable, Any] = {}

    def attributes(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.ATTRIBUTES}

    def copy(self, rng: Optional[np.random.Generator] = None) -> "ChannelModel":
        """New instance with identical attributes and an empty cache."""
        return type(self)(rng=rng, **self.attributes())

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def __repr__(self):
        attrs = ", ".join(f"{k}={v!r}" for k, v in self.attributes().items())
        return f"{type(self).__name__}({attrs})"


# ============================================================================
# CHANNEL CONDITION
# ============================================================================


class ConditionModel(ChannelModel):
    """Decides LOS/NLOS for a device pair; the decision is cached per pair."""
    kind = "condition"

    def is_los(self, tx, rx) -> bool:
        key = _pair_key(tx, rx)
        if key not in self._cache:
            self._cache[key] = bool(self._decide(tx, rx))
        return self._cache[key]

    def _decide(self, tx, rx) -> bool:
        raise NotImplementedError


class AlwaysLosCondition(ConditionModel):
    name = "always_los"

    def _decide(self, tx, rx) -> bool:
        return True


class NeverLosCondition(ConditionModel):
    name = "never_los"

    def _decide(self, tx, rx) -> bool:
        return False


class ThreeGppCondition(ConditionModel):
    """LOS drawn with the probability of TR 38.901 Table 7.4.2-1."""

    def los_probability(self, d2d: float, h_ut: float) -> float:
        raise NotImplementedError

    def _decide(self, tx, rx) -> bool:
        _, h_ut = _heights(tx, rx)
        p = self.los_probability(distance_2d(tx.position, rx.position), h_ut)
        return self.rng.random() < p


class UmaCondition(ThreeGppCondition):
    name = "uma"

    def los_probability(self, d2d: float, h_ut: float) -> float:
        if d2d <= 18.0:
            return 1.0
        c = 0.0 if h_ut <= 13.0 else ((h_ut - 13.0) / 10.0) ** 1.5
        base = 18.0 / d2d + math.exp(-d2d / 63.0) * (1.0 - 18.0 / d2d)
        return base * (1.0 + c * 1.25 * (d2d / 100.0) ** 3 * math.exp(-d2d / 150.0))


class UmiCondition(ThreeGppCondition):
    name = "umi"

    def los_probability(self, d2d: float, h_ut: float) -> float:
        if d2d <= 18.0:
            return 1.0
        return 18.0 / d2d + math.exp(-d2d / 36.0) * (1.0 - 18.0 / d2d)


class RmaCondition(ThreeGppCondition):
    name = "rma"

    def los_probability(self, d2d: float, h_ut: float) -> float:
        if d2d <= 10.0:
            return 1.0
        return math.exp(-(d2d - 10.0) / 1000.0)


class BuildingsCondition(ConditionModel):
    """
    Deterministic LOS from building footprints.

    The link is NLOS when the tx-rx segment crosses a building whose height
    exceeds the height of the segment somewhere inside the footprint.
    Buildings are any objects with x_min, x_max, y_min, y_max and height.
    """
    name = "buildings"
    ATTRIBUTES = ("buildings",)

    def __init__(self, buildings: Sequence = (), rng: Optional[np.random.Generator] = None):
        super().__init__(rng)
        self.buildings = tuple(buildings)

    def _decide(self, tx, rx) -> bool:
        return not any(self.blocks(b, tx.position, rx.position) for b in self.buildings)

    @staticmethod
    def blocks(building, a, b) -> bool:
        # Liang-Barsky clip of the 2-D segment against the footprint
        t0, t1 = 0.0, 1.0
        dx, dy = b[0] - a[0], b[1] - a[1]
        for p, q in (
            (-dx, a[0] - building.x_min),
            (dx, building.x_max - a[0]),
            (-dy, a[1] - building.y_min),
            (dy, building.y_max - a[1]),
        ):
            if p == 0.0:
                if q < 0.0:
                    return False
                continue
            t = q / p
            if p < 0.0:
                t0 = max(t0, t)
            else:
                t1 = min(t1, t)
            if t0 > t1:
                return False
        # Segment height is linear in t, lowest at one end of the clipped span
        z_low = min(a[2] + t0 * (b[2] - a[2]), a[2] + t1 * (b[2] - a[2]))
        return z_low < building.height


# ============================================================================
# PROPAGATION LOSS
# ============================================================================


class PropagationLossModel(ChannelModel):
    """Path loss (plus shadowing where modelled) in dB for a device pair."""
    kind = "propagation"
    ATTRIBUTES = ("frequency_hz",)

    def __init__(self, frequency_hz: float = 2e9, rng: Optional[np.random.Generator] = None):
        super().__init__(rng)
        if frequency_hz <= 0:
            raise ConfigurationError(f"frequency_hz must be positive, got {frequency_hz}")
        self.frequency_hz = float(frequency_hz)

    def loss_db(self, tx, rx, los: bool = True) -> float:
        raise NotImplementedError


class FreeSpaceLoss(PropagationLossModel):
    """Friis free-space loss."""
    name = "free_space"

    def loss_db(self, tx, rx, los: bool = True) -> float:
        d = max(distance_3d(tx.position, rx.position), MIN_DISTANCE_M)
        wavelength = C / self.frequency_hz
        return 20.0 * math.log10(4.0 * math.pi * d / wavelength)


class LogDistanceLoss(PropagationLossModel):
    """
    Log-distance loss: PL(d) = PL(d0) + 10 * n * log10(d / d0)

    PL(d0) defaults to the free-space loss at d0.
    """
    name = "log_distance"
    ATTRIBUTES = ("frequency_hz", "exponent", "reference_distance_m", "reference_loss_db")

    def __init__(
        self,
        frequency_hz: float = 2e9,
        exponent: float = 3.0,
        reference_distance_m: float = 1.0,
        reference_loss_db: Optional[float] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        super().__init__(frequency_hz, rng)
        self.exponent = float(exponent)
        self.reference_distance_m = float(reference_distance_m)
        self.reference_loss_db = reference_loss_db

    def loss_db(self, tx, rx, los: bool = True) -> float:
        ref = self.reference_loss_db
        if ref is None:
            wavelength = C / self.frequency_hz
            ref = 20.0 * math.log10(4.0 * math.pi * self.reference_distance_m / wavelength)
        d = distance_3d(tx.position, rx.position)
        if d <= self.reference_distance_m:
            return ref
        return ref + 10.0 * self.exponent * math.log10(d / self.reference_distance_m)


class ThreeGppLoss(PropagationLossModel):
    """
    TR 38.901 path loss with log-normal shadowing.

    PL_NLOS is max(PL_LOS, PL'_NLOS). The shadowing draw is cached per
    device pair and LOS state.
    """
    ATTRIBUTES = ("frequency_hz", "shadowing")

    def __init__(
        self,
        frequency_hz: float = 2e9,
        shadowing: bool = True,
        rng: Optional[np.random.Generator] = None,
    ):
        super().__init__(frequency_hz, rng)
        self.shadowing = bool(shadowing)

    @property
    def fc_ghz(self) -> float:
        return self.frequency_hz / 1e9

    def breakpoint_m(self, h_bs: float, h_ut: float) -> float:
        h_bs_eff = max(h_bs - EFFECTIVE_ENV_HEIGHT_M, 0.1)
        h_ut_eff = max(h_ut - EFFECTIVE_ENV_HEIGHT_M, 0.1)
        return 4.0 * h_bs_eff * h_ut_eff * self.frequency_hz / C

    def los_loss_db(self, d2d: float, d3d: float, h_bs: float, h_ut: float) -> float:
        raise NotImplementedError

    def nlos_loss_db(self, d2d: float, d3d: float, h_bs: float, h_ut: float) -> float:
        raise NotImplementedError

    def shadowing_std_db(self, los: bool, d2d: float, h_bs: float, h_ut: float) -> float:
        raise NotImplementedError

    def path_loss_db(self, tx, rx, los: bool) -> float:
        """Path loss without shadowing."""
        h_bs, h_ut = _heights(tx, rx)
        d2d = distance_2d(tx.position, rx.position)
        d3d = max(distance_3d(tx.position, rx.position), MIN_DISTANCE_M)
        pl_los = self.los_loss_db(d2d, d3d, h_bs, h_ut)
        if los:
            return pl_los
        return max(pl_los, self.nlos_loss_db(d2d, d3d, h_bs, h_ut))

    def loss_db(self, tx, rx, los: bool = True) -> float:
        loss = self.path_loss_db(tx, rx, los)
        if self.shadowing:
            key = (_pair_key(tx, rx), los)
            if key not in self._cache:
                h_bs, h_ut = _heights(tx, rx)
                sigma = self.shadowing_std_db(los, distance_2d(tx.position, rx.position), h_bs, h_ut)
                self._cache[key] = float(self.rng.normal(0.0, sigma))
            loss += self._cache[key]
        return loss


class UmaLoss(ThreeGppLoss):
    name = "uma"

    def los_loss_db(self, d2d, d3d, h_bs, h_ut):
        d_bp = self.breakpoint_m(h_bs, h_ut)
        if d2d <= d_bp:
            return 28.0 + 22.0 * math.log10(d3d) + 20.0 * math.log10(self.fc_ghz)
        return (28.0 + 40.0 * math.log10(d3d) + 20.0 * math.log10(self.fc_ghz)
                - 9.0 * math.log10(d_bp ** 2 + (h_bs - h_ut) ** 2))

    def nlos_loss_db(self, d2d, d3d, h_bs, h_ut):
        return (13.54 + 39.08 * math.log10(d3d) + 20.0 * math.log10(self.fc_ghz)
                - 0.6 * (h_ut - 1.5))

    def shadowing_std_db(self, los, d2d, h_bs, h_ut):
        return 4.0 if los else 6.0


class UmiLoss(ThreeGppLoss):
    name = "umi"

    def los_loss_db(self, d2d, d3d, h_bs, h_ut):
        d_bp = self.breakpoint_m(h_bs, h_ut)
        if d2d <= d_bp:
            return 32.4 + 21.0 * math.log10(d3d) + 20.0 * math.log10(self.fc_ghz)
        return (32.4 + 40.0 * math.log10(d3d) + 20.0 * math.log10(self.fc_ghz)
                - 9.5 * math.log10(d_bp ** 2 + (h_bs - h_ut) ** 2))

    def nlos_loss_db(self, d2d, d3d, h_bs, h_ut):
        return (22.4 + 35.3 * math.log10(d3d) + 21.3 * math.log10(self.fc_ghz)
                - 0.3 * (h_ut - 1.5))

    def shadowing_std_db(self, los, d2d, h_bs, h_ut):
        return 4.0 if los else 7.82


class RmaLoss(ThreeGppLoss):
    """RMa with average building height 5 m and street width 20 m."""
    name = "rma"
    BUILDING_HEIGHT_M = 5.0
    STREET_WIDTH_M = 20.0

    def breakpoint_m(self, h_bs, h_ut):
        return 2.0 * math.pi * h_bs * h_ut * self.frequency_hz / C

    def _pl1(self, d3d):
        h = self.BUILDING_HEIGHT_M
        return (20.0 * math.log10(40.0 * math.pi * d3d * self.fc_ghz / 3.0)
                + min(0.03 * h ** 1.72, 10.0) * math.log10(d3d)
                - min(0.044 * h ** 1.72, 14.77)
                + 0.002 * math.log10(h) * d3d)

    def los_loss_db(self, d2d, d3d, h_bs, h_ut):
        d_bp = self.breakpoint_m(h_bs, h_ut)
        if d2d <= d_bp:
            return self._pl1(d3d)
        return self._pl1(d_bp) + 40.0 * math.log10(d3d / d_bp)

    def nlos_loss_db(self, d2d, d3d, h_bs, h_ut):
        h, w = self.BUILDING_HEIGHT_M, self.STREET_WIDTH_M
        return (161.04 - 7.1 * math.log10(w) + 7.5 * math.log10(h)
                - (24.37 - 3.7 * (h / h_bs) ** 2) * math.log10(h_bs)
                + (43.42 - 3.1 * math.log10(h_bs)) * (math.log10(d3d) - 3.0)
                + 20.0 * math.log10(self.fc_ghz)
                - (3.2 * math.log10(11.75 * h_ut) ** 2 - 4.97))

    def shadowing_std_db(self, los, d2d, h_bs, h_ut):
        if not los:
            return 8.0
        return 4.0 if d2d <= self.breakpoint_m(h_bs, h_ut) else 6.0


# ============================================================================
# SPECTRUM LOSS
# ============================================================================


class SpectrumLossModel(ChannelModel):
    """
    Applies antenna gains (in their current beam states) and per-bin fading
    to a PSD that already carries the path loss.
    """
    kind = "spectrum"

    def received_psd(self, psd: np.ndarray, tx, rx, los: bool = True) -> np.ndarray:
        psd = np.asarray(psd, dtype=float)
        gain_db = tx.antenna.gain_towards(tx.position, rx.position)
        gain_db += rx.antenna.gain_towards(rx.position, tx.position)
        gain = 10.0 ** (gain_db / 10.0) if math.isfinite(gain_db) else 0.0
        return psd * gain * self.fading(tx, rx, psd.size, los)

    def fading(self, tx, rx, num_bins: int, los: bool) -> np.ndarray:
        key = (_pair_key(tx, rx), num_bins, los)
        if key not in self._cache:
            self._cache[key] = self._draw_fading(num_bins, los)
        return self._cache[key]

    def _draw_fading(self, num_bins: int, los: bool) -> np.ndarray:
        return np.ones(num_bins)


class FlatSpectrumLoss(SpectrumLossModel):
    """Beamforming gain only, no fading."""
    name = "flat"


class RayleighSpectrumLoss(SpectrumLossModel):
    """Independent exponential power fading per bin (unit mean)."""
    name = "rayleigh"

    def _draw_fading(self, num_bins: int, los: bool) -> np.ndarray:
        return self.rng.exponential(1.0, num_bins)


class RicianSpectrumLoss(SpectrumLossModel):
    """Rician power fading in LOS with K-factor k_factor_db, Rayleigh in NLOS."""
    name = "rician"
    ATTRIBUTES = ("k_factor_db",)

    def __init__(self, k_factor_db: float = 9.0, rng: Optional[np.random.Generator] = None):
        super().__init__(rng)
        self.k_factor_db = float(k_factor_db)

    def _draw_fading(self, num_bins: int, los: bool) -> np.ndarray:
        scattered = (self.rng.standard_normal(num_bins)
                     + 1j * self.rng.standard_normal(num_bins)) / np.sqrt(2)
        if not los:
            return np.abs(scattered) ** 2
        k = 10.0 ** (self.k_factor_db / 10.0)
        h = np.sqrt(k / (k + 1.0)) + np.sqrt(1.0 / (k + 1.0)) * scattered
        return np.abs(h) ** 2


# ============================================================================
# REGISTRY
# ============================================================================


MODEL_REGISTRY: Dict[str, Dict[str, Type[ChannelModel]]] = {
    "condition": {
        cls.name: cls for cls in (
            AlwaysLosCondition, NeverLosCondition,
            UmaCondition, UmiCondition, RmaCondition, BuildingsCondition,
        )
    },
    "propagation": {
        cls.name: cls for cls in (FreeSpaceLoss, LogDistanceLoss, UmaLoss, UmiLoss, RmaLoss)
    },
    "spectrum": {
        cls.name: cls for cls in (FlatSpectrumLoss, RayleighSpectrumLoss, RicianSpectrumLoss)
    },
}


def create_model(kind: str, name: str, **attrs) -> ChannelModel:
    """
    Instantiate a model by kind and configuration name.

    Raises:
        ConfigurationError: unknown kind or name, or bad attributes
    """
    if kind not in MODEL_REGISTRY:
        raise ConfigurationError(
            f"Unknown model kind {kind!r} (expected one of: {', '.join(MODEL_REGISTRY)})"
        )
    models = MODEL_REGISTRY[kind]
    key = str(name).lower()
    if key not in models:
        raise ConfigurationError(
            f"Unknown {kind} model {name!r} (expected one of: {', '.join(sorted(models))})"
        )
    try:
        return models[key](**attrs)
    except TypeError as e:
        raise ConfigurationError(f"Bad attributes for {kind} model {name!r}: {e}") from e
