"""
Hexagonal multi-site demo deployment.

PURPOSE:
Creates a tri-sectorized hexagonal network (a central site plus 0-3 outer
rings) with UEs dropped in every sector, to drive the map engine end to end.

LAYOUT:
- Sites on a hexagonal lattice with the preset inter-site distance
- Three sectors per site, bearings 30, 150 and 270 degrees
- Sectors contiguous in frequency: centre - bw, centre, centre + bw
- gNB index j belongs to sector (j % 3) + 1
- Every gNB beam is pre-aimed at the first UE of its own cell

PRESETS (TR 38.901 calibration values):
    UMa: ISD 1732 m, gNB 30 m, 43 dBm, 2 GHz
    UMi: ISD  500 m, gNB 10 m, 44 dBm, 2 GHz
    RMa: ISD 7000 m, gNB 45 m, 43 dBm, 700 MHz

USAGE:
    deployment = create_deployment(DeploymentConfig(scenario=ScenarioType.UMI, num_rings=1))
    gnbs, ue = deployment.sector_devices(1)

    deployment_cfg, rem_cfg = load_scenario("scenarios/umi.yaml")
"""

import logging
import math
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from rem.antenna import ISOTROPIC, THREE_GPP, AntennaArray
from rem.config import RemConfig, load_yaml
from rem.devices import BandwidthPart, Building, NetworkDevice, SpectrumChannel
from rem.errors import ConfigurationError
from rem.propagation import MODEL_REGISTRY, ThreeGppLoss, create_model

logger = logging.getLogger(__name__)

SECTOR_BEARINGS_DEG = (30.0, 150.0, 270.0)
SECTORS_PER_SITE = len(SECTOR_BEARINGS_DEG)
MAX_RINGS = 3


class ScenarioType(Enum):
    UMA = "UMa"
    UMI = "UMi"
    RMA = "RMa"


@dataclass(frozen=True)
class ScenarioPreset:
    isd_m: float
    gnb_height_m: float
    tx_power_dbm: float
    frequency_hz: float


SCENARIO_PRESETS = {
    ScenarioType.UMA: ScenarioPreset(isd_m=1732.0, gnb_height_m=30.0, tx_power_dbm=43.0, frequency_hz=2e9),
    ScenarioType.UMI: ScenarioPreset(isd_m=500.0, gnb_height_m=10.0, tx_power_dbm=44.0, frequency_hz=2e9),
    ScenarioType.RMA: ScenarioPreset(isd_m=7000.0, gnb_height_m=45.0, tx_power_dbm=43.0, frequency_hz=0.7e9),
}


@dataclass(frozen=True)
class DeploymentConfig:
    """Demo network parameters. None means "use the scenario preset"."""
    scenario: ScenarioType = ScenarioType.UMA
    num_rings: int = 0
    ues_per_sector: int = 1

    # Carrier
    bandwidth_hz: float = 20e6
    numerology: int = 0
    frequency_hz: Optional[float] = None
    tx_power_dbm: Optional[float] = None

    # Antennas
    gnb_rows: int = 4
    gnb_columns: int = 8
    gnb_element: str = THREE_GPP
    downtilt_deg: float = 0.0
    ue_height_m: float = 1.5
    ue_noise_figure_db: float = 9.0

    # Channel (names from the model registry; None follows the scenario)
    propagation: Optional[str] = None
    condition: Optional[str] = None
    spectrum: str = "flat"
    shadowing: bool = True

    # Obstacles
    num_buildings: int = 0
    building_size_m: Tuple[float, float] = (20.0, 60.0)
    building_height_m: Tuple[float, float] = (10.0, 30.0)

    seed: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.scenario, ScenarioType):
            raise ConfigurationError(f"scenario must be a ScenarioType, got {self.scenario!r}")
        if not 0 <= self.num_rings <= MAX_RINGS:
            raise ConfigurationError(f"num_rings must be 0-{MAX_RINGS}, got {self.num_rings}")
        if self.ues_per_sector < 1:
            raise ConfigurationError(f"ues_per_sector must be >= 1, got {self.ues_per_sector}")
        if self.bandwidth_hz <= 0:
            raise ConfigurationError(f"bandwidth_hz must be positive, got {self.bandwidth_hz}")
        if self.num_buildings < 0:
            raise ConfigurationError(f"num_buildings must be non-negative, got {self.num_buildings}")
        for kind, name in (("propagation", self.propagation), ("condition", self.condition),
                           ("spectrum", self.spectrum)):
            if name is not None and name.lower() not in MODEL_REGISTRY[kind]:
                raise ConfigurationError(f"Unknown {kind} model {name!r}")

    @property
    def preset(self) -> ScenarioPreset:
        return SCENARIO_PRESETS[self.scenario]

    @property
    def carrier_hz(self) -> float:
        return self.frequency_hz if self.frequency_hz is not None else self.preset.frequency_hz

    @property
    def gnb_power_dbm(self) -> float:
        return self.tx_power_dbm if self.tx_power_dbm is not None else self.preset.tx_power_dbm

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown deployment keys: {', '.join(unknown)}")
        kwargs = dict(data)
        if "scenario" in kwargs and not isinstance(kwargs["scenario"], ScenarioType):
            value = str(kwargs["scenario"])
            match = [s for s in ScenarioType if value.lower() in (s.value.lower(), s.name.lower())]
            if not match:
                raise ConfigurationError(f"Unknown scenario {value!r} (expected UMa, UMi or RMa)")
            kwargs["scenario"] = match[0]
        for name in ("building_size_m", "building_height_m"):
            if name in kwargs:
                kwargs[name] = tuple(float(v) for v in kwargs[name])
        return cls(**kwargs)


@dataclass
class Deployment:
    """Devices and obstacles of a generated network."""
    config: DeploymentConfig
    sites: List[Tuple[float, float]]
    gnbs: List[NetworkDevice]
    ues: List[NetworkDevice]
    ue_cells: List[int]
    buildings: List[Building]
    channel: SpectrumChannel

    def sector_devices(self, sector_index: int) -> Tuple[List[NetworkDevice], NetworkDevice]:
        """
        Transmitters of one sector and the receiver whose PHY the map copies.

        Args:
            sector_index: 1, 2 or 3

        Returns:
            (gnbs of the sector, first UE of the sector)
        """
        if not 1 <= sector_index <= SECTORS_PER_SITE:
            raise ConfigurationError(f"Sector {sector_index} does not exist (expected 1-3)")
        sector = sector_index - 1
        gnbs = [g for j, g in enumerate(self.gnbs) if j % SECTORS_PER_SITE == sector]
        ues = [u for u, cell in zip(self.ues, self.ue_cells) if cell % SECTORS_PER_SITE == sector]
        return gnbs, ues[0]

    def bounding_box(self, margin_m: float = 0.0) -> Tuple[float, float, float, float]:
        xs = [s[0] for s in self.sites]
        ys = [s[1] for s in self.sites]
        return min(xs) - margin_m, max(xs) + margin_m, min(ys) - margin_m, max(ys) + margin_m


def hexagonal_sites(num_rings: int, isd_m: float) -> List[Tuple[float, float]]:
    """Site positions: the centre first, then ring by ring."""
    sites = [(0.0, 0.0)]
    # Axial directions of the hexagonal lattice
    directions = [(1, 0), (1, -1), (0, -1), (-1, 0), (-1, 1), (0, 1)]
    for ring in range(1, num_rings + 1):
        q, r = -ring, ring  # start corner, walk the six edges
        for dq, dr in directions:
            for _ in range(ring):
                sites.append((isd_m * (q + r / 2.0), isd_m * r * math.sqrt(3) / 2.0))
                q, r = q + dq, r + dr
    return sites


def _channel(config: DeploymentConfig, buildings: List[Building]) -> SpectrumChannel:
    default = config.scenario.value.lower()
    prop_name = (config.propagation or default).lower()
    cond_name = (config.condition or default).lower()

    prop_attrs: Dict[str, Any] = {"frequency_hz": config.carrier_hz}
    if issubclass(MODEL_REGISTRY["propagation"][prop_name], ThreeGppLoss):
        prop_attrs["shadowing"] = config.shadowing
    cond_attrs = {"buildings": buildings} if cond_name == "buildings" else {}
    return SpectrumChannel(
        propagation_loss=create_model("propagation", prop_name, **prop_attrs),
        spectrum_loss=create_model("spectrum", config.spectrum),
        condition=create_model("condition", cond_name, **cond_attrs),
    )


def _drop_buildings(config: DeploymentConfig, sites, rng: np.random.Generator) -> List[Building]:
    isd = config.preset.isd_m
    xs = [s[0] for s in sites]
    ys = [s[1] for s in sites]
    buildings: List[Building] = []
    attempts = 0
    while len(buildings) < config.num_buildings and attempts < 100 * config.num_buildings:
        attempts += 1
        w, d = rng.uniform(*config.building_size_m, size=2)
        cx = rng.uniform(min(xs) - isd / 2, max(xs) + isd / 2)
        cy = rng.uniform(min(ys) - isd / 2, max(ys) + isd / 2)
        b = Building(cx - w / 2, cx + w / 2, cy - d / 2, cy + d / 2,
                     float(rng.uniform(*config.building_height_m)))
        # No building on top of a site
        if any(b.x_min <= sx <= b.x_max and b.y_min <= sy <= b.y_max for sx, sy in sites):
            continue
        buildings.append(b)
    if len(buildings) < config.num_buildings:
        logger.warning(f"Placed {len(buildings)} of {config.num_buildings} buildings")
    return buildings


def create_deployment(config: DeploymentConfig) -> Deployment:
    """Generate sites, sector gNBs, UEs, buildings and the shared channel."""
    rng = np.random.default_rng(config.seed)
    preset = config.preset
    sites = hexagonal_sites(config.num_rings, preset.isd_m)
    buildings = _drop_buildings(config, sites, rng)
    channel = _channel(config, buildings)
    bw = config.bandwidth_hz

    gnbs: List[NetworkDevice] = []
    ues: List[NetworkDevice] = []
    ue_cells: List[int] = []
    for site_id, (sx, sy) in enumerate(sites):
        for sector, bearing_deg in enumerate(SECTOR_BEARINGS_DEG):
            cell = site_id * SECTORS_PER_SITE + sector
            bwp = BandwidthPart(bw, config.carrier_hz + (sector - 1) * bw, config.numerology)
            gnbs.append(NetworkDevice(
                name=f"gnb-{site_id}-{sector + 1}",
                position=(sx, sy, preset.gnb_height_m),
                antenna=AntennaArray(
                    rows=config.gnb_rows,
                    columns=config.gnb_columns,
                    element_type=config.gnb_element,
                    bearing=math.radians(bearing_deg),
                    downtilt=math.radians(config.downtilt_deg),
                ),
                bandwidth_parts=[bwp],
                tx_power_dbm=config.gnb_power_dbm,
                channel=channel,
            ))
            # UEs within the sector's 120 degree wedge
            for k in range(config.ues_per_sector):
                r = rng.uniform(10.0, preset.isd_m / 2.0)
                phi = math.radians(bearing_deg) + rng.uniform(-math.pi / 3, math.pi / 3)
                ues.append(NetworkDevice(
                    name=f"ue-{cell}-{k}",
                    position=(sx + r * math.cos(phi), sy + r * math.sin(phi), config.ue_height_m),
                    antenna=AntennaArray(element_type=ISOTROPIC),
                    bandwidth_parts=[bwp],
                    noise_figure_db=config.ue_noise_figure_db,
                    channel=channel,
                ))
                ue_cells.append(cell)

    # Beams as left by beam training: each gNB towards the first UE of its cell
    for cell, gnb in enumerate(gnbs):
        ue = ues[cell * config.ues_per_sector]
        gnb.antenna.point_towards(gnb.position, ue.position)

    logger.info(f"{config.scenario.value} deployment: {len(sites)} site(s), {len(gnbs)} gNB(s), "
                f"{len(ues)} UE(s), {len(buildings)} building(s)")
    return Deployment(config, sites, gnbs, ues, ue_cells, buildings, channel)


def load_scenario(path: Union[str, Path]) -> Tuple[DeploymentConfig, RemConfig]:
    """Read the "deployment" and "rem" sections of a scenario YAML file."""
    data = load_yaml(path)
    deployment = data.get("deployment") or {}
    rem = data.get("rem") or {}
    if not isinstance(deployment, dict) or not isinstance(rem, dict):
        raise ConfigurationError(f"{path}: 'deployment' and 'rem' must be mappings")
    return DeploymentConfig.from_dict(deployment), RemConfig.from_dict(rem)
