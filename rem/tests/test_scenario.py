#!/usr/bin/env python3
"""
Unit tests for rem/scenario.py

Run with:
  pytest rem/tests/test_scenario.py -v
"""

import math
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from rem.config import RemMode
from rem.errors import ConfigurationError
from rem.propagation import BuildingsCondition, FreeSpaceLoss, UmiCondition, UmiLoss
from rem.scenario import (
    DeploymentConfig,
    ScenarioType,
    create_deployment,
    hexagonal_sites,
    load_scenario,
)


class TestHexagonalSites:
    """Tests for the site lattice."""

    @pytest.mark.parametrize("rings,count", [(0, 1), (1, 7), (2, 19), (3, 37)])
    def test_site_count(self, rings, count):
        assert len(hexagonal_sites(rings, 500.0)) == count

    def test_first_ring_at_isd(self):
        sites = hexagonal_sites(1, 500.0)
        assert sites[0] == (0.0, 0.0)
        for x, y in sites[1:]:
            assert math.hypot(x, y) == pytest.approx(500.0)

    def test_sites_unique(self):
        sites = hexagonal_sites(3, 1.0)
        rounded = {(round(x, 6), round(y, 6)) for x, y in sites}
        assert len(rounded) == len(sites)


class TestDeploymentConfig:
    """Tests for deployment configuration."""

    def test_presets(self):
        rma = DeploymentConfig(scenario=ScenarioType.RMA)
        assert rma.carrier_hz == 0.7e9
        assert rma.gnb_power_dbm == 43.0
        umi = DeploymentConfig(scenario=ScenarioType.UMI, tx_power_dbm=30.0)
        assert umi.gnb_power_dbm == 30.0

    def test_too_many_rings(self):
        with pytest.raises(ConfigurationError):
            DeploymentConfig(num_rings=4)

    def test_unknown_model_name(self):
        with pytest.raises(ConfigurationError):
            DeploymentConfig(propagation="hata")

    def test_from_dict_scenario_name(self):
        cfg = DeploymentConfig.from_dict({"scenario": "umi", "num_rings": 1})
        assert cfg.scenario == ScenarioType.UMI

    def test_from_dict_unknown_key(self):
        with pytest.raises(ConfigurationError):
            DeploymentConfig.from_dict({"rings": 1})


class TestCreateDeployment:
    """Tests for generated networks."""

    def test_counts_and_sectors(self):
        dep = create_deployment(DeploymentConfig(scenario=ScenarioType.UMI, num_rings=1,
                                                 ues_per_sector=2, seed=1))
        assert len(dep.gnbs) == 21
        assert len(dep.ues) == 42
        gnbs, ue = dep.sector_devices(2)
        assert len(gnbs) == 7
        assert all(g.name.endswith("-2") for g in gnbs)
        assert ue.bandwidth_parts[0] == gnbs[0].bandwidth_parts[0]

    def test_sector_bands_contiguous(self):
        dep = create_deployment(DeploymentConfig(bandwidth_hz=20e6))
        freqs = [g.bandwidth_parts[0].frequency_hz for g in dep.gnbs]
        assert freqs == [2e9 - 20e6, 2e9, 2e9 + 20e6]

    def test_sector_bearings(self):
        dep = create_deployment(DeploymentConfig())
        bearings = [round(math.degrees(g.antenna.bearing)) for g in dep.gnbs]
        assert bearings == [30, 150, 270]

    def test_invalid_sector(self):
        dep = create_deployment(DeploymentConfig())
        with pytest.raises(ConfigurationError, match="does not exist"):
            dep.sector_devices(4)

    def test_beams_pre_aimed_at_own_ue(self):
        dep = create_deployment(DeploymentConfig(seed=3))
        for cell, gnb in enumerate(dep.gnbs):
            ue = dep.ues[cell]
            expected = gnb.antenna.copy().point_towards(gnb.position, ue.position)
            assert gnb.antenna.beam == pytest.approx(expected)

    def test_ue_parameters(self):
        dep = create_deployment(DeploymentConfig(seed=2))
        ue = dep.ues[0]
        assert ue.noise_figure_db == 9.0
        assert ue.position[2] == 1.5
        assert ue.antenna.element_type == "isotropic"

    def test_scenario_models(self):
        dep = create_deployment(DeploymentConfig(scenario=ScenarioType.UMI))
        assert isinstance(dep.channel.propagation_loss, UmiLoss)
        assert isinstance(dep.channel.condition, UmiCondition)

    def test_buildings_condition_gets_buildings(self):
        dep = create_deployment(DeploymentConfig(num_buildings=5, condition="buildings",
                                                 propagation="free_space", seed=4))
        assert len(dep.buildings) == 5
        assert isinstance(dep.channel.propagation_loss, FreeSpaceLoss)
        assert isinstance(dep.channel.condition, BuildingsCondition)
        assert dep.channel.condition.buildings == tuple(dep.buildings)

    def test_seeded_drop_reproducible(self):
        a = create_deployment(DeploymentConfig(num_rings=1, seed=8, num_buildings=3))
        b = create_deployment(DeploymentConfig(num_rings=1, seed=8, num_buildings=3))
        assert [u.position for u in a.ues] == [u.position for u in b.ues]
        assert a.buildings == b.buildings


class TestLoadScenario:
    """Tests for scenario YAML files."""

    def test_both_sections(self, tmp_path):
        path = tmp_path / "s.yaml"
        path.write_text(
            "deployment:\n"
            "  scenario: RMa\n"
            "  num_rings: 1\n"
            "rem:\n"
            "  mode: CoverageArea\n"
            "  sector_index: 3\n",
            encoding="utf-8",
        )
        deployment, rem = load_scenario(path)
        assert deployment.scenario == ScenarioType.RMA
        assert rem.mode == RemMode.COVERAGE_AREA
        assert rem.sector_index == 3

    def test_shipped_scenarios_load(self):
        root = Path(__file__).parent.parent.parent / "scenarios"
        files = sorted(root.glob("*.yaml"))
        assert files
        for path in files:
            load_scenario(path)
