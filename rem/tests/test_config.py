#!/usr/bin/env python3
"""
Unit tests for rem/config.py

Run with:
  pytest rem/tests/test_config.py -v
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from rem.config import RemConfig, RemMode, WidebandPolicy, load_yaml
from rem.errors import ConfigurationError


class TestRemConfigValidation:
    """Tests for RemConfig construction."""

    def test_defaults_are_valid(self):
        """Default configuration builds and describes a 100x100 beam-shape map."""
        config = RemConfig()
        assert config.mode == RemMode.BEAM_SHAPE
        assert config.num_points == 10000
        assert config.wideband_policy == WidebandPolicy.MAX

    @pytest.mark.parametrize("field_name", ["x_res", "y_res"])
    def test_zero_resolution_rejected(self, field_name):
        """A resolution of zero is a configuration error."""
        with pytest.raises(ConfigurationError):
            RemConfig(**{field_name: 0})

    def test_inverted_axis_rejected(self):
        """x_max below x_min is rejected."""
        with pytest.raises(ConfigurationError):
            RemConfig(x_min=10.0, x_max=-10.0)

    def test_zero_iterations_rejected(self):
        with pytest.raises(ConfigurationError):
            RemConfig(iterations=0)

    def test_negative_delay_rejected(self):
        with pytest.raises(ConfigurationError):
            RemConfig(installation_delay_s=-1.0)

    def test_sector_is_one_based(self):
        with pytest.raises(ConfigurationError):
            RemConfig(sector_index=0)

    def test_sim_tag_must_be_file_token(self):
        """Tags end up in file names, so separators are rejected."""
        with pytest.raises(ConfigurationError):
            RemConfig(sim_tag="a/b")
        with pytest.raises(ConfigurationError):
            RemConfig(sim_tag="")

    def test_configuration_error_is_value_error(self):
        """Callers catching ValueError still see configuration errors."""
        with pytest.raises(ValueError):
            RemConfig(x_res=0)

    def test_frozen(self):
        config = RemConfig()
        with pytest.raises(AttributeError):
            config.x_res = 5


class TestRemConfigSteps:
    """Tests for the derived grid steps."""

    def test_step_with_several_points(self):
        config = RemConfig(x_min=-10, x_max=10, x_res=5, y_min=0, y_max=30, y_res=4)
        assert config.x_step == pytest.approx(5.0)
        assert config.y_step == pytest.approx(10.0)

    def test_single_point_axis_has_zero_step(self):
        config = RemConfig(x_res=1, y_res=1)
        assert config.x_step == 0.0
        assert config.y_step == 0.0
        assert config.num_points == 1


class TestRemConfigFromDict:
    """Tests for dict and YAML loading."""

    def test_enum_values_and_names(self):
        """Modes parse from their value or member name."""
        a = RemConfig.from_dict({"mode": "CoverageArea", "wideband_policy": "mean"})
        b = RemConfig.from_dict({"mode": "COVERAGE_AREA", "wideband_policy": "CAPACITY"})
        assert a.mode == RemMode.COVERAGE_AREA
        assert a.wideband_policy == WidebandPolicy.MEAN
        assert b.mode == RemMode.COVERAGE_AREA
        assert b.wideband_policy == WidebandPolicy.CAPACITY

    def test_unknown_mode_rejected(self):
        with pytest.raises(ConfigurationError, match="mode"):
            RemConfig.from_dict({"mode": "Heatmap"})

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError, match="xres"):
            RemConfig.from_dict({"xres": 10})

    def test_numbers_coerced(self):
        """YAML integers for float fields and numeric sim tags are accepted."""
        config = RemConfig.from_dict({"x_min": -5, "x_res": 3, "sim_tag": 42, "output_dir": "out"})
        assert isinstance(config.x_min, float)
        assert config.x_res == 3
        assert config.sim_tag == "42"
        assert config.output_dir == Path("out")

    def test_fractional_resolution_rejected(self):
        with pytest.raises(ConfigurationError):
            RemConfig.from_dict({"x_res": 2.5})

    def test_boolean_resolution_rejected(self):
        with pytest.raises(ConfigurationError):
            RemConfig.from_dict({"x_res": True})

    def test_to_dict_round_trip(self):
        config = RemConfig(mode=RemMode.COVERAGE_AREA, x_res=7, seed=3, sim_tag="t")
        assert RemConfig.from_dict(config.to_dict()) == config

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "scenario.yaml"
        path.write_text(
            "rem:\n"
            "  mode: CoverageArea\n"
            "  x_min: -20\n"
            "  x_max: 20\n"
            "  x_res: 5\n"
            "  iterations: 4\n",
            encoding="utf-8",
        )
        config = RemConfig.from_yaml(path)
        assert config.mode == RemMode.COVERAGE_AREA
        assert config.x_res == 5
        assert config.iterations == 4

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            RemConfig.from_yaml(tmp_path / "missing.yaml")

    def test_load_yaml_rejects_list(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_yaml(path)

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert RemConfig.from_yaml(path) == RemConfig()
