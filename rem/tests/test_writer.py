#!/usr/bin/env python3
"""
Unit tests for rem/writer.py

Run with:
  pytest rem/tests/test_writer.py -v
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from rem.config import RemConfig
from rem.devices import Building
from rem.grid import build_points
from rem.utils import DEGENERATE_SAMPLE_DB
from rem.writer import MapWriter, is_finite_map


class Dev:
    def __init__(self, name, position):
        self.name = name
        self.position = position


@pytest.fixture
def config(tmp_path):
    return RemConfig(x_min=0.0, x_max=20.0, x_res=3, y_min=0.0, y_max=10.0, y_res=2,
                     sim_tag="unit", output_dir=tmp_path)


@pytest.fixture
def points(config):
    pts = build_points(config)
    for i, p in enumerate(pts):
        p.store_result(float(i), float(i) - 3.0)
    return pts


class TestMapWriter:
    """Tests for the written files."""

    def test_file_names(self, config, points, tmp_path):
        written = MapWriter(config).write(points)
        names = sorted(p.name for p in written)
        assert names == sorted([
            "nr-rem-unit.out",
            "nr-rem-unit-transmitters.txt",
            "nr-rem-unit-receivers.txt",
            "nr-rem-unit-buildings.txt",
            "rem-plot-unit.gnuplot",
            "rem-summary-unit.json",
        ])
        assert all(p.parent == tmp_path for p in written)

    def test_map_records_in_order(self, config, points):
        writer = MapWriter(config)
        writer.write(points)
        rows = writer.map_path.read_text().splitlines()
        assert len(rows) == 6
        assert rows[0] == "0.0\t0.0\t1.5\t0.0\t-3.0"
        assert rows[4].split("\t")[:2] == ["10.0", "10.0"]

    def test_non_finite_replaced(self, config):
        pts = build_points(config)
        for p in pts:
            p.store_result(float("-inf"), float("nan"))
        writer = MapWriter(config)
        writer.write_map(pts)
        assert is_finite_map(writer.map_path)
        first = writer.map_path.read_text().splitlines()[0].split("\t")
        assert float(first[3]) == DEGENERATE_SAMPLE_DB
        assert float(first[4]) == DEGENERATE_SAMPLE_DB

    def test_device_and_building_listings(self, config, points):
        writer = MapWriter(config)
        writer.write(points, transmitters=[Dev("gnb-0", (1.0, 2.0, 25.0))],
                     receivers=[Dev("ue-0", (3.0, 4.0, 1.5)), Dev("ue-1", (5.0, 6.0, 1.5))],
                     buildings=[Building(0, 10, 20, 30, 15)])
        tx = writer.listing_path("transmitters").read_text().splitlines()
        assert tx == ["1.0\t2.0\t25.0\tgnb-0"]
        assert len(writer.listing_path("receivers").read_text().splitlines()) == 2
        assert writer.listing_path("buildings").read_text().strip() == "0\t20\t10\t30\t15"

    def test_plot_script_references_data(self, config, points):
        writer = MapWriter(config)
        writer.write(points)
        script = writer.plot_path.read_text()
        assert "nr-rem-unit.out" in script
        assert "set xrange [0.0:20.0]" in script
        assert "set yrange [0.0:10.0]" in script
        assert 'set output "rem-snr-unit.png"' in script
        assert 'set output "rem-sinr-unit.png"' in script

    def test_summary(self, config, tmp_path):
        pts = build_points(config)
        for i, p in enumerate(pts):
            if i == 0:
                p.store_result(DEGENERATE_SAMPLE_DB, DEGENERATE_SAMPLE_DB)
            else:
                p.store_result(float(i), float(i) - 1.0)
        writer = MapWriter(config)
        writer.write_summary(pts)
        data = json.loads(writer.summary_path.read_text())
        assert data["total_points"] == 6
        assert data["degenerate_points"] == 1
        assert data["snr_min_db"] == 1.0
        assert data["snr_max_db"] == 5.0
        assert data["sinr_mean_db"] == pytest.approx(2.0)
        assert data["config"]["sim_tag"] == "unit"

    def test_summary_all_degenerate(self, config):
        pts = build_points(config)
        for p in pts:
            p.store_result(DEGENERATE_SAMPLE_DB, DEGENERATE_SAMPLE_DB)
        summary = MapWriter(config).summarize(pts)
        assert summary.degenerate_points == 6
        assert summary.snr_mean_db is None

    def test_render_png(self, config, points, tmp_path):
        pytest.importorskip("matplotlib")
        written = MapWriter(config).render_png(points, [Dev("gnb", (10.0, 5.0, 25.0))])
        assert [p.name for p in written] == ["rem-snr-unit.png", "rem-sinr-unit.png"]
        assert all(p.stat().st_size > 0 for p in written)
