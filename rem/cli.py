#!/usr/bin/env python3
"""
Radio Environment Map generator command line.

Builds a demo hexagonal deployment, installs the map engine for one sector
and runs it on a simpy host.

USAGE:
  # UMa defaults, 100x100 beam-shape map
  nr-rem --scenario UMa --sim-tag uma

  # From a scenario file, with overrides
  nr-rem --config scenarios/umi.yaml --mode CoverageArea --iterations 5 --png

  # Fit the map to the deployment
  nr-rem --scenario RMa --num-rings 1 --fit-deployment --x-res 50 --y-res 50

OUTPUT:
  <out-dir>/<sim_tag>/<run_id>/nr-rem-<sim_tag>.out
  <out-dir>/<sim_tag>/<run_id>/nr-rem-<sim_tag>-{transmitters,receivers,buildings}.txt
  <out-dir>/<sim_tag>/<run_id>/rem-plot-<sim_tag>.gnuplot
  <out-dir>/<sim_tag>/<run_id>/rem-summary-<sim_tag>.json
  <out-dir>/<sim_tag>/<run_id>/run_manifest.json
"""

import argparse
import dataclasses
import json
import logging
import sys
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rem.config import RemConfig
from rem.engine import RemEngine
from rem.errors import RemError
from rem.host import SimpyHost
from rem.scenario import DeploymentConfig, create_deployment, load_scenario
from rem.writer import MapWriter

logger = logging.getLogger(__name__)

DEFAULT_OUT_DIR = Path("OUTPUTS")


@dataclass
class RunManifest:
    """Metadata for a map generation run."""
    run_id: str
    sim_tag: str
    timestamp: str
    args: Dict[str, Any]
    success: bool = False
    error_message: str = ""
    output_files: List[str] = field(default_factory=list)
    duration_sec: float = 0.0


def generate_run_id(sim_tag: str) -> Tuple[str, str]:
    """
    Generate a unique run ID with UTC timestamp.

    Returns:
        Tuple of (run_id, timestamp_str)
        run_id format: <sim_tag>_rem_<YYYYMMDDTHHMMSSZ>
    """
    now = datetime.now(timezone.utc)
    timestamp_str = now.strftime("%Y%m%dT%H%M%SZ")
    return f"{sim_tag}_rem_{timestamp_str}", timestamp_str


def write_run_manifest(manifest: RunManifest, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(asdict(manifest), f, indent=2)
    logger.info(f"Wrote run manifest: {output_path}")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="NR Radio Environment Map generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("USAGE:")[1] if __doc__ else None,
    )

    parser.add_argument("--config", type=str, help="Scenario YAML with 'deployment' and 'rem' sections")
    parser.add_argument("--out-dir", type=str, default=str(DEFAULT_OUT_DIR),
                        help=f"Output directory root (default: {DEFAULT_OUT_DIR})")
    parser.add_argument("--png", action="store_true", help="Also render SNR/SINR heat maps")
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    # Deployment overrides
    deploy = parser.add_argument_group("deployment")
    deploy.add_argument("--scenario", type=str, help="UMa, UMi or RMa")
    deploy.add_argument("--num-rings", type=int, help="Outer rings around the central site (0-3)")
    deploy.add_argument("--num-buildings", type=int, help="Random buildings to drop")
    deploy.add_argument("--deployment-seed", type=int, help="Seed for UE and building drops")

    # Map overrides
    rem = parser.add_argument_group("map")
    rem.add_argument("--mode", type=str, help="BeamShape or CoverageArea")
    rem.add_argument("--sector", dest="sector_index", type=int, help="Sector to map (1-3)")
    rem.add_argument("--x-min", type=float)
    rem.add_argument("--x-max", type=float)
    rem.add_argument("--x-res", type=int)
    rem.add_argument("--y-min", type=float)
    rem.add_argument("--y-max", type=float)
    rem.add_argument("--y-res", type=int)
    rem.add_argument("--z", type=float, help="Map height (m)")
    rem.add_argument("--iterations", type=int, help="Channel realizations averaged per point")
    rem.add_argument("--installation-delay-s", type=float, help="Settle delay before the build")
    rem.add_argument("--wideband-policy", type=str, help="max, mean or capacity")
    rem.add_argument("--seed", type=int, help="Root seed of the channel models")
    rem.add_argument("--sim-tag", type=str, help="Output file name suffix")
    rem.add_argument("--fit-deployment", action="store_true",
                     help="Set the map extent to the deployment plus half an ISD")

    return parser.parse_args(argv)


REM_OVERRIDES = (
    "mode", "sector_index", "x_min", "x_max", "x_res", "y_min", "y_max", "y_res", "z",
    "iterations", "installation_delay_s", "wideband_policy", "seed", "sim_tag",
)


def resolve_configs(args: argparse.Namespace) -> Tuple[DeploymentConfig, RemConfig]:
    """Scenario file values, overridden by command-line values."""
    if args.config:
        deployment_cfg, rem_cfg = load_scenario(args.config)
    else:
        deployment_cfg, rem_cfg = DeploymentConfig(), RemConfig()

    deploy_updates = {}
    if args.scenario is not None:
        deploy_updates["scenario"] = args.scenario
    if args.num_rings is not None:
        deploy_updates["num_rings"] = args.num_rings
    if args.num_buildings is not None:
        deploy_updates["num_buildings"] = args.num_buildings
    if args.deployment_seed is not None:
        deploy_updates["seed"] = args.deployment_seed
    if deploy_updates:
        merged = {f.name: getattr(deployment_cfg, f.name) for f in dataclasses.fields(deployment_cfg)}
        merged.update(deploy_updates)
        deployment_cfg = DeploymentConfig.from_dict(merged)

    rem_updates = {name: getattr(args, name) for name in REM_OVERRIDES if getattr(args, name) is not None}
    if rem_updates:
        merged = rem_cfg.to_dict()
        merged.update(rem_updates)
        rem_cfg = RemConfig.from_dict(merged)
    return deployment_cfg, rem_cfg


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    start_time = time.time()
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S'
    )

    try:
        deployment_cfg, rem_cfg = resolve_configs(args)
    except RemError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    run_id, timestamp_str = generate_run_id(rem_cfg.sim_tag)
    run_dir = Path(args.out_dir) / rem_cfg.sim_tag / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    rem_cfg = dataclasses.replace(rem_cfg, output_dir=run_dir)
    logger.info(f"Run ID: {run_id}")
    logger.info(f"Output directory: {run_dir}")

    manifest = RunManifest(
        run_id=run_id,
        sim_tag=rem_cfg.sim_tag,
        timestamp=timestamp_str,
        args=dict(vars(args)),
    )
    manifest_path = run_dir / "run_manifest.json"

    try:
        deployment = create_deployment(deployment_cfg)
        if args.fit_deployment:
            x_min, x_max, y_min, y_max = deployment.bounding_box(deployment_cfg.preset.isd_m / 2.0)
            rem_cfg = dataclasses.replace(rem_cfg, x_min=x_min, x_max=x_max, y_min=y_min, y_max=y_max)
        gnbs, ue = deployment.sector_devices(rem_cfg.sector_index)

        writer = MapWriter(rem_cfg)
        engine = RemEngine(rem_cfg, buildings=deployment.buildings, receivers=deployment.ues,
                           writer=writer)
        host = SimpyHost()
        engine.install(gnbs, ue, rem_cfg.bwp_index, schedule=host.schedule)
        host.run()

        output_files = list(engine.output_files)
        if args.png:
            output_files += writer.render_png(engine.points, gnbs)
    except RemError as e:
        logger.error(f"REM generation failed: {e}")
        manifest.error_message = str(e)
        manifest.duration_sec = time.time() - start_time
        write_run_manifest(manifest, manifest_path)
        return 1

    manifest.success = True
    manifest.duration_sec = time.time() - start_time
    manifest.output_files = [p.name for p in output_files] + [manifest_path.name]
    manifest.args["config"] = rem_cfg.to_dict()
    write_run_manifest(manifest, manifest_path)

    logger.info(f"Done: {len(engine.points)} points, {engine.degenerate_points} degenerate, "
                f"{manifest.duration_sec:.1f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
