"""
Radio environment map output.

OUTPUT (all under the configured output directory):
  nr-rem-<tag>.out                 x  y  z  avgSnrDb  avgSinrDb   (tab separated)
  nr-rem-<tag>-transmitters.txt    x  y  z  name
  nr-rem-<tag>-receivers.txt       x  y  z  name
  nr-rem-<tag>-buildings.txt       x_min  y_min  x_max  y_max  height
  rem-plot-<tag>.gnuplot           SNR and SINR images with devices overlaid
  rem-summary-<tag>.json           point statistics and configuration
  rem-snr-<tag>.png / rem-sinr-<tag>.png   (render_png only)

Records are written in the order of the point list.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from rem.config import RemConfig
from rem.grid import SamplePoint, as_image
from rem.utils import DEGENERATE_SAMPLE_DB, finite_or_sentinel

logger = logging.getLogger(__name__)


@dataclass
class RemSummary:
    """Statistics over the non-degenerate points of a map."""
    total_points: int
    degenerate_points: int
    snr_min_db: Optional[float]
    snr_max_db: Optional[float]
    snr_mean_db: Optional[float]
    sinr_min_db: Optional[float]
    sinr_max_db: Optional[float]
    sinr_mean_db: Optional[float]
    config: Dict[str, Any]


def _value(v: Optional[float]) -> float:
    return DEGENERATE_SAMPLE_DB if v is None else finite_or_sentinel(v)


def _stats(values: List[float]):
    if not values:
        return None, None, None
    return min(values), max(values), float(np.mean(values))


class MapWriter:
    """Writes the map, the device listings and the plot script."""

    def __init__(self, config: RemConfig, output_dir: Optional[Path] = None):
        self.config = config
        self.output_dir = Path(output_dir) if output_dir is not None else Path(config.output_dir)
        self.tag = config.sim_tag

    @property
    def map_path(self) -> Path:
        return self.output_dir / f"nr-rem-{self.tag}.out"

    def listing_path(self, category: str) -> Path:
        return self.output_dir / f"nr-rem-{self.tag}-{category}.txt"

    @property
    def plot_path(self) -> Path:
        return self.output_dir / f"rem-plot-{self.tag}.gnuplot"

    @property
    def summary_path(self) -> Path:
        return self.output_dir / f"rem-summary-{self.tag}.json"

    # ------------------------------------------------------------------

    def write(
        self,
        points: Sequence[SamplePoint],
        transmitters: Sequence = (),
        receivers: Sequence = (),
        buildings: Sequence = (),
    ) -> List[Path]:
        """Write every output file. Returns the written paths."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        written = [
            self.write_map(points),
            self.write_devices("transmitters", transmitters),
            self.write_devices("receivers", receivers),
            self.write_buildings(buildings),
            self.write_plot_script(),
            self.write_summary(points),
        ]
        logger.info(f"Wrote {len(points)} rem points to {self.map_path}")
        return written

    def write_map(self, points: Sequence[SamplePoint]) -> Path:
        with self.map_path.open("w", encoding="utf-8") as f:
            for p in points:
                f.write(f"{p.x}\t{p.y}\t{p.z}\t{_value(p.avg_snr_db)}\t{_value(p.avg_sinr_db)}\n")
        return self.map_path

    def write_devices(self, category: str, devices: Sequence) -> Path:
        path = self.listing_path(category)
        with path.open("w", encoding="utf-8") as f:
            for d in devices:
                x, y, z = d.position
                f.write(f"{x}\t{y}\t{z}\t{getattr(d, 'name', '')}\n")
        return path

    def write_buildings(self, buildings: Sequence) -> Path:
        path = self.listing_path("buildings")
        with path.open("w", encoding="utf-8") as f:
            for b in buildings:
                f.write(f"{b.x_min}\t{b.y_min}\t{b.x_max}\t{b.y_max}\t{b.height}\n")
        return path

    def write_plot_script(self) -> Path:
        c = self.config
        lines = [
            'set xlabel "x-coordinate (m)"',
            'set ylabel "y-coordinate (m)"',
            "set size ratio -1",
            "set terminal png size 1024,768",
            f"set xrange [{c.x_min}:{c.x_max}]",
            f"set yrange [{c.y_min}:{c.y_max}]",
            "unset key",
            "set palette defined (0 '#000090', 1 '#000fff', 2 '#0090ff', 3 '#0fffee', "
            "4 '#90ff70', 5 '#ffee00', 6 '#ff7000', 7 '#ee0000', 8 '#7f0000')",
            f'buildings = "{self.listing_path("buildings").name}"',
            f'transmitters = "{self.listing_path("transmitters").name}"',
            f'receivers = "{self.listing_path("receivers").name}"',
        ]
        for column, metric in ((4, "snr"), (5, "sinr")):
            lines += [
                "",
                f'set output "rem-{metric}-{self.tag}.png"',
                f'set cblabel "{metric.upper()} (dB)"',
                f'plot "{self.map_path.name}" using 1:2:{column} with image, \\',
                "     buildings using (($1+$3)/2):(($2+$4)/2):(($3-$1)/2):(($4-$2)/2) "
                "with boxxyerror lc rgb 'grey' fs solid, \\",
                "     transmitters using 1:2 with points pt 7 ps 1.5 lc rgb 'white', \\",
                "     receivers using 1:2 with points pt 1 ps 0.8 lc rgb 'black'",
            ]
        self.plot_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return self.plot_path

    def summarize(self, points: Sequence[SamplePoint]) -> RemSummary:
        snr = [_value(p.avg_snr_db) for p in points]
        sinr = [_value(p.avg_sinr_db) for p in points]
        valid = [i for i, v in enumerate(snr) if v != DEGENERATE_SAMPLE_DB]
        snr_stats = _stats([snr[i] for i in valid])
        sinr_stats = _stats([sinr[i] for i in valid])
        return RemSummary(
            total_points=len(points),
            degenerate_points=len(points) - len(valid),
            snr_min_db=snr_stats[0],
            snr_max_db=snr_stats[1],
            snr_mean_db=snr_stats[2],
            sinr_min_db=sinr_stats[0],
            sinr_max_db=sinr_stats[1],
            sinr_mean_db=sinr_stats[2],
            config=self.config.to_dict(),
        )

    def write_summary(self, points: Sequence[SamplePoint]) -> Path:
        with self.summary_path.open("w", encoding="utf-8") as f:
            json.dump(asdict(self.summarize(points)), f, indent=2)
        return self.summary_path

    def render_png(self, points: Sequence[SamplePoint], transmitters: Sequence = ()) -> List[Path]:
        """Draw SNR and SINR heat maps with matplotlib."""
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        self.output_dir.mkdir(parents=True, exist_ok=True)
        extent = [self.config.x_min, self.config.x_max, self.config.y_min, self.config.y_max]
        written = []
        for attr, label in (("avg_snr_db", "SNR"), ("avg_sinr_db", "SINR")):
            image = as_image(points, self.config, attr)
            image[image <= DEGENERATE_SAMPLE_DB] = np.nan
            fig, ax = plt.subplots(figsize=(8, 6))
            im = ax.imshow(image, origin="lower", extent=extent, cmap="jet", aspect="equal")
            for d in transmitters:
                ax.plot(d.position[0], d.position[1], "w^", markersize=8)
            ax.set_xlabel("x-coordinate (m)")
            ax.set_ylabel("y-coordinate (m)")
            ax.set_title(f"{label} - {self.tag}")
            fig.colorbar(im, ax=ax, label=f"{label} (dB)")
            path = self.output_dir / f"rem-{label.lower()}-{self.tag}.png"
            fig.savefig(path, dpi=120, bbox_inches="tight")
            plt.close(fig)
            written.append(path)
            logger.info(f"Rendered {path}")
        return written


def is_finite_map(path: Path) -> bool:
    """True if every record of a written map holds five finite numbers."""
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            fields = line.rstrip("\n").split("\t")
            if len(fields) != 5 or not all(math.isfinite(float(v)) for v in fields):
                return False
    return True
