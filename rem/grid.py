"""
Rem point grid construction.

The grid is the Cartesian product of the x and y axis values at a fixed
height, ordered row-major (y outer, x inner). The order of the returned list
is the order of the output file; nothing downstream may reorder it.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from rem.config import RemConfig
from rem.errors import ConfigurationError
from rem.utils import Position


@dataclass
class SamplePoint:
    """Single rem point and its averaged result."""
    x: float
    y: float
    z: float
    avg_snr_db: Optional[float] = None
    avg_sinr_db: Optional[float] = None
    _computed: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    def position(self) -> Position:
        return (self.x, self.y, self.z)

    @property
    def computed(self) -> bool:
        return self._computed

    def store_result(self, avg_snr_db: float, avg_sinr_db: float) -> None:
        """Write the final averages. A point is written exactly once."""
        if self._computed:
            raise RuntimeError(f"Rem point {self.position} already holds a result")
        self.avg_snr_db = float(avg_snr_db)
        self.avg_sinr_db = float(avg_sinr_db)
        self._computed = True


def axis_values(v_min: float, v_max: float, res: int) -> List[float]:
    """
    Sample values along one axis.

    Args:
        v_min, v_max: axis limits
        res: number of points (1 collapses the axis to v_min)

    Returns:
        res values, first v_min and last v_max when res > 1
    """
    if res < 1:
        raise ConfigurationError(f"Axis resolution must be >= 1, got {res}")
    if res == 1:
        return [float(v_min)]
    step = (v_max - v_min) / (res - 1)
    values = [v_min + i * step for i in range(res - 1)]
    values.append(float(v_max))
    return values


def build_points(config: RemConfig) -> List[SamplePoint]:
    """Create the ordered list of rem points for a configuration."""
    xs = axis_values(config.x_min, config.x_max, config.x_res)
    ys = axis_values(config.y_min, config.y_max, config.y_res)
    return [SamplePoint(x=x, y=y, z=config.z) for y in ys for x in xs]


def grid_shape(config: RemConfig) -> Tuple[int, int]:
    """(rows, columns) of the map image, i.e. (y_res, x_res)."""
    return config.y_res, config.x_res


def as_image(points: List[SamplePoint], config: RemConfig, attr: str = "avg_snr_db") -> np.ndarray:
    """Reshape one result attribute of the point list into a (y_res, x_res) array."""
    values = np.array(
        [np.nan if getattr(p, attr) is None else getattr(p, attr) for p in points],
        dtype=float,
    )
    return values.reshape(grid_shape(config))
