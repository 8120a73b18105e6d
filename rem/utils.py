"""
Utility functions for REM processing: unit conversion and geometry.
"""

import math
from typing import Sequence, Tuple

import numpy as np

from rem.errors import NumericDegenerateSample

# Reported instead of -inf when a point receives no power at all
DEGENERATE_SAMPLE_DB = -500.0

Position = Tuple[float, float, float]


def db_to_linear(db):
    """Convert dB to linear scale."""
    return 10.0 ** (np.asarray(db, dtype=float) / 10.0)


def linear_to_db_strict(linear: float) -> float:
    """
    Convert linear scale to dB.

    Raises:
        NumericDegenerateSample: if the value is zero, negative or not finite
    """
    if not math.isfinite(linear) or linear <= 0.0:
        raise NumericDegenerateSample(f"cannot convert {linear!r} to dB")
    return 10.0 * math.log10(linear)


def dbm_to_watts(power_dbm: float) -> float:
    """Convert dBm to Watts."""
    return 10.0 ** ((power_dbm - 30.0) / 10.0)


def finite_or_sentinel(value_db: float) -> float:
    """Replace NaN/Inf with the degenerate-sample sentinel."""
    return value_db if math.isfinite(value_db) else DEGENERATE_SAMPLE_DB


def as_position(values: Sequence[float]) -> Position:
    """Copy a 3-element sequence into an immutable (x, y, z) tuple."""
    if len(values) != 3:
        raise ValueError(f"Position needs 3 coordinates, got {len(values)}")
    return (float(values[0]), float(values[1]), float(values[2]))


def distance_2d(a: Position, b: Position) -> float:
    """Horizontal distance in meters."""
    return math.hypot(b[0] - a[0], b[1] - a[1])


def distance_3d(a: Position, b: Position) -> float:
    """Euclidean distance in meters."""
    return math.sqrt((b[0] - a[0]) ** 2 + (b[1] - a[1]) ** 2 + (b[2] - a[2]) ** 2)


def direction_angles(src: Position, dst: Position) -> Tuple[float, float]:
    """
    Angles of the vector from src to dst.

    Returns:
        (azimuth, zenith) in radians. Azimuth is measured from +x towards +y,
        zenith from +z (pi/2 is the horizon).
    """
    dx, dy, dz = dst[0] - src[0], dst[1] - src[1], dst[2] - src[2]
    r = math.sqrt(dx * dx + dy * dy + dz * dz)
    if r == 0.0:
        return 0.0, math.pi / 2
    return math.atan2(dy, dx), math.acos(max(-1.0, min(1.0, dz / r)))
