"""
Uniform planar antenna array with beam steering.

The panel lies in its local y-z plane with boresight along local +x. The
panel is rotated by `downtilt` about y and then by `bearing` about z to
obtain global coordinates. Element positions are on a rows x columns grid
spaced `spacing` wavelengths apart.

Gain towards a direction is the element pattern plus the array gain
|w^H a|^2, where a is the steering vector of the direction and w the
normalised steering vector of the current beam. With no beam set
(quasi-omni) only the element pattern applies.

Angles are radians throughout: azimuth from +x towards +y, zenith from +z.
"""

import copy
import math
from typing import Optional, Tuple

import numpy as np

from rem.errors import ConfigurationError
from rem.utils import Position, direction_angles

ISOTROPIC = "isotropic"
THREE_GPP = "three_gpp"
SUPPORTED_ELEMENTS = (ISOTROPIC, THREE_GPP)

# 3GPP TR 38.901 Table 7.3-1
ELEMENT_MAX_GAIN_DBI = 8.0
ELEMENT_BEAMWIDTH_DEG = 65.0
ELEMENT_SLA_DB = 30.0
ELEMENT_A_MAX_DB = 30.0

Beam = Tuple[float, float]


def element_gain_db(element_type: str, azimuth: float, zenith: float) -> float:
    """Element pattern gain in dBi for local panel angles."""
    if element_type == ISOTROPIC:
        return 0.0
    theta_deg = math.degrees(zenith)
    phi_deg = math.degrees(azimuth)
    a_v = -min(12.0 * ((theta_deg - 90.0) / ELEMENT_BEAMWIDTH_DEG) ** 2, ELEMENT_SLA_DB)
    a_h = -min(12.0 * (phi_deg / ELEMENT_BEAMWIDTH_DEG) ** 2, ELEMENT_A_MAX_DB)
    return -min(-(a_v + a_h), ELEMENT_A_MAX_DB) + ELEMENT_MAX_GAIN_DBI


class AntennaArray:
    """
    Uniform planar array.

    Example:
        ant = AntennaArray(rows=4, columns=8, element_type="three_gpp")
        ant.point_towards(gnb_position, ue_position)
        g = ant.gain_db(azimuth, zenith)
    """

    def __init__(
        self,
        rows: int = 1,
        columns: int = 1,
        element_type: str = ISOTROPIC,
        spacing: float = 0.5,
        bearing: float = 0.0,
        downtilt: float = 0.0,
    ):
        if element_type not in SUPPORTED_ELEMENTS:
            raise ConfigurationError(
                f"Unsupported antenna element {element_type!r} "
                f"(expected one of: {', '.join(SUPPORTED_ELEMENTS)})"
            )
        if rows < 1 or columns < 1:
            raise ConfigurationError(f"Antenna array needs at least one element, got {rows}x{columns}")
        if spacing <= 0:
            raise ConfigurationError(f"Element spacing must be positive, got {spacing}")

        self.rows = int(rows)
        self.columns = int(columns)
        self.element_type = element_type
        self.spacing = float(spacing)
        self.bearing = float(bearing)
        self.downtilt = float(downtilt)
        self._beam: Optional[Beam] = None

        # Element positions (local y, local z) in wavelengths
        cols, rws = np.meshgrid(np.arange(self.columns), np.arange(self.rows))
        self._element_yz = np.stack(
            [cols.ravel() * self.spacing, rws.ravel() * self.spacing], axis=1
        )

    @property
    def num_elements(self) -> int:
        return self.rows * self.columns

    @property
    def beam(self) -> Optional[Beam]:
        """Current steering direction (azimuth, zenith), None when quasi-omni."""
        return self._beam

    @beam.setter
    def beam(self, value: Optional[Beam]):
        self._beam = None if value is None else (float(value[0]), float(value[1]))

    def set_quasi_omni(self) -> None:
        self._beam = None

    def point_towards(self, src: Position, dst: Position) -> Beam:
        """Steer the beam from src (the antenna position) to dst."""
        self._beam = direction_angles(src, dst)
        return self._beam

    # ------------------------------------------------------------------
    # Gain
    # ------------------------------------------------------------------

    def to_local(self, azimuth: float, zenith: float) -> Tuple[float, float]:
        """Convert global angles to panel-local angles."""
        v = np.array([
            math.sin(zenith) * math.cos(azimuth),
            math.sin(zenith) * math.sin(azimuth),
            math.cos(zenith),
        ])
        ca, sa = math.cos(self.bearing), math.sin(self.bearing)
        ct, st = math.cos(self.downtilt), math.sin(self.downtilt)
        rz = np.array([[ca, -sa, 0.0], [sa, ca, 0.0], [0.0, 0.0, 1.0]])
        ry = np.array([[ct, 0.0, st], [0.0, 1.0, 0.0], [-st, 0.0, ct]])
        x, y, z = (rz @ ry).T @ v
        return math.atan2(y, x), math.acos(max(-1.0, min(1.0, z)))

    def steering_vector(self, azimuth: float, zenith: float) -> np.ndarray:
        """Array response towards a global direction."""
        phi, theta = self.to_local(azimuth, zenith)
        u_y = math.sin(theta) * math.sin(phi)
        u_z = math.cos(theta)
        phase = 2.0 * np.pi * (self._element_yz[:, 0] * u_y + self._element_yz[:, 1] * u_z)
        return np.exp(1j * phase)

    def array_gain_db(self, azimuth: float, zenith: float) -> float:
        if self._beam is None or self.num_elements == 1:
            return 0.0
        w = self.steering_vector(*self._beam) / math.sqrt(self.num_elements)
        a = self.steering_vector(azimuth, zenith)
        g = abs(np.vdot(w, a)) ** 2
        return 10.0 * math.log10(g) if g > 0 else -np.inf

    def gain_db(self, azimuth: float, zenith: float) -> float:
        """Total gain in dBi towards a global direction."""
        phi, theta = self.to_local(azimuth, zenith)
        return element_gain_db(self.element_type, phi, theta) + self.array_gain_db(azimuth, zenith)

    def gain_towards(self, src: Position, dst: Position) -> float:
        return self.gain_db(*direction_angles(src, dst))

    def copy(self) -> "AntennaArray":
        return copy.deepcopy(self)

    def __repr__(self):
        return (f"AntennaArray({self.rows}x{self.columns}, {self.element_type}, "
                f"bearing={math.degrees(self.bearing):.1f}deg, beam={self._beam})")
