"""
REM configuration constants and data structures.

A RemConfig is created once per map, validated on construction and never
modified afterwards (the dataclass is frozen). It can be built from keyword
arguments, a plain dict, or a YAML scenario file:

    config = RemConfig.from_yaml("scenarios/uma.yaml")
    config = dataclasses.replace(config, iterations=10)
"""

from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from rem.errors import ConfigurationError


class RemMode(Enum):
    """Map types."""
    BEAM_SHAPE = "BeamShape"        # keep the beams configured by the scenario
    COVERAGE_AREA = "CoverageArea"  # re-aim every beam at each rem point


class WidebandPolicy(Enum):
    """How per-bin SNR/SINR values are reduced to a single wideband value."""
    MAX = "max"            # peak bin, best current condition
    MEAN = "mean"          # arithmetic mean over bins
    CAPACITY = "capacity"  # SNR of the mean spectral efficiency


# Defaults
DEFAULT_Z_M = 1.5
DEFAULT_ITERATIONS = 1
DEFAULT_SIM_TAG = "default"
DEFAULT_OUTPUT_DIR = Path(".")


@dataclass(frozen=True)
class RemConfig:
    """Map configuration: mode, bounding box, averaging and output naming."""
    mode: RemMode = RemMode.BEAM_SHAPE

    # Bounding box
    x_min: float = -50.0
    x_max: float = 50.0
    x_res: int = 100
    y_min: float = -50.0
    y_max: float = 50.0
    y_res: int = 100
    z: float = DEFAULT_Z_M

    # Computation
    iterations: int = DEFAULT_ITERATIONS
    installation_delay_s: float = 0.0
    wideband_policy: WidebandPolicy = WidebandPolicy.MAX
    seed: Optional[int] = None
    noise_figure_db: Optional[float] = None

    # Target devices
    bwp_index: int = 0
    sector_index: int = 1

    # Output
    sim_tag: str = DEFAULT_SIM_TAG
    output_dir: Path = DEFAULT_OUTPUT_DIR
    progress_every: int = 100

    def __post_init__(self):
        """Validate configuration."""
        if not isinstance(self.mode, RemMode):
            raise ConfigurationError(f"mode must be a RemMode, got {self.mode!r}")
        if not isinstance(self.wideband_policy, WidebandPolicy):
            raise ConfigurationError(
                f"wideband_policy must be a WidebandPolicy, got {self.wideband_policy!r}"
            )
        for axis in ("x", "y"):
            res = getattr(self, f"{axis}_res")
            lo = getattr(self, f"{axis}_min")
            hi = getattr(self, f"{axis}_max")
            if isinstance(res, bool) or not isinstance(res, int) or res < 1:
                raise ConfigurationError(f"{axis}_res must be an integer >= 1, got {res!r}")
            if hi < lo:
                raise ConfigurationError(f"{axis}_max ({hi}) must not be below {axis}_min ({lo})")
        if self.iterations < 1:
            raise ConfigurationError(f"iterations must be >= 1, got {self.iterations}")
        if self.installation_delay_s < 0:
            raise ConfigurationError(
                f"installation_delay_s must be non-negative, got {self.installation_delay_s}"
            )
        if self.bwp_index < 0:
            raise ConfigurationError(f"bwp_index must be non-negative, got {self.bwp_index}")
        if self.sector_index < 1:
            raise ConfigurationError(f"sector_index is 1-based, got {self.sector_index}")
        if self.progress_every < 1:
            raise ConfigurationError(f"progress_every must be >= 1, got {self.progress_every}")
        if not self.sim_tag or any(c in self.sim_tag for c in "/\\ "):
            raise ConfigurationError(f"sim_tag must be a non-empty file-name token, got {self.sim_tag!r}")

    @property
    def x_step(self) -> float:
        """Distance along x between adjacent rem points."""
        return (self.x_max - self.x_min) / (self.x_res - 1) if self.x_res > 1 else 0.0

    @property
    def y_step(self) -> float:
        """Distance along y between adjacent rem points."""
        return (self.y_max - self.y_min) / (self.y_res - 1) if self.y_res > 1 else 0.0

    @property
    def num_points(self) -> int:
        return self.x_res * self.y_res

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict with enums and paths flattened, for JSON output."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, Path):
                value = str(value)
            out[f.name] = value
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemConfig":
        """
        Build a configuration from a plain dict (e.g. a YAML "rem" section).

        Enum fields accept either the enum value ("CoverageArea", "max") or
        the member name ("COVERAGE_AREA").

        Raises:
            ConfigurationError: on unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown REM configuration keys: {', '.join(unknown)}")

        kwargs = dict(data)
        if "mode" in kwargs:
            kwargs["mode"] = _parse_enum(RemMode, kwargs["mode"], "mode")
        if "wideband_policy" in kwargs:
            kwargs["wideband_policy"] = _parse_enum(
                WidebandPolicy, kwargs["wideband_policy"], "wideband_policy"
            )
        if "output_dir" in kwargs:
            kwargs["output_dir"] = Path(kwargs["output_dir"])
        if "sim_tag" in kwargs:
            kwargs["sim_tag"] = str(kwargs["sim_tag"])
        for name in ("x_min", "x_max", "y_min", "y_max", "z", "installation_delay_s"):
            if name in kwargs:
                kwargs[name] = _as_number(kwargs[name], float, name)
        for name in ("x_res", "y_res", "iterations", "bwp_index", "sector_index", "progress_every"):
            if name in kwargs:
                kwargs[name] = _as_number(kwargs[name], int, name)
        if kwargs.get("noise_figure_db") is not None:
            kwargs["noise_figure_db"] = _as_number(kwargs["noise_figure_db"], float, "noise_figure_db")
        if kwargs.get("seed") is not None:
            kwargs["seed"] = _as_number(kwargs["seed"], int, "seed")
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Union[str, Path], section: Optional[str] = "rem") -> "RemConfig":
        """
        Load a configuration from a YAML file.

        Args:
            path: YAML file path
            section: top-level key holding the REM settings (None for the whole file)
        """
        data = load_yaml(path)
        if section is not None:
            data = data.get(section, {})
        if not isinstance(data, dict):
            raise ConfigurationError(f"REM section of {path} must be a mapping")
        return cls.from_dict(data)


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML mapping, returning {} for an empty file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a YAML mapping")
    return data


def _parse_enum(enum_cls, value, name: str):
    if isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if value == member.value or (isinstance(value, str) and value.upper() == member.name):
            return member
    choices = ", ".join(m.value for m in enum_cls)
    raise ConfigurationError(f"Invalid {name} {value!r} (expected one of: {choices})")


def _as_number(value, kind, name: str):
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be numeric, got {value!r}")
    try:
        number = kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be numeric, got {value!r}") from e
    if kind is int and float(value) != number:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    return number
