"""
Error taxonomy for radio environment map generation.

Fatal errors (ConfigurationError, ModelUnavailableError) abort the whole map
build before or during device snapshotting. NumericDegenerateSample is raised
by the strict dB conversion and recovered inside the metric calculator.
"""


class RemError(Exception):
    """Base class for all REM errors."""


class ConfigurationError(RemError, ValueError):
    """Invalid grid, unreachable device/bandwidth-part index, or band mismatch."""


class ModelUnavailableError(RemError):
    """A propagation, spectrum or condition model cannot be copied for probing."""


class NumericDegenerateSample(RemError, ArithmeticError):
    """Zero received power at a sample point; no finite dB value exists."""
