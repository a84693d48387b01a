"""Measurement file reading and estimate output for ukf-fusion."""

from .dataset import (
    format_package,
    iter_measurements,
    measurement_position,
    parse_line,
    read_measurements,
    write_estimates,
    write_measurements,
)

__all__ = [
    "parse_line",
    "iter_measurements",
    "read_measurements",
    "format_package",
    "write_measurements",
    "write_estimates",
    "measurement_position",
]
