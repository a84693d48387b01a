"""
Reading recorded measurement streams and writing estimates.

Input format (one package per line, whitespace separated):

    L  px   py   timestamp_us  [gt_px gt_py gt_vx gt_vy [gt_yaw gt_yaw_rate]]
    R  rho  phi  rho_dot  timestamp_us  [gt_px gt_py gt_vx gt_vy [gt_yaw gt_yaw_rate]]

Output format (tab separated, header line first): timestamp, sensor, the
five state components, NIS, the raw measurement converted to Cartesian
position and, when available, the ground truth.
"""

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, TextIO, Union

import numpy as np

from ..fusion.errors import InvalidMeasurementError
from ..fusion.ukf import EstimatorOutput, ProcessingStatus
from ..sensors.package import MEASUREMENT_DIMENSIONS, MeasurementPackage, SensorType

logger = logging.getLogger(__name__)

SENSOR_CODES = {
    'L': SensorType.LIDAR,
    'R': SensorType.RADAR,
}

GROUND_TRUTH_LENGTHS = (0, 4, 6)

OUTPUT_COLUMNS = [
    'timestamp_us', 'sensor', 'px', 'py', 'v', 'yaw', 'yaw_rate', 'nis',
    'meas_px', 'meas_py', 'gt_px', 'gt_py', 'gt_vx', 'gt_vy',
]


def parse_line(line: str, line_number: int = 0) -> Optional[MeasurementPackage]:
    """
    Parse one line of a measurement file.

    Args:
        line: Text line
        line_number: Line number used in error messages

    Returns:
        MeasurementPackage, or None for blank and comment lines

    Raises:
        InvalidMeasurementError: If the line is malformed
    """
    fields = line.split()
    if not fields or fields[0].startswith('#'):
        return None

    code = fields[0].upper()
    if code not in SENSOR_CODES:
        raise InvalidMeasurementError(f"Line {line_number}: unknown sensor code {fields[0]!r}")
    sensor_type = SENSOR_CODES[code]
    dimension = MEASUREMENT_DIMENSIONS[sensor_type]

    values = fields[1:]
    if len(values) < dimension + 1:
        raise InvalidMeasurementError(
            f"Line {line_number}: {sensor_type.value} needs {dimension} values and a timestamp")

    try:
        measurement = np.array([float(v) for v in values[:dimension]])
        timestamp_us = int(values[dimension])
        ground_truth = np.array([float(v) for v in values[dimension + 1:]])
    except ValueError as exc:
        raise InvalidMeasurementError(f"Line {line_number}: {exc}") from exc

    if len(ground_truth) not in GROUND_TRUTH_LENGTHS:
        raise InvalidMeasurementError(
            f"Line {line_number}: ground truth must have 4 or 6 values, got {len(ground_truth)}")

    package = MeasurementPackage(
        sensor_type=sensor_type,
        timestamp_us=timestamp_us,
        raw_measurements=measurement,
        ground_truth=ground_truth if len(ground_truth) else None,
    )
    package.validate()
    return package


def iter_measurements(stream: TextIO, skip_invalid: bool = False) -> Iterator[MeasurementPackage]:
    """
    Yield packages from an open text stream.

    Args:
        stream: Text stream in the measurement line format
        skip_invalid: Log and skip malformed lines instead of raising
    """
    for line_number, line in enumerate(stream, start=1):
        try:
            package = parse_line(line, line_number)
        except InvalidMeasurementError as exc:
            if not skip_invalid:
                raise
            logger.warning(f"Skipping malformed line: {exc}")
            continue
        if package is not None:
            yield package


def read_measurements(path: Union[str, Path], skip_invalid: bool = False) -> List[MeasurementPackage]:
    """
    Read every package from a measurement file.

    Args:
        path: Measurement file
        skip_invalid: Log and skip malformed lines instead of raising

    Raises:
        InvalidMeasurementError: On the first malformed line, unless skipped
    """
    path = Path(path)
    with path.open('r', encoding='utf-8') as f:
        packages = list(iter_measurements(f, skip_invalid=skip_invalid))
    logger.info(f"Read {len(packages)} measurement packages from {path}")
    return packages


def format_package(package: MeasurementPackage) -> str:
    """Serialize a package back into the input line format."""
    code = 'L' if package.sensor_type is SensorType.LIDAR else 'R'
    fields = [code]
    fields.extend(f"{value:.6f}" for value in package.raw_measurements)
    fields.append(str(package.timestamp_us))
    if package.ground_truth is not None:
        fields.extend(f"{value:.6f}" for value in package.ground_truth)
    return '\t'.join(fields)


def write_measurements(path: Union[str, Path], packages: Iterable[MeasurementPackage]) -> None:
    """Write packages in the input line format."""
    with Path(path).open('w', encoding='utf-8') as f:
        for package in packages:
            f.write(format_package(package) + '\n')


def measurement_position(sensor_type: SensorType, measurement: np.ndarray) -> np.ndarray:
    """Cartesian position implied by a raw measurement."""
    if sensor_type is SensorType.LIDAR:
        return np.asarray(measurement[:2], dtype=float)
    rho, phi = measurement[0], measurement[1]
    return np.array([rho * np.cos(phi), rho * np.sin(phi)])


def write_estimates(path: Union[str, Path], outputs: Iterable[EstimatorOutput]) -> int:
    """
    Write estimator outputs as a tab-separated table.

    Outputs of ignored packages carry no estimate for their timestamp and
    are left out.

    Returns:
        Number of rows written
    """
    rows = 0
    with Path(path).open('w', encoding='utf-8') as f:
        f.write('\t'.join(OUTPUT_COLUMNS) + '\n')
        for output in outputs:
            if output.status is ProcessingStatus.IGNORED:
                continue
            meas = measurement_position(output.sensor_type, output.measurement)
            gt = output.ground_truth[:4] if output.ground_truth is not None else [np.nan] * 4
            nis = output.nis if output.nis is not None else np.nan
            values = [str(output.timestamp_us), output.sensor_type.value]
            values.extend(f"{value:.6f}" for value in (*output.state, nis, *meas, *gt))
            f.write('\t'.join(values) + '\n')
            rows += 1
    logger.info(f"Wrote {rows} estimates to {path}")
    return rows
