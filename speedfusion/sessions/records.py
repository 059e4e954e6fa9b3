"""
Finalized run records and the track definition used by lap sessions.

Records are built once when a session finishes and never change
afterwards, so display and persistence may share them freely.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Dict

from ..math.units import SpeedUnit
from ..sensors.gps import Coordinate


@dataclass(frozen=True)
class SpeedPoint:
    """Fused speed sample."""

    timestamp: float
    speed: float        # m/s
    distance: float     # meters


@dataclass(frozen=True)
class GPSPoint:
    """Accepted GPS Doppler speed sample."""

    timestamp: float
    speed: float        # m/s


@dataclass(frozen=True)
class AccelPoint:
    """Acceleration magnitude sample."""

    timestamp: float
    accel: float        # g


@dataclass(frozen=True)
class Track:
    """Closed circuit with a start/finish point."""

    name: str
    start_finish: Optional[Coordinate]
    waypoints: Tuple[Coordinate, ...] = ()


@dataclass(frozen=True)
class RunMetrics:
    """Result of one drag run. Speeds in m/s, distances in meters."""

    elapsed_time: float
    distance_traveled: float
    peak_speed: float
    target_speed: Optional[float] = None
    target_distance: Optional[float] = None
    started_at: Optional[float] = None
    speed_data: Tuple[SpeedPoint, ...] = ()

    def as_dict(self, unit: SpeedUnit = SpeedUnit.MPH) -> Dict[str, float]:
        """Metric table with speeds in the given display unit."""
        metrics = {
            "elapsed": self.elapsed_time,
            "distance_m": self.distance_traveled,
            f"peak_speed_{unit.value}": unit.convert(self.peak_speed),
        }
        if self.target_speed is not None:
            metrics[f"target_speed_{unit.value}"] = unit.convert(self.target_speed)
        if self.target_distance is not None:
            metrics["target_distance_m"] = self.target_distance
        return metrics


@dataclass(frozen=True)
class LapRecord:
    """Result of one lap session."""

    track_name: str
    lap_durations: Tuple[float, ...]
    predicted_next_lap: float
    route: Tuple[Coordinate, ...] = ()
    speed_data: Tuple[SpeedPoint, ...] = ()
    gps_speed_data: Tuple[GPSPoint, ...] = ()
    accel_data: Tuple[AccelPoint, ...] = ()

    @property
    def total_laps(self) -> int:
        return len(self.lap_durations)

    @property
    def best_lap(self) -> float:
        return min(self.lap_durations) if self.lap_durations else 0.0

    @property
    def average_lap(self) -> float:
        if not self.lap_durations:
            return 0.0
        return sum(self.lap_durations) / len(self.lap_durations)

    def as_dict(self) -> Dict[str, float]:
        return {
            "best_lap": self.best_lap,
            "average_lap": self.average_lap,
            "total_laps": float(self.total_laps),
        }
