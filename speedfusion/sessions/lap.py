"""
Lap timing around a closed circuit.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Callable, List, Sequence, Tuple

from ..errors import ConfigurationError
from ..estimator import EstimatorConfig
from ..fusion import SensorFusion
from ..math.constants import CROSSING_RADIUS_M, MIN_LAP_TIME_S
from ..math.utils import coordinate_distance
from ..sensors import InertialFrame, PositionFix, Coordinate, GateConfig
from .records import Track, LapRecord, SpeedPoint, GPSPoint, AccelPoint

logger = logging.getLogger(__name__)


class LapState(str, Enum):
    WAITING_FOR_FIRST_CROSS = "waiting_for_first_cross"
    TIMING = "timing"
    FINISHED = "finished"


@dataclass(frozen=True)
class LapSnapshot:
    """Display-facing view of a lap session."""

    state: LapState
    current_lap_time: float
    completed_laps: Tuple[float, ...]
    predicted_next_lap: float
    speed: float


def predict_next_lap(lap_durations: Sequence[float], in_progress: float) -> float:
    """
    Scale the average lap by the pace of the lap in progress.

    Args:
        lap_durations: Completed laps in completion order
        in_progress: Time spent on the current lap so far

    Returns:
        Predicted lap time, 0.0 when no lap has been completed
    """
    if not lap_durations:
        return 0.0
    average = sum(lap_durations) / len(lap_durations)
    if in_progress == 0:
        return average
    last_lap = lap_durations[-1]
    if last_lap <= 0:
        return average
    return average * (in_progress / last_lap)


class LapSession:
    """
    Counts laps each time the start/finish point is passed.

    The first crossing only starts the clock. A later crossing counts when
    more than min_lap_time has passed since the previous one, which keeps
    a slow pass through the detection radius from counting twice.
    """

    def __init__(self, track: Track,
                 crossing_radius: float = CROSSING_RADIUS_M,
                 min_lap_time: float = MIN_LAP_TIME_S,
                 estimator_config: Optional[EstimatorConfig] = None,
                 gate_config: Optional[GateConfig] = None,
                 on_finish: Optional[Callable[[LapRecord], None]] = None):
        """
        Create a session waiting for its first crossing.

        Raises:
            ConfigurationError: if the track has no start/finish point
        """
        if track is None or track.start_finish is None:
            raise ConfigurationError("A lap session needs a track with a start/finish point")
        if not crossing_radius > 0:
            raise ConfigurationError(f"crossing_radius must be positive, got {crossing_radius!r}")
        if not min_lap_time >= 0:
            raise ConfigurationError(f"min_lap_time must be non-negative, got {min_lap_time!r}")

        self.track = track
        self.crossing_radius = float(crossing_radius)
        self.min_lap_time = float(min_lap_time)

        self.fusion = SensorFusion(estimator_config, gate_config)
        self._lock = self.fusion.lock
        self._on_finish = on_finish

        self._state = LapState.WAITING_FOR_FIRST_CROSS
        self._last_cross_time: Optional[float] = None
        self._current_lap_time = 0.0
        self._lap_durations: List[float] = []
        self._predicted_next_lap = 0.0

        self._route: List[Coordinate] = []
        self._speed_points: List[SpeedPoint] = []
        self._gps_points: List[GPSPoint] = []
        self._accel_points: List[AccelPoint] = []
        self._record: Optional[LapRecord] = None

        logger.info("Lap session on %s waiting for first crossing", track.name)

    @property
    def state(self) -> LapState:
        with self._lock:
            return self._state

    @property
    def lap_durations(self) -> Tuple[float, ...]:
        with self._lock:
            return tuple(self._lap_durations)

    @property
    def predicted_next_lap(self) -> float:
        with self._lock:
            return self._predicted_next_lap

    def snapshot(self) -> LapSnapshot:
        with self._lock:
            return LapSnapshot(
                state=self._state,
                current_lap_time=self._current_lap_time,
                completed_laps=tuple(self._lap_durations),
                predicted_next_lap=self._predicted_next_lap,
                speed=self.fusion.speed
            )

    def handle_inertial(self, frame: InertialFrame) -> LapState:
        """Feed one inertial frame."""
        with self._lock:
            if self._state is LapState.FINISHED:
                return self._state

            published = self.fusion.ingest_inertial(frame)

            if self._state is LapState.TIMING:
                self._advance_clock(frame.timestamp)
                self._accel_points.append(AccelPoint(frame.timestamp, frame.acceleration_magnitude))
            state = self._state

        self.fusion.publish(published)
        return state

    def handle_position(self, fix: PositionFix) -> LapState:
        """Feed one positioning fix; drives crossing detection."""
        with self._lock:
            if self._state is LapState.FINISHED:
                return self._state

            gps_speed, published = self.fusion.ingest_position(fix)
            now = fix.timestamp

            if fix.has_valid_position:
                distance_to_start = coordinate_distance(fix.coordinate, self.track.start_finish)
                if distance_to_start < self.crossing_radius:
                    self._on_line(now)

            if self._state is LapState.TIMING:
                self._advance_clock(now)
                self._predicted_next_lap = predict_next_lap(self._lap_durations, self._current_lap_time)

                snapshot = self.fusion.snapshot()
                if fix.has_valid_position:
                    self._route.append(fix.coordinate)
                self._speed_points.append(SpeedPoint(now, snapshot.speed, snapshot.distance))
                if gps_speed is not None:
                    self._gps_points.append(GPSPoint(now, gps_speed))
            state = self._state

        self.fusion.publish(published)
        return state

    def _on_line(self, now: float):
        if self._last_cross_time is None:
            self._last_cross_time = now
            self._current_lap_time = 0.0
            self._state = LapState.TIMING
            logger.info("Lap clock started at %.3f", now)
            return

        elapsed = now - self._last_cross_time
        if elapsed > self.min_lap_time:
            self._lap_durations.append(elapsed)
            self._last_cross_time = now
            self._current_lap_time = 0.0
            logger.info("Lap %d completed in %.3f s", len(self._lap_durations), elapsed)

    def _advance_clock(self, timestamp: float):
        self._current_lap_time = max(0.0, timestamp - self._last_cross_time)

    def finish_session(self) -> Optional[LapRecord]:
        """
        Finalize the session and stop logging.

        Returns:
            The LapRecord, or None when no lap was completed. Repeated
            calls return the same result without handing it off again.
        """
        with self._lock:
            if self._state is LapState.FINISHED:
                return self._record
            self._state = LapState.FINISHED

            if not self._lap_durations:
                logger.info("Lap session finished without a completed lap")
                return None

            self._record = LapRecord(
                track_name=self.track.name,
                lap_durations=tuple(self._lap_durations),
                predicted_next_lap=self._predicted_next_lap,
                route=tuple(self._route),
                speed_data=tuple(self._speed_points),
                gps_speed_data=tuple(self._gps_points),
                accel_data=tuple(self._accel_points)
            )
            record = self._record
            logger.info("Lap session finished: %d laps, best %.3f s",
                        record.total_laps, record.best_lap)

        if self._on_finish is not None:
            self._on_finish(record)
        return record
