"""
Drag run timing: launch detection, target detection and the run record.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Callable, List

from ..errors import ConfigurationError
from ..estimator import EstimatorConfig
from ..fusion import SensorFusion
from ..math.constants import LAUNCH_SPEED_MPS
from ..math.utils import coordinate_distance
from ..sensors import InertialFrame, PositionFix, Coordinate, GateConfig
from .records import RunMetrics, SpeedPoint

logger = logging.getLogger(__name__)

DISTANCE_SOURCES = ("gps", "fused")


class DragState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    RUNNING = "running"
    FINISHED = "finished"


@dataclass(frozen=True)
class DragSnapshot:
    """Display-facing view of a drag session."""

    state: DragState
    elapsed: float
    distance: float
    peak_speed: float
    speed: float
    gps_speed: Optional[float]


def _check_target(name: str, value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return value


class DragSession:
    """
    One drag run from launch to target.

    The launch and the speed target are judged on gated GPS speed so that
    runs stay comparable. Distance is measured from the launch point.
    """

    def __init__(self,
                 target_speed: Optional[float] = None,
                 target_distance: Optional[float] = None,
                 launch_speed: float = LAUNCH_SPEED_MPS,
                 distance_source: str = "gps",
                 estimator_config: Optional[EstimatorConfig] = None,
                 gate_config: Optional[GateConfig] = None,
                 on_finish: Optional[Callable[[RunMetrics], None]] = None):
        """
        Create and arm a drag session.

        Args:
            target_speed: Finish speed in m/s
            target_distance: Finish distance in meters
            launch_speed: GPS speed that starts the run (m/s)
            distance_source: "gps" for distance from the launch point,
                "fused" for the estimator's integrated distance
            estimator_config: Estimator tuning
            gate_config: GPS gate thresholds
            on_finish: Receives the RunMetrics exactly once

        Raises:
            ConfigurationError: if no usable target is configured
        """
        self._state = DragState.IDLE

        self.target_speed = _check_target("target_speed", target_speed)
        self.target_distance = _check_target("target_distance", target_distance)
        if self.target_speed is None and self.target_distance is None:
            raise ConfigurationError("A drag session needs a target speed or a target distance")
        self.launch_speed = _check_target("launch_speed", launch_speed)
        if self.launch_speed is None:
            raise ConfigurationError("launch_speed is required")
        if distance_source not in DISTANCE_SOURCES:
            raise ConfigurationError(f"distance_source must be one of {DISTANCE_SOURCES}, got {distance_source!r}")
        self.distance_source = distance_source

        self.fusion = SensorFusion(estimator_config, gate_config)
        self._lock = self.fusion.lock
        self._on_finish = on_finish

        self._start_time: Optional[float] = None
        self._start_location: Optional[Coordinate] = None
        self._start_fused_distance = 0.0
        self._elapsed = 0.0
        self._distance = 0.0
        self._peak_speed = 0.0
        self._gps_speed: Optional[float] = None
        self._speed_points: List[SpeedPoint] = []
        self._metrics: Optional[RunMetrics] = None

        self._state = DragState.ARMED
        logger.info("Drag session armed (target speed %s m/s, target distance %s m)",
                    self.target_speed, self.target_distance)

    @property
    def state(self) -> DragState:
        with self._lock:
            return self._state

    @property
    def metrics(self) -> Optional[RunMetrics]:
        with self._lock:
            return self._metrics

    def snapshot(self) -> DragSnapshot:
        with self._lock:
            return DragSnapshot(
                state=self._state,
                elapsed=self._elapsed,
                distance=self._distance,
                peak_speed=self._peak_speed,
                speed=self.fusion.speed,
                gps_speed=self._gps_speed
            )

    def handle_inertial(self, frame: InertialFrame) -> DragState:
        """Feed one inertial frame; advances the run clock while running."""
        delivered = None
        with self._lock:
            if self._state is DragState.FINISHED:
                return self._state

            published = self.fusion.ingest_inertial(frame)

            if self._state is DragState.RUNNING:
                self._advance_clock(frame.timestamp)
                if self.distance_source == "fused":
                    self._distance = self._fused_distance()
                    if self._distance_reached():
                        delivered = self._finish("target distance reached", frame.timestamp)
            state = self._state

        self.fusion.publish(published)
        self._deliver(delivered)
        return state

    def handle_position(self, fix: PositionFix) -> DragState:
        """Feed one positioning fix; drives launch and target detection."""
        delivered = None
        with self._lock:
            if self._state is DragState.FINISHED:
                return self._state

            gps_speed, published = self.fusion.ingest_position(fix)

            if gps_speed is None:
                if self._state is DragState.RUNNING:
                    self._advance_clock(fix.timestamp)
            elif self._state is DragState.ARMED:
                self._gps_speed = gps_speed
                if gps_speed >= self.launch_speed:
                    self._launch(fix, gps_speed)
            else:
                self._gps_speed = gps_speed
                delivered = self._track_run(fix, gps_speed)
            state = self._state

        self.fusion.publish(published)
        self._deliver(delivered)
        return state

    def _track_run(self, fix: PositionFix, gps_speed: float) -> Optional[RunMetrics]:
        self._advance_clock(fix.timestamp)
        if self.distance_source == "gps":
            self._distance = coordinate_distance(self._start_location, fix.coordinate)
        else:
            self._distance = self._fused_distance()
        self._peak_speed = max(self._peak_speed, gps_speed)
        self._speed_points.append(SpeedPoint(fix.timestamp, gps_speed, self._distance))

        speed_reached = self.target_speed is not None and gps_speed >= self.target_speed
        if speed_reached or self._distance_reached():
            # Inertial frames may run ahead of the fix that reached the target
            return self._finish("target reached", fix.timestamp)
        return None

    def manual_stop(self) -> Optional[RunMetrics]:
        """
        Stop the run from outside.

        A running session finishes with the metrics gathered so far, an
        armed session is aborted without a record, and a finished session
        is left untouched.

        Returns:
            The session's RunMetrics, or None if the run never started
        """
        delivered = None
        with self._lock:
            if self._state is DragState.FINISHED:
                return self._metrics
            if self._state is DragState.RUNNING:
                delivered = self._finish("manual stop")
            else:
                self._state = DragState.FINISHED
                logger.info("Drag session aborted before launch")
            metrics = self._metrics

        self._deliver(delivered)
        return metrics

    def _launch(self, fix: PositionFix, gps_speed: float):
        self._state = DragState.RUNNING
        self._start_time = fix.timestamp
        self._start_location = fix.coordinate
        self._start_fused_distance = self.fusion.distance
        self._elapsed = 0.0
        self._distance = 0.0
        self._peak_speed = gps_speed
        self._speed_points.append(SpeedPoint(fix.timestamp, gps_speed, 0.0))
        logger.info("Drag run started at %.3f (%.2f m/s)", fix.timestamp, gps_speed)

    def _advance_clock(self, timestamp: float):
        self._elapsed = max(self._elapsed, timestamp - self._start_time)

    def _fused_distance(self) -> float:
        return max(0.0, self.fusion.distance - self._start_fused_distance)

    def _distance_reached(self) -> bool:
        return self.target_distance is not None and self._distance >= self.target_distance

    def _finish(self, reason: str, timestamp: Optional[float] = None) -> Optional[RunMetrics]:
        """
        Build the record once. Returns it only to the caller that built it.

        A timestamp pins the elapsed time to the sample that ended the run.
        """
        if self._state is DragState.FINISHED:
            return None
        self._state = DragState.FINISHED
        if timestamp is not None:
            self._elapsed = max(0.0, timestamp - self._start_time)
        self._metrics = RunMetrics(
            elapsed_time=self._elapsed,
            distance_traveled=self._distance,
            peak_speed=self._peak_speed,
            target_speed=self.target_speed,
            target_distance=self.target_distance,
            started_at=self._start_time,
            speed_data=tuple(self._speed_points)
        )
        logger.info("Drag run finished (%s): %.3f s, %.1f m, peak %.2f m/s",
                    reason, self._elapsed, self._distance, self._peak_speed)
        return self._metrics

    def _deliver(self, metrics: Optional[RunMetrics]):
        if metrics is not None and self._on_finish is not None:
            self._on_finish(metrics)
