"""
Sensor fusion pipeline: gate, estimator and the latest published snapshot.

Positioning and inertial callbacks may arrive on different threads. All
state mutation is serialised under one lock, and readers only ever see
frozen snapshots.
"""

import logging
import threading
import numpy as np
from dataclasses import dataclass
from typing import Optional, Callable, List, Tuple

from .estimator import SpeedEstimator, EstimatorConfig
from .sensors import InertialFrame, PositionFix, Coordinate, GPSValidityGate, GateConfig
from .math.utils import vector_magnitude

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FusionSnapshot:
    """Consistent view of the fused output at one instant."""

    timestamp: Optional[float] = None
    speed: float = 0.0                      # m/s
    distance: float = 0.0                   # m
    gps_speed: Optional[float] = None       # last accepted Doppler speed
    heading: Optional[float] = None         # degrees, last valid course
    location: Optional[Coordinate] = None   # last accepted fix position


SnapshotListener = Callable[[FusionSnapshot], None]


class SensorFusion:
    """
    Feeds both sample streams through one SpeedEstimator.

    Accepted fixes newer than the last tick run a tick of their own using
    the latest inertial vectors, without counting that frame again in the
    debounce detectors. Accepted fixes that arrive behind the inertial
    stream are attached to the next inertial frame instead.

    Sessions that guard their own state with `lock` call the ingest_*
    methods inside it and publish() after releasing it, so listeners
    never run under the lock.
    """

    def __init__(self, estimator_config: Optional[EstimatorConfig] = None,
                 gate_config: Optional[GateConfig] = None):
        self.estimator = SpeedEstimator(estimator_config)
        self.gate = GPSValidityGate(gate_config)

        self._lock = threading.RLock()
        self._listeners: List[SnapshotListener] = []
        self._clear()

    def _clear(self):
        self._last_acceleration = np.zeros(3)
        self._last_angular_rate = np.zeros(3)
        self._pending_gps_speed: Optional[float] = None
        self._snapshot = FusionSnapshot()

    def reset(self):
        """Clear the estimator and all cached inputs atomically."""
        with self._lock:
            self.estimator.reset()
            self._clear()
        logger.debug("Sensor fusion reset")

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def snapshot(self) -> FusionSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def speed(self) -> float:
        return self.snapshot().speed

    @property
    def distance(self) -> float:
        return self.snapshot().distance

    def add_listener(self, listener: SnapshotListener):
        """Register a callback receiving a snapshot after every tick."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def process_inertial(self, frame: InertialFrame) -> FusionSnapshot:
        """
        Process one inertial frame.

        Args:
            frame: Device-motion sample

        Returns:
            Snapshot after the tick
        """
        with self._lock:
            snapshot = self.ingest_inertial(frame)
        self.publish(snapshot)
        return snapshot

    def process_position(self, fix: PositionFix) -> Optional[float]:
        """
        Gate a positioning fix and feed it to the estimator if accepted.

        Args:
            fix: Raw positioning fix

        Returns:
            Accepted Doppler speed in m/s, or None when the fix was rejected
        """
        with self._lock:
            gps_speed, snapshot = self.ingest_position(fix)
        self.publish(snapshot)
        return gps_speed

    def ingest_inertial(self, frame: InertialFrame) -> FusionSnapshot:
        """
        Tick on an inertial frame without notifying listeners.

        The caller must hold `lock` and pass the result to publish() once
        the lock is released.
        """
        with self._lock:
            self._last_acceleration = frame.acceleration
            self._last_angular_rate = frame.angular_rate

            # A frame the estimator will drop must not consume the pending fix
            last_tick = self.estimator.last_timestamp
            gps_speed = None
            if last_tick is None or frame.timestamp > last_tick:
                gps_speed = self._pending_gps_speed
                self._pending_gps_speed = None

            return self._tick(frame.timestamp, gps_speed, inertial_frame=True)

    def ingest_position(self, fix: PositionFix) -> Tuple[Optional[float], Optional[FusionSnapshot]]:
        """
        Gate a fix without notifying listeners.

        Returns:
            (accepted speed or None, snapshot to publish or None when no
            tick ran)
        """
        with self._lock:
            last_tick = self.estimator.last_timestamp
            now = fix.timestamp if last_tick is None else max(fix.timestamp, last_tick)

            gps_speed = self.gate.evaluate(
                fix,
                current_speed=self.estimator.speed,
                accel_magnitude=vector_magnitude(self._last_acceleration),
                now=now
            )
            if gps_speed is None:
                return None, None

            self._snapshot = self._replace_fix_fields(fix, gps_speed)

            if last_tick is not None and fix.timestamp <= last_tick:
                self._pending_gps_speed = gps_speed
                return gps_speed, None

            # The inertial vectors belong to a frame the detectors have already seen
            return gps_speed, self._tick(fix.timestamp, gps_speed, inertial_frame=False)

    def publish(self, snapshot: Optional[FusionSnapshot]):
        """Push a snapshot to the listeners. Must be called without holding `lock`."""
        if snapshot is None:
            return
        with self._lock:
            listeners = list(self._listeners)
        self._notify(listeners, snapshot)

    def _tick(self, timestamp: float, gps_speed: Optional[float],
              inertial_frame: bool) -> FusionSnapshot:
        speed, distance = self.estimator.process_sample(
            timestamp, gps_speed, self._last_acceleration, self._last_angular_rate,
            inertial_frame=inertial_frame
        )
        previous = self._snapshot
        self._snapshot = FusionSnapshot(
            timestamp=self.estimator.last_timestamp,
            speed=speed,
            distance=distance,
            gps_speed=previous.gps_speed,
            heading=previous.heading,
            location=previous.location
        )
        return self._snapshot

    def _replace_fix_fields(self, fix: PositionFix, gps_speed: float) -> FusionSnapshot:
        previous = self._snapshot
        return FusionSnapshot(
            timestamp=previous.timestamp,
            speed=previous.speed,
            distance=previous.distance,
            gps_speed=gps_speed,
            heading=fix.course if fix.has_valid_course else previous.heading,
            location=fix.coordinate
        )

    @staticmethod
    def _notify(listeners: List[SnapshotListener], snapshot: FusionSnapshot):
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener %r failed", listener)

    def get_statistics(self) -> dict:
        """Get pipeline statistics."""
        with self._lock:
            return {
                'estimator': self.estimator.get_statistics(),
                'gate': self.gate.get_statistics(),
            }
