"""
Recursive speed estimator fusing GPS Doppler speed with inertial frames.
"""

import logging
import math
import numpy as np
from typing import Optional, Dict, Any, Tuple

from ..math.utils import vector_magnitude
from .config import EstimatorConfig
from .state import FilterState
from .models import MotionModel, MeasurementModel
from .detectors import StationaryDetector, ControlInputDetector

logger = logging.getLogger(__name__)


class SpeedEstimator:
    """
    Predict/update filter over [speed, accel_bias].

    Inertial frames drive the prediction between fixes, GPS Doppler speed
    re-anchors it. One instance belongs to exactly one recording session.
    """

    def __init__(self, config: Optional[EstimatorConfig] = None):
        """
        Initialize the estimator.

        Args:
            config: Tuning constants, defaults when omitted
        """
        self.config = config or EstimatorConfig()
        self.config.validate()

        self.motion_model = MotionModel()
        self.measurement_model = MeasurementModel()

        self.stationary_detector = StationaryDetector(self.config)
        self.control_detector = ControlInputDetector(self.config)

        self.reset()

    def _initial_covariance(self) -> np.ndarray:
        return np.diag([
            self.config.initial_speed_variance,
            self.config.initial_bias_variance
        ])

    def reset(self):
        """Zero speed, distance, bias, uncertainty and all counters."""
        self.state = FilterState(covariance=self._initial_covariance())
        self.stationary_detector.reset()
        self.control_detector.reset()

        # Most recent accepted GPS speed, for the stationary check
        self.last_gps_speed: Optional[float] = None
        self.last_gps_timestamp: Optional[float] = None

        # Speed before the update step of the last tick
        self.predicted_speed = 0.0

        # Statistics
        self.sample_count = 0
        self.prediction_count = 0
        self.gps_update_count = 0
        self.stationary_count = 0
        self.dropped_count = 0

    @property
    def speed(self) -> float:
        return self.state.speed

    @property
    def distance(self) -> float:
        return self.state.distance

    @property
    def last_timestamp(self) -> Optional[float]:
        return self.state.last_timestamp

    def process_sample(self, timestamp: float, gps_speed: Optional[float],
                       acceleration, angular_rate,
                       inertial_frame: bool = True) -> Tuple[float, float]:
        """
        Run one filter tick.

        Args:
            timestamp: Sample time in seconds
            gps_speed: Accepted GPS speed for this tick, or None
            acceleration: 3-axis user acceleration (g)
            angular_rate: 3-axis rotation rate (rad/s)
            inertial_frame: False when the vectors are repeated from an earlier
                frame for a GPS-only tick; the detectors then keep their
                counters and reuse the last decision

        Returns:
            (speed, distance) in m/s and m
        """
        state = self.state
        self.sample_count += 1

        if state.last_timestamp is None:
            state.last_timestamp = timestamp
            if gps_speed is not None:
                state.speed = self._clamp(gps_speed, snap=True)
                self._remember_gps(gps_speed, timestamp)
            return state.speed, state.distance

        dt = timestamp - state.last_timestamp
        if not (dt > 0 and math.isfinite(dt)):
            self.dropped_count += 1
            logger.debug("Dropped sample at %.3f (dt=%.4f)", timestamp, dt)
            return state.speed, state.distance

        accel_magnitude = vector_magnitude(acceleration)
        rotation_magnitude = vector_magnitude(angular_rate)

        if gps_speed is not None:
            self._remember_gps(gps_speed, timestamp)

        recent_gps = self._recent_gps_speed(timestamp)
        if inertial_frame:
            stationary = self.stationary_detector.update(accel_magnitude, rotation_magnitude, recent_gps)
        else:
            stationary = self.stationary_detector.confirm(recent_gps)
        if stationary:
            self._hold_stationary(timestamp)
            return state.speed, state.distance

        if inertial_frame:
            self.control_detector.update(accel_magnitude, rotation_magnitude)
        control_accel = self.control_detector.control
        control_active = self.control_detector.active

        self.predict(dt, control_accel, control_active)
        self.predicted_speed = state.speed

        if gps_speed is not None:
            self.update_gps(gps_speed)
        elif not control_active:
            decay = self.config.drift_decay ** (dt * self.config.reference_rate_hz)
            state.speed *= decay

        state.speed = self._clamp(state.speed, snap=not control_active)
        self._sanitize()

        state.distance += state.speed * dt
        state.last_timestamp = timestamp

        return state.speed, state.distance

    def predict(self, dt: float, control_accel: float = 0.0, control_active: bool = False):
        """
        Prediction step of the filter.

        Args:
            dt: Time step in seconds
            control_accel: Control acceleration in m/s²
            control_active: Whether the control input qualified
        """
        state = self.state
        x = self.motion_model.predict_state(state.state_vector, dt, control_accel, control_active)

        F = self.motion_model.jacobian_F(dt, control_active)
        Q = self.motion_model.process_noise_matrix(
            self.config.process_noise_variance,
            self.config.bias_process_variance,
            dt
        )

        # P = F * P * F^T + Q
        state.covariance = F @ state.covariance @ F.T + Q
        state.state_vector = x

        self.prediction_count += 1

    def update_gps(self, gps_speed: float):
        """
        Update step with a GPS Doppler speed.

        Args:
            gps_speed: Accepted GPS speed in m/s
        """
        state = self.state
        x = state.state_vector
        P = state.covariance

        # Innovation (measurement residual)
        y = np.array([gps_speed]) - self.measurement_model.gps_measurement(x)

        H = self.measurement_model.gps_jacobian_H()
        R = self.measurement_model.measurement_noise_matrix(self.config.gps_measurement_variance)

        # Innovation covariance is 1x1, so the gain needs no matrix inverse
        S = H @ P @ H.T + R
        K = P @ H.T / S[0, 0]

        state.state_vector = x + (K @ y)
        state.covariance = (np.eye(2) - K @ H) @ P

        self.gps_update_count += 1

    def _hold_stationary(self, timestamp: float):
        """Zero-velocity update: no prediction and no distance this tick."""
        state = self.state
        state.speed = 0.0
        state.covariance = np.diag([
            self.config.stationary_variance,
            state.covariance[1, 1]
        ])
        state.last_timestamp = timestamp
        self.control_detector.reset()
        self.predicted_speed = 0.0
        self.stationary_count += 1

    def _remember_gps(self, gps_speed: float, timestamp: float):
        self.last_gps_speed = gps_speed
        self.last_gps_timestamp = timestamp

    def _recent_gps_speed(self, timestamp: float) -> Optional[float]:
        if self.last_gps_timestamp is None:
            return None
        if timestamp - self.last_gps_timestamp > self.config.gps_hold_time:
            return None
        return self.last_gps_speed

    def _clamp(self, speed: float, snap: bool) -> float:
        if not math.isfinite(speed) or speed < 0:
            return 0.0
        if snap and speed < self.config.zero_speed_threshold:
            return 0.0
        return min(speed, self.config.max_speed)

    def _sanitize(self):
        """Replace a non-finite state so NaN never reaches the output."""
        state = self.state
        if state.is_finite:
            return
        logger.warning("Non-finite filter state %s, reinitialising speed and covariance", state)
        state.speed = 0.0
        state.accel_bias = 0.0
        state.covariance = self._initial_covariance()
        if not math.isfinite(state.distance):
            state.distance = 0.0

    def get_uncertainty(self) -> np.ndarray:
        """Get current state uncertainty (standard deviations)."""
        return np.sqrt(np.diag(self.state.covariance))

    def get_statistics(self) -> Dict[str, Any]:
        """Get filter statistics."""
        return {
            'samples': self.sample_count,
            'predictions': self.prediction_count,
            'gps_updates': self.gps_update_count,
            'stationary_ticks': self.stationary_count,
            'dropped_samples': self.dropped_count,
            'speed_uncertainty': float(self.get_uncertainty()[0]),
            'accel_bias': self.state.accel_bias
        }
