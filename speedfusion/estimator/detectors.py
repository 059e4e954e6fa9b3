"""
Debounced detectors for rest and for genuine driving acceleration.
"""

from typing import Optional

from ..math.constants import GRAVITY_MS2
from .config import EstimatorConfig


class StationaryDetector:
    """
    Declares the platform at rest after sustained low acceleration,
    low rotation and low GPS speed.
    """

    def __init__(self, config: EstimatorConfig):
        self.config = config
        self.consecutive_frames = 0

    @staticmethod
    def is_candidate(config: EstimatorConfig, accel_magnitude: float,
                     rotation_magnitude: float, gps_speed: Optional[float]) -> bool:
        gps = gps_speed if gps_speed is not None else 0.0
        return (accel_magnitude < config.stationary_accel_threshold and
                rotation_magnitude < config.stationary_rotation_threshold and
                gps < config.stationary_gps_threshold)

    def update(self, accel_magnitude: float, rotation_magnitude: float,
               gps_speed: Optional[float] = None) -> bool:
        """
        Feed one frame.

        Returns:
            True when the counter has passed the debounce threshold
        """
        if self.is_candidate(self.config, accel_magnitude, rotation_magnitude, gps_speed):
            self.consecutive_frames += 1
        else:
            self.consecutive_frames = 0
        return self.consecutive_frames > self.config.stationary_debounce_frames

    def confirm(self, gps_speed: Optional[float] = None) -> bool:
        """
        Repeat the last decision for a tick without a new frame.

        A moving GPS speed still clears the counter.
        """
        if gps_speed is not None and not gps_speed < self.config.stationary_gps_threshold:
            self.consecutive_frames = 0
        return self.consecutive_frames > self.config.stationary_debounce_frames

    def reset(self):
        self.consecutive_frames = 0


class ControlInputDetector:
    """
    Turns acceleration magnitude into a control input once it has stayed
    above threshold for enough consecutive frames without heavy rotation.
    """

    def __init__(self, config: EstimatorConfig):
        self.config = config
        self.consecutive_frames = 0
        self.active = False
        self.control = 0.0

    def update(self, accel_magnitude: float, rotation_magnitude: float) -> float:
        """
        Feed one frame.

        Returns:
            Control acceleration in m/s², 0.0 when not qualified
        """
        cfg = self.config
        if accel_magnitude > cfg.accel_threshold:
            self.consecutive_frames += 1
        else:
            self.consecutive_frames = 0

        self.active = (self.consecutive_frames >= cfg.accel_debounce_frames and
                       rotation_magnitude < cfg.rotation_limit)
        if not self.active:
            self.control = 0.0
            return 0.0

        excess = (accel_magnitude - cfg.accel_threshold) * GRAVITY_MS2
        self.control = excess * cfg.integration_gain
        return self.control

    def reset(self):
        self.consecutive_frames = 0
        self.active = False
        self.control = 0.0
