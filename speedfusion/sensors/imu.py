"""
Inertial frame representation for the device-motion stream.
"""

import time
import numpy as np
from dataclasses import dataclass, field

from ..math.constants import GRAVITY_MS2
from ..math.utils import vector_magnitude


@dataclass(frozen=True)
class InertialFrame:
    """
    One device-motion sample.

    Acceleration is user acceleration in g with gravity already removed,
    angular rate is in rad/s. Both are in the device frame.
    """

    # User acceleration (g)
    accel_x: float
    accel_y: float
    accel_z: float

    # Rotation rate (rad/s)
    gyro_x: float = 0.0
    gyro_y: float = 0.0
    gyro_z: float = 0.0

    # Monotonic timestamp (seconds)
    timestamp: float = field(default_factory=time.monotonic)

    @classmethod
    def from_vectors(cls, acceleration, angular_rate=(0.0, 0.0, 0.0),
                     timestamp: float = None) -> 'InertialFrame':
        """Build a frame from two 3-element sequences."""
        ax, ay, az = (float(v) for v in acceleration)
        gx, gy, gz = (float(v) for v in angular_rate)
        if timestamp is None:
            timestamp = time.monotonic()
        return cls(ax, ay, az, gx, gy, gz, timestamp)

    @property
    def acceleration(self) -> np.ndarray:
        """Get acceleration as numpy array (g)."""
        return np.array([self.accel_x, self.accel_y, self.accel_z])

    @property
    def angular_rate(self) -> np.ndarray:
        """Get angular rate as numpy array (rad/s)."""
        return np.array([self.gyro_x, self.gyro_y, self.gyro_z])

    @property
    def acceleration_magnitude(self) -> float:
        return vector_magnitude(self.acceleration)

    @property
    def rotation_magnitude(self) -> float:
        return vector_magnitude(self.angular_rate)

    @property
    def acceleration_ms2(self) -> float:
        """Acceleration magnitude in m/s²."""
        return self.acceleration_magnitude * GRAVITY_MS2
