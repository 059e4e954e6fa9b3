"""
Filter state representation for the speed estimator.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class FilterState:
    """
    State owned by one SpeedEstimator.

    State vector: [speed, accel_bias]
    - speed: forward speed in m/s
    - accel_bias: accelerometer bias in m/s²
    Distance is the integral of speed since the last reset.
    """

    speed: float = 0.0
    accel_bias: float = 0.0
    distance: float = 0.0

    # 2x2 covariance of the state vector
    covariance: np.ndarray = field(default_factory=lambda: np.eye(2))

    # Timestamp of the last processed sample
    last_timestamp: Optional[float] = None

    @property
    def state_vector(self) -> np.ndarray:
        """Get state as numpy vector."""
        return np.array([self.speed, self.accel_bias])

    @state_vector.setter
    def state_vector(self, vector: np.ndarray):
        """Set state from numpy vector."""
        if len(vector) != 2:
            raise ValueError("State vector must have 2 elements")

        self.speed = float(vector[0])
        self.accel_bias = float(vector[1])

    @property
    def speed_variance(self) -> float:
        return float(self.covariance[0, 0])

    @property
    def is_finite(self) -> bool:
        return bool(np.isfinite(self.state_vector).all() and
                    np.isfinite(self.covariance).all() and
                    np.isfinite(self.distance))

    def copy(self) -> 'FilterState':
        """Create a copy of the state."""
        return FilterState(
            speed=self.speed,
            accel_bias=self.accel_bias,
            distance=self.distance,
            covariance=self.covariance.copy(),
            last_timestamp=self.last_timestamp
        )

    def __str__(self) -> str:
        return (
            f"FilterState(speed={self.speed:.2f} m/s, "
            f"distance={self.distance:.2f} m, "
            f"bias={self.accel_bias:.3f}, "
            f"var={self.speed_variance:.3f})"
        )
