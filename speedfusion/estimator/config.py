"""
Tunable constants of the speed estimator.

The defaults are starting points to be re-tuned against recorded sensor
logs; only the structure of the filter is fixed.
"""

import math
from dataclasses import dataclass, fields, asdict
from typing import Optional, Dict, Any

from ..errors import ConfigurationError

# Options that must be whole numbers
_INT_OPTIONS = ("accel_debounce_frames", "stationary_debounce_frames")


@dataclass
class EstimatorConfig:
    """Estimator tuning. Accelerations in g, speeds in m/s, times in s."""

    # Control input
    accel_threshold: float = 0.06           # g, minimum genuine motion
    accel_debounce_frames: int = 2          # consecutive frames above threshold
    rotation_limit: float = 2.5             # rad/s, shake rejection
    integration_gain: float = 0.6           # scales excess acceleration

    # Noise model
    process_noise_variance: float = 16.0    # (m/s²)², trust in inertial prediction
    gps_measurement_variance: float = 2.25  # (m/s)², trust in GPS Doppler
    bias_process_variance: float = 1e-4     # (m/s²)²/s, bias random walk
    initial_speed_variance: float = 1.0
    initial_bias_variance: float = 0.01

    # Idle drift decay, applied as drift_decay ** (dt * reference_rate_hz)
    drift_decay: float = 0.98
    reference_rate_hz: float = 1.0

    # Clamping
    zero_speed_threshold: float = 0.1       # m/s, snapped to zero at rest
    max_speed: float = 60.0                 # m/s, physical ceiling

    # Stationary detection
    stationary_accel_threshold: float = 0.03    # g
    stationary_rotation_threshold: float = 0.05 # rad/s
    stationary_gps_threshold: float = 0.2       # m/s
    stationary_debounce_frames: int = 20
    stationary_variance: float = 0.01
    gps_hold_time: float = 2.0              # s a GPS speed stays relevant

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> 'EstimatorConfig':
        """
        Build a config from a (possibly partial) options mapping.

        Raises:
            ConfigurationError: on unknown options or invalid values
        """
        values = dict(values or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(f"Unknown estimator options: {', '.join(unknown)}")

        kwargs = {}
        for key, value in values.items():
            try:
                kwargs[key] = int(value) if key in _INT_OPTIONS else float(value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Estimator option {key} is not a number: {value!r}") from e

        config = cls(**kwargs)
        config.validate()
        return config

    def validate(self):
        """Raise ConfigurationError if any value is unusable."""
        for name, value in asdict(self).items():
            if not math.isfinite(value) or value < 0:
                raise ConfigurationError(f"Estimator option {name} must be a non-negative number, got {value!r}")

        if not 0 < self.drift_decay <= 1:
            raise ConfigurationError("drift_decay must be in (0, 1]")
        if self.gps_measurement_variance <= 0:
            raise ConfigurationError("gps_measurement_variance must be positive")
        if self.max_speed <= self.zero_speed_threshold:
            raise ConfigurationError("max_speed must exceed zero_speed_threshold")
        if self.accel_debounce_frames < 1:
            raise ConfigurationError("accel_debounce_frames must be at least 1")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
