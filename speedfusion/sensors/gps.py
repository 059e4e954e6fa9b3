"""
Positioning fixes and the validity gate applied before fusion.
"""

import logging
import math
import time
from dataclasses import dataclass, field, fields, asdict
from typing import Optional, Dict, Any

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coordinate:
    """Geographic point in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class PositionFix:
    """
    One positioning fix as delivered by the receiver.

    Negative speed, horizontal accuracy or course mean the receiver did not
    provide that value.
    """

    latitude: float
    longitude: float

    # Doppler speed (m/s)
    speed: float = -1.0

    # Quality indicators
    horizontal_accuracy: float = -1.0  # meters
    course: float = -1.0               # degrees, 0 = north

    # Monotonic timestamp (seconds)
    timestamp: float = field(default_factory=time.monotonic)

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    @property
    def has_valid_position(self) -> bool:
        return (self.horizontal_accuracy >= 0 and
                -90 <= self.latitude <= 90 and
                -180 <= self.longitude <= 180)

    @property
    def has_valid_course(self) -> bool:
        return self.course >= 0


# Rejection reasons, in the order the gate checks them
REJECT_ACCURACY = "accuracy"
REJECT_SPEED = "invalid_speed"
REJECT_STALE = "stale"
REJECT_JUMP = "implausible_jump"


@dataclass
class GateConfig:
    """Thresholds of the GPS validity gate."""

    max_horizontal_accuracy: float = 15.0   # meters, exclusive
    speed_noise_floor: float = 0.2          # m/s, coerced to zero below
    max_fix_age: float = 2.0                # seconds
    max_speed_jump: float = 3.0             # m/s
    jump_accel_threshold: float = 0.05      # g

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> 'GateConfig':
        values = dict(values or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(f"Unknown GPS gate options: {', '.join(unknown)}")
        try:
            config = cls(**{k: float(v) for k, v in values.items()})
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"GPS gate options must be numbers: {e}") from e
        config.validate()
        return config

    def validate(self):
        for name, value in asdict(self).items():
            if not math.isfinite(value) or value < 0:
                raise ConfigurationError(f"GPS gate option {name} must be a non-negative number, got {value!r}")
        if self.max_horizontal_accuracy == 0:
            raise ConfigurationError("max_horizontal_accuracy must be positive")

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class GPSValidityGate:
    """
    Decides whether a fix's Doppler speed may reach the estimator.

    The gate only returns a decision. It never touches filter state.
    """

    def __init__(self, config: Optional[GateConfig] = None):
        self.config = config or GateConfig()
        self.config.validate()

        self.last_rejection: Optional[str] = None

        # Statistics
        self.accepted_count = 0
        self.rejected_counts = {
            REJECT_ACCURACY: 0,
            REJECT_SPEED: 0,
            REJECT_STALE: 0,
            REJECT_JUMP: 0,
        }

    def evaluate(self, fix: PositionFix, current_speed: float,
                 accel_magnitude: float, now: Optional[float] = None) -> Optional[float]:
        """
        Gate a fix.

        Args:
            fix: Raw positioning fix
            current_speed: Current filtered speed (m/s)
            accel_magnitude: Latest measured acceleration magnitude (g)
            now: Processing time on the fix clock, defaults to the fix time

        Returns:
            Accepted Doppler speed in m/s, or None when rejected
        """
        cfg = self.config
        if now is None:
            now = fix.timestamp

        accuracy = fix.horizontal_accuracy
        if not (0 <= accuracy < cfg.max_horizontal_accuracy):
            return self._reject(REJECT_ACCURACY, fix)

        speed = fix.speed
        if not speed >= 0:
            return self._reject(REJECT_SPEED, fix)
        if speed < cfg.speed_noise_floor:
            speed = 0.0

        if now - fix.timestamp > cfg.max_fix_age:
            return self._reject(REJECT_STALE, fix)

        if (abs(speed - current_speed) > cfg.max_speed_jump and
                accel_magnitude < cfg.jump_accel_threshold):
            return self._reject(REJECT_JUMP, fix)

        self.last_rejection = None
        self.accepted_count += 1
        return speed

    def _reject(self, reason: str, fix: PositionFix) -> None:
        self.last_rejection = reason
        self.rejected_counts[reason] += 1
        logger.debug("Rejected fix at %.3f (%s): speed=%.2f m/s accuracy=%.1f m",
                     fix.timestamp, reason, fix.speed, fix.horizontal_accuracy)
        return None

    def get_statistics(self) -> dict:
        """Get gate statistics."""
        return {
            'accepted': self.accepted_count,
            'rejected': dict(self.rejected_counts),
            'last_rejection': self.last_rejection,
        }
