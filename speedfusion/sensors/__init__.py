"""
Sensor sample types and input sanitising.
"""

from .imu import InertialFrame
from .gps import (
    PositionFix, Coordinate, GPSValidityGate, GateConfig,
    REJECT_ACCURACY, REJECT_SPEED, REJECT_STALE, REJECT_JUMP
)

__all__ = [
    "InertialFrame",
    "PositionFix",
    "Coordinate",
    "GPSValidityGate",
    "GateConfig",
    "REJECT_ACCURACY",
    "REJECT_SPEED",
    "REJECT_STALE",
    "REJECT_JUMP",
]
