"""
Speed and distance estimation for performance timing.

This package provides platform-independent implementations of:
- GPS validity gating and stationary detection
- A recursive filter fusing GPS Doppler speed with inertial frames
- Drag run and lap session timing
"""

__version__ = "1.0.0"
__author__ = "Speedfusion Team"

from .errors import ConfigurationError
from .estimator import SpeedEstimator, EstimatorConfig
from .sensors import InertialFrame, PositionFix, Coordinate, GPSValidityGate, GateConfig
from .fusion import SensorFusion, FusionSnapshot
from .sessions import DragSession, LapSession, RunMetrics, LapRecord, Track

__all__ = [
    "ConfigurationError",
    "SpeedEstimator",
    "EstimatorConfig",
    "InertialFrame",
    "PositionFix",
    "Coordinate",
    "GPSValidityGate",
    "GateConfig",
    "SensorFusion",
    "FusionSnapshot",
    "DragSession",
    "LapSession",
    "RunMetrics",
    "LapRecord",
    "Track",
]
