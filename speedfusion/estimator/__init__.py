"""
Recursive speed/distance estimator and its detectors.
"""

from .config import EstimatorConfig
from .state import FilterState
from .models import MotionModel, MeasurementModel
from .detectors import StationaryDetector, ControlInputDetector
from .estimator import SpeedEstimator

__all__ = [
    "EstimatorConfig",
    "FilterState",
    "MotionModel",
    "MeasurementModel",
    "StationaryDetector",
    "ControlInputDetector",
    "SpeedEstimator",
]
