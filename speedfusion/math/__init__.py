"""
Mathematical utilities for speed and distance estimation.
"""

from .utils import vector_magnitude, haversine_distance, coordinate_distance, offset_coordinate
from .units import SpeedUnit
from .constants import *

__all__ = [
    "vector_magnitude",
    "haversine_distance",
    "coordinate_distance",
    "offset_coordinate",
    "SpeedUnit",
]
