"""
Display units for speed read-outs.
"""

from enum import Enum

from .constants import MPS_TO_MPH, MPS_TO_KMH


class SpeedUnit(str, Enum):
    """Unit a speed is shown in. Internal values are always m/s."""

    MPH = "mph"
    KMH = "kmh"

    def convert(self, mps: float) -> float:
        if self is SpeedUnit.MPH:
            return mps * MPS_TO_MPH
        return mps * MPS_TO_KMH

    def to_mps(self, value: float) -> float:
        if self is SpeedUnit.MPH:
            return value / MPS_TO_MPH
        return value / MPS_TO_KMH

    @property
    def label(self) -> str:
        return "mph" if self is SpeedUnit.MPH else "km/h"
