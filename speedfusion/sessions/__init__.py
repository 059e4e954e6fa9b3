"""
Event timing state machines and their finalized records.
"""

from .records import RunMetrics, LapRecord, Track, SpeedPoint, GPSPoint, AccelPoint
from .drag import DragSession, DragState, DragSnapshot
from .lap import LapSession, LapState, LapSnapshot, predict_next_lap

__all__ = [
    "RunMetrics",
    "LapRecord",
    "Track",
    "SpeedPoint",
    "GPSPoint",
    "AccelPoint",
    "DragSession",
    "DragState",
    "DragSnapshot",
    "LapSession",
    "LapState",
    "LapSnapshot",
    "predict_next_lap",
]
