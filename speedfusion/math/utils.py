"""
Vector and geodesic helper functions.
"""

import math
import numpy as np

from .constants import EARTH_RADIUS_M


def vector_magnitude(vector) -> float:
    """
    Euclidean norm of a 3-axis sample.

    Args:
        vector: Sequence or numpy array of components

    Returns:
        float: Magnitude, NaN if any component is NaN
    """
    return float(np.linalg.norm(np.asarray(vector, dtype=float)))


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Calculate the great circle distance between two points on Earth.

    Args:
        lat1, lon1: Latitude and longitude of first point (degrees)
        lat2, lon2: Latitude and longitude of second point (degrees)

    Returns:
        float: Distance in meters
    """
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat/2)**2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon/2)**2
    c = 2 * math.asin(min(1.0, math.sqrt(a)))

    return EARTH_RADIUS_M * c


def coordinate_distance(a, b) -> float:
    """Great circle distance in meters between two Coordinate-like objects."""
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def offset_coordinate(latitude, longitude, north_m, east_m):
    """
    Move a point by a local north/east offset.

    Uses the equirectangular approximation, accurate for the few hundred
    meters a timing run covers.

    Returns:
        (latitude, longitude) in degrees
    """
    lat = latitude + math.degrees(north_m / EARTH_RADIUS_M)
    lon = longitude + math.degrees(
        east_m / (EARTH_RADIUS_M * math.cos(math.radians(latitude)))
    )
    return (lat, lon)
