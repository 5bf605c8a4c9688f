"""
Geodesy helpers: great-circle distances and coarse land plausibility.
"""

import math
from typing import Optional, Sequence, Tuple

import numpy as np
from shapely.geometry import Point, box
from shapely.prepared import prep

from .constants import EARTH_RADIUS_M, LAND_BBOXES


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)

    a = (math.sin(dphi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_many(lat: float, lng: float, lats: Sequence[float], lngs: Sequence[float]) -> np.ndarray:
    """Distances in meters from one point to many."""
    lats = np.radians(np.asarray(lats, dtype=float))
    lngs = np.radians(np.asarray(lngs, dtype=float))
    phi = math.radians(lat)

    dphi = lats - phi
    dlmb = lngs - math.radians(lng)
    a = np.sin(dphi / 2) ** 2 + math.cos(phi) * np.cos(lats) * np.sin(dlmb / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    return EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


class LandMask:
    """
    Coarse continental bounding boxes.

    Catches coordinates dropped in the middle of an ocean (swapped lat/lng,
    0/0 placeholders). Coastlines are not modelled.
    """

    def __init__(self, bboxes: Sequence[Tuple] = LAND_BBOXES):
        self.regions = []
        for name, min_lat, max_lat, min_lng, max_lng in bboxes:
            self.regions.append((name, prep(box(min_lng, min_lat, max_lng, max_lat))))

    def region_for(self, lat: float, lng: float) -> Optional[str]:
        """Name of the first box covering the point, or None."""
        point = Point(lng, lat)
        for name, geom in self.regions:
            if geom.covers(point):
                return name
        return None

    def is_on_land(self, lat: float, lng: float) -> bool:
        return self.region_for(lat, lng) is not None
