"""
Grid-bucketed spatial index over canonical site positions.

Each configured precision p keeps its own grid keyed by
(floor(lat * 10^p), floor(lng * 10^p)). A query picks the finest grid whose
cells are at least as tall as the search radius, gathers the cells overlapping
the radius (wider in longitude towards the poles, wrapping at the
antimeridian) and filters them with exact haversine distances.
"""

import math
from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

from ..constants import EARTH_RADIUS_M, GRID_PRECISIONS
from ..geo import haversine_many

# Degrees of latitude per meter along a meridian
_DEG_PER_M = 180.0 / (math.pi * EARTH_RADIUS_M)

# Slack on cell ranges so points exactly on the radius are never missed
_RANGE_MARGIN = 1.01


class SpatialIndex:
    """Point index for proximity queries. Not thread-safe."""

    def __init__(self, precisions: Iterable[int] = GRID_PRECISIONS):
        # Finest grid first
        self.precisions = tuple(sorted(set(int(p) for p in precisions), reverse=True))
        if not self.precisions:
            raise ValueError("SpatialIndex needs at least one grid precision")

        self._grids = {p: defaultdict(list) for p in self.precisions}
        self._points: Dict[str, Tuple[float, float, int]] = {}
        self._seq = 0

    def __len__(self) -> int:
        return len(self._points)

    def __contains__(self, site_id: str) -> bool:
        return site_id in self._points

    @staticmethod
    def _cell(lat: float, lng: float, scale: int) -> Tuple[int, int]:
        n_lng = 360 * scale
        return (math.floor(lat * scale), math.floor((lng + 180.0) * scale) % n_lng)

    def insert(self, site_id: str, lat: float, lng: float) -> None:
        if site_id in self._points:
            raise ValueError(f"Site already indexed: {site_id}")
        self._add(site_id, lat, lng, self._seq)
        self._seq += 1

    def _add(self, site_id: str, lat: float, lng: float, seq: int) -> None:
        self._points[site_id] = (lat, lng, seq)
        for p, grid in self._grids.items():
            grid[self._cell(lat, lng, 10 ** p)].append(site_id)

    def remove(self, site_id: str) -> None:
        lat, lng, _ = self._points.pop(site_id)
        for p, grid in self._grids.items():
            key = self._cell(lat, lng, 10 ** p)
            bucket = grid[key]
            bucket.remove(site_id)
            if not bucket:
                del grid[key]

    def move(self, site_id: str, lat: float, lng: float) -> None:
        """Re-position a site, keeping its insertion order for tie-breaks."""
        seq = self._points[site_id][2]
        self.remove(site_id)
        self._add(site_id, lat, lng, seq)

    def position(self, site_id: str) -> Tuple[float, float]:
        lat, lng, _ = self._points[site_id]
        return lat, lng

    def _pick_precision(self, radius_m: float) -> int:
        for p in self.precisions:
            cell_height_m = (1.0 / 10 ** p) / _DEG_PER_M
            if cell_height_m >= radius_m:
                return p
        return self.precisions[-1]

    def _candidate_ids(self, lat: float, lng: float, radius_m: float) -> List[str]:
        p = self._pick_precision(radius_m)
        scale = 10 ** p
        grid = self._grids[p]

        dlat = radius_m * _DEG_PER_M * _RANGE_MARGIN
        lat_lo = max(-90.0, lat - dlat)
        lat_hi = min(90.0, lat + dlat)

        # Meridians converge: widen the longitude range using the band edge
        # closest to a pole
        cos_edge = math.cos(math.radians(max(abs(lat_lo), abs(lat_hi))))
        if cos_edge <= 1e-9 or dlat / cos_edge >= 180.0:
            return list(self._points)
        dlng = dlat / cos_edge

        iy_lo = math.floor(lat_lo * scale)
        iy_hi = math.floor(lat_hi * scale)
        ix_lo = math.floor((lng - dlng + 180.0) * scale)
        ix_hi = math.floor((lng + dlng + 180.0) * scale)

        n_cells = (iy_hi - iy_lo + 1) * (ix_hi - ix_lo + 1)
        if n_cells > len(grid):
            # Sparse index: cheaper to walk the occupied cells
            return list(self._points)

        n_lng = 360 * scale
        ids = []
        for iy in range(iy_lo, iy_hi + 1):
            for ix in range(ix_lo, ix_hi + 1):
                ids.extend(grid.get((iy, ix % n_lng), ()))
        return ids

    def query(self, lat: float, lng: float, radius_m: float) -> List[Tuple[str, float]]:
        """
        All indexed sites within radius_m of (lat, lng).

        Returns:
            (site_id, distance_m) pairs, nearest first; equal distances keep
            insertion order.
        """
        if not self._points:
            return []

        ids = self._candidate_ids(lat, lng, radius_m)
        if not ids:
            return []

        # A site can appear twice when a wrapped range revisits a column
        ids = list(dict.fromkeys(ids))
        points = [self._points[i] for i in ids]
        distances = haversine_many(lat, lng, [pt[0] for pt in points], [pt[1] for pt in points])

        hits = [
            (float(d), pt[2], site_id)
            for site_id, pt, d in zip(ids, points, distances)
            if d <= radius_m
        ]
        hits.sort()
        return [(site_id, d) for d, _, site_id in hits]
