"""
In-process spatial index over (longitude, latitude) points.

A fixed-size grid: every entity id lives in exactly one cell, and a radius
query returns the ids held by cells overlapping the radius' bounding box.
Exact distance filtering and ordering are left to rank_within_radius.
"""

import math
import logging
from typing import Dict, List, Optional, Set, Tuple

from app.utils.geo import latitude_band, longitude_span

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]


class GeoIndex:
    """Grid index mapping cells to the ids of the points inside them."""

    def __init__(self, cell_size_degrees: float = 0.05):
        if cell_size_degrees <= 0:
            raise ValueError("cell_size_degrees must be positive")
        self.cell_size = cell_size_degrees
        self._cells: Dict[Cell, Set[str]] = {}
        self._positions: Dict[str, Cell] = {}

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._positions

    def _cell(self, longitude: float, latitude: float) -> Cell:
        return (
            int(math.floor(longitude / self.cell_size)),
            int(math.floor(latitude / self.cell_size)),
        )

    def insert(self, entity_id: str, longitude: float, latitude: float) -> None:
        self.remove(entity_id)
        cell = self._cell(longitude, latitude)
        self._cells.setdefault(cell, set()).add(entity_id)
        self._positions[entity_id] = cell

    def remove(self, entity_id: str) -> None:
        cell = self._positions.pop(entity_id, None)
        if cell is None:
            return
        members = self._cells.get(cell)
        if members is not None:
            members.discard(entity_id)
            if not members:
                del self._cells[cell]

    def _columns(self, west: float, east: float) -> List[range]:
        """Column ranges covering [west, east], split in two across the antimeridian."""
        if west < -180.0:
            return [self._column_range(-180.0, east), self._column_range(west + 360.0, 180.0)]
        if east > 180.0:
            return [self._column_range(west, 180.0), self._column_range(-180.0, east - 360.0)]
        return [self._column_range(west, east)]

    def _column_range(self, west: float, east: float) -> range:
        return range(int(math.floor(west / self.cell_size)), int(math.floor(east / self.cell_size)) + 1)

    def candidates(self, longitude: float, latitude: float, radius_meters: float) -> Set[str]:
        """
        Ids of every point that may lie within radius_meters of the given point.

        Looks up the cells of the bounding box directly while it is smaller than
        the set of occupied cells, otherwise filters the occupied cells, so a
        huge radius costs no more than one pass over the index.
        """
        lat_lo, lat_hi = latitude_band(latitude, radius_meters)
        rows = range(int(math.floor(lat_lo / self.cell_size)), int(math.floor(lat_hi / self.cell_size)) + 1)
        span = longitude_span(latitude, radius_meters)
        columns: Optional[List[range]] = None
        if span is not None:
            columns = self._columns(longitude - span, longitude + span)

        found: Set[str] = set()
        if columns is None or len(rows) * sum(len(c) for c in columns) > len(self._cells):
            for (col, row), members in self._cells.items():
                if row in rows and (columns is None or any(col in c for c in columns)):
                    found.update(members)
            return found

        for column_range in columns:
            for col in column_range:
                for row in rows:
                    members = self._cells.get((col, row))
                    if members:
                        found.update(members)
        return found
