"""Grid flood-fill reachability from the world boundary to residential zones."""

import logging
import math
from collections import deque
from typing import Optional

from zonesim.config import Settings
from zonesim.engine.geometry import Point
from zonesim.engine.zones import Zone, ZoneStore

logger = logging.getLogger(__name__)


class ConnectivityChecker:
    """
    Decides whether a residential zone can be reached by road from the world edge.

    Works on a quantized grid over the road circles and deliberately ignores
    the waypoint graph; the two can disagree on thin or corner-only contacts.
    """

    def __init__(self, zones: ZoneStore, settings: Settings):
        self.zones = zones
        self.settings = settings

    def boundary_road_points(self) -> list[Point]:
        """On-road points sampled along the four world edges."""
        width = self.settings.world_width
        height = self.settings.world_height
        stride = self.settings.edge_scan_step

        candidates: list[Point] = []
        for x in self._stride(width, stride):
            candidates.append(Point(x, 0.0))
            candidates.append(Point(x, height))
        for y in self._stride(height, stride):
            candidates.append(Point(0.0, y))
            candidates.append(Point(width, y))

        return [p for p in candidates if self.zones.is_on_road(p.x, p.y)]

    @staticmethod
    def _stride(length: float, stride: float) -> list[float]:
        count = int(math.floor(length / stride))
        return [i * stride for i in range(count + 1)]

    def is_zone_connected(self, zone_index: int) -> bool:
        """Check if any on-road boundary point floods into the zone."""
        zone = self.zones.residential_zone(zone_index)
        if zone is None:
            return False

        starts = self.boundary_road_points()
        if not starts:
            return False

        for start in starts:
            if self._flood(start, zone, track_path=False) is not None:
                return True
        return False

    def find_path_to_zone(self, start: Point, zone: Zone) -> list[Point]:
        """
        Grid breadth-first path from ``start`` into ``zone``.

        Returns:
            Points from start to the first in-zone cell, or [start] when the
            zone cannot be reached
        """
        path = self._flood(start, zone, track_path=True)
        if path is None:
            logger.debug(f"[CONNECTIVITY] No grid path from ({start.x:.0f}, {start.y:.0f})")
            return [start]
        return path

    def _cell(self, p: Point) -> tuple[int, int]:
        step = self.settings.pathfinding_step
        return math.floor(p.x / step), math.floor(p.y / step)

    def _flood(self, start: Point, zone: Zone, track_path: bool) -> Optional[list[Point]]:
        step = self.settings.pathfinding_step
        width = self.settings.world_width
        height = self.settings.world_height

        visited: set[tuple[int, int]] = set()
        parents: dict[Point, Optional[Point]] = {start: None}
        queue = deque([start])

        while queue:
            current = queue.popleft()
            key = self._cell(current)
            if key in visited:
                continue
            visited.add(key)

            if zone.contains(current.x, current.y):
                if not track_path:
                    return []
                path = []
                node: Optional[Point] = current
                while node is not None:
                    path.append(node)
                    node = parents[node]
                path.reverse()
                return path

            for dx, dy in ((step, 0), (-step, 0), (0, step), (0, -step)):
                neighbor = Point(current.x + dx, current.y + dy)
                if neighbor.x < 0 or neighbor.x > width or neighbor.y < 0 or neighbor.y > height:
                    continue
                if self._cell(neighbor) in visited:
                    continue
                if self.zones.is_on_road(neighbor.x, neighbor.y) or zone.contains(neighbor.x, neighbor.y):
                    if track_path and neighbor not in parents:
                        parents[neighbor] = current
                    queue.append(neighbor)

        return None
