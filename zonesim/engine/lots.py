"""Lot and territory polygons for settled agents."""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from shapely.prepared import PreparedGeometry

from zonesim.config import Settings
from zonesim.engine.geometry import (
    Point,
    distance,
    march_ray,
    perpendicular,
    point_in_polygon,
    polygon_area,
    polygons_overlap,
    prepare,
    regular_polygon,
    smooth_polygon,
)
from zonesim.engine.road_network import nearest_road_segment
from zonesim.engine.zones import ZoneStore

logger = logging.getLogger(__name__)


@dataclass
class LotPolygon:
    """Parcel computed once when an agent settles."""

    points: list[Point]
    center: Point
    area: float
    _shape: Optional[PreparedGeometry] = field(default=None, init=False, repr=False, compare=False)

    def contains(self, x: float, y: float) -> bool:
        if self._shape is None:
            self._shape = prepare(self.points)
        return point_in_polygon(x, y, self._shape)


@dataclass
class TerritoryBoundary:
    """Where one territory ray stopped, and why."""

    angle: float
    distance: float
    x: float
    y: float
    reason: str


@dataclass
class TerritoryPolygon:
    """Recomputed space claim around a settled agent."""

    points: list[Point]
    center: Point
    boundaries: list[TerritoryBoundary] = field(default_factory=list)
    _shape: Optional[PreparedGeometry] = field(default=None, init=False, repr=False, compare=False)

    def contains(self, x: float, y: float) -> bool:
        if self._shape is None:
            self._shape = prepare(self.points)
        return point_in_polygon(x, y, self._shape)


class LotGeometry:
    """
    Derives lot and territory shapes from the zones and the other agents.

    Agents are duck-typed: anything with ``final_position``, ``lot_polygon``
    and ``territory_polygon`` attributes works.
    """

    def __init__(self, zones: ZoneStore, settings: Settings):
        self.zones = zones
        self.settings = settings

    # -------------------------------------------------------------------------
    # Lots
    # -------------------------------------------------------------------------

    def generate_adaptive_lot(self, agent, others: Iterable) -> LotPolygon:
        """
        Build a quadrilateral lot facing the nearest road.

        The front edge runs along the local road direction; depth extends
        away from the road. Falls back to a regular polygon when the world
        has no roads.
        """
        s = self.settings
        center = agent.final_position
        others = [o for o in others if o is not agent]

        road = nearest_road_segment(self.zones, center.x, center.y, s.road_sample_radius)
        if road.position is None:
            logger.debug("[LOTS] No road found, using circular lot")
            return self.circular_lot(center, s.fallback_lot_radius)

        along = road.direction
        inward = perpendicular(along)
        # Depth must grow away from the road
        if (center.x - road.position.x) * inward.x + (center.y - road.position.y) * inward.y < 0:
            inward = Point(-inward.x, -inward.y)

        front = Point(
            center.x - inward.x * s.street_front_distance,
            center.y - inward.y * s.street_front_distance,
        )

        depth = self.available_depth(front, inward, s.max_lot_depth, others)
        depth = min(s.max_lot_depth, max(s.min_lot_depth, depth))

        width = self.available_width(front, along, s.max_lot_width, others)
        width = min(s.max_lot_width, max(s.min_lot_width, width))

        points = self._quad(front, along, inward, width, depth)
        # Rays only sample the centre lines, so corners can still reach into a neighbour's lot
        neighbour_lots = [o.lot_polygon.points for o in others if o.lot_polygon is not None]
        while depth > s.min_lot_depth and any(polygons_overlap(points, lot) for lot in neighbour_lots):
            depth = max(s.min_lot_depth, depth - s.lot_step)
            points = self._quad(front, along, inward, width, depth)

        return LotPolygon(points=points, center=center, area=polygon_area(points))

    @staticmethod
    def _quad(front: Point, along: Point, inward: Point, width: float, depth: float) -> list[Point]:
        half = width / 2
        front_left = Point(front.x + along.x * half, front.y + along.y * half)
        front_right = Point(front.x - along.x * half, front.y - along.y * half)
        back_left = Point(front_left.x + inward.x * depth, front_left.y + inward.y * depth)
        back_right = Point(front_right.x + inward.x * depth, front_right.y + inward.y * depth)
        return [front_left, front_right, back_right, back_left]

    def is_claimed(self, x: float, y: float, others: Iterable) -> bool:
        """Check if a point is already claimed by one of ``others``."""
        for other in others:
            if distance(x, y, other.final_position.x, other.final_position.y) < self.settings.claim_distance:
                return True
            if other.lot_polygon is not None and other.lot_polygon.contains(x, y):
                return True
            if other.territory_polygon is not None and other.territory_polygon.contains(x, y):
                return True
        return False

    def _free_for_lot(self, others: list):
        def blocked(x: float, y: float) -> Optional[str]:
            if not self.zones.is_in_residential(x, y):
                return "zone_boundary"
            if self.is_claimed(x, y, others):
                return "claimed"
            return None
        return blocked

    def available_depth(self, front: Point, inward: Point, max_depth: float, others: list) -> float:
        """Free distance from the street front going away from the road."""
        depth, _ = march_ray(front, inward, max_depth, self.settings.lot_step, self._free_for_lot(others))
        return depth

    def available_width(self, front: Point, along: Point, max_width: float, others: list) -> float:
        """Free frontage along the road, both sides of the front centre added together."""
        blocked = self._free_for_lot(others)
        step = self.settings.lot_step
        left, _ = march_ray(front, along, max_width / 2, step, blocked)
        right, _ = march_ray(front, Point(-along.x, -along.y), max_width / 2, step, blocked)
        return left + right

    def circular_lot(self, center: Point, radius: float) -> LotPolygon:
        return LotPolygon(
            points=regular_polygon(center, radius, self.settings.fallback_lot_segments),
            center=center,
            area=math.pi * radius * radius,
        )

    # -------------------------------------------------------------------------
    # Territories
    # -------------------------------------------------------------------------

    def generate_territory(self, agent, others: Iterable) -> TerritoryPolygon:
        """Cast rays from the settle position and wrap the stopping points in a polygon."""
        s = self.settings
        center = agent.final_position
        others = [o for o in others if o is not agent]

        boundaries = []
        for i in range(s.territory_ray_count):
            angle = i / s.territory_ray_count * math.pi * 2
            direction = Point(math.cos(angle), math.sin(angle))
            reach, reason = self.cast_ray(center, direction, others)
            boundaries.append(TerritoryBoundary(
                angle=angle,
                distance=reach,
                x=center.x + direction.x * reach,
                y=center.y + direction.y * reach,
                reason=reason,
            ))

        raw = [Point(b.x, b.y) for b in boundaries]
        return TerritoryPolygon(
            points=smooth_polygon(raw, s.territory_smoothing),
            center=center,
            boundaries=boundaries,
        )

    def cast_ray(self, start: Point, direction: Point, others: list) -> tuple[float, str]:
        """March one territory ray; returns (distance, stop reason)."""
        s = self.settings

        def blocked(x: float, y: float) -> Optional[str]:
            for other in others:
                if other.territory_polygon is not None and other.territory_polygon.contains(x, y):
                    return "agent_territory"
                if distance(x, y, other.final_position.x, other.final_position.y) < s.claim_distance:
                    return "agent"
            if not self.zones.is_in_residential(x, y):
                return "zone_boundary"
            if self.zones.is_on_road(x, y):
                return "road_boundary"
            if x < 0 or x > s.world_width or y < 0 or y > s.world_height:
                return "world_boundary"
            return None

        return march_ray(start, direction, s.territory_max_radius, s.territory_step, blocked)
