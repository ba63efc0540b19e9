"""Road graph extraction from painted road zones."""

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Optional

from zonesim.config import Settings
from zonesim.engine.geometry import Point, distance, normalize
from zonesim.engine.zones import Circle, Zone, ZoneStore
from zonesim.schemas.world import RebuildReport

logger = logging.getLogger(__name__)


@dataclass
class Waypoint:
    """A node of the road graph. Flags are set once and never cleared."""

    id: int
    x: float
    y: float
    road_radius: Optional[float] = None
    is_road_center: bool = False
    is_intermediate: bool = False
    is_intersection: bool = False
    is_approach: bool = False
    parent_intersection: Optional[int] = None

    @property
    def position(self) -> Point:
        return Point(self.x, self.y)


class RoadGraph:
    """
    Undirected waypoint graph.

    Waypoints live in an arena keyed by a stable id, so appending nodes while
    walking another structure never shifts an existing node's identity.
    """

    def __init__(self):
        self.waypoints: dict[int, Waypoint] = {}
        self.connections: dict[int, list[int]] = {}
        self.edge_points: list[int] = []
        self.zone_entries: dict[int, list[int]] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return len(self.waypoints)

    def clear(self):
        self.waypoints.clear()
        self.connections.clear()
        self.edge_points.clear()
        self.zone_entries.clear()
        self._next_id = 0

    def find_near(self, x: float, y: float, radius: float) -> Optional[int]:
        """Id of the first waypoint strictly closer than ``radius``, if any."""
        for waypoint in self.waypoints.values():
            if distance(x, y, waypoint.x, waypoint.y) < radius:
                return waypoint.id
        return None

    def add_waypoint(self, x: float, y: float, min_distance: float, **flags) -> int:
        """
        Add a waypoint, or resolve to an existing one nearby.

        Coordinates are rounded to whole units before the duplicate check.

        Returns:
            Id of the new or existing waypoint
        """
        x = float(round(x))
        y = float(round(y))

        existing = self.find_near(x, y, min_distance)
        if existing is not None:
            return existing

        waypoint_id = self._next_id
        self._next_id += 1
        self.waypoints[waypoint_id] = Waypoint(id=waypoint_id, x=x, y=y, **flags)
        self.connections[waypoint_id] = []
        return waypoint_id

    def connect(self, a: int, b: int):
        """Add an undirected edge (no-op if present or a self-loop)."""
        if a == b or b in self.connections[a]:
            return
        self.connections[a].append(b)
        self.connections[b].append(a)

    def neighbors(self, waypoint_id: int) -> list[int]:
        return self.connections.get(waypoint_id, [])

    def degree(self, waypoint_id: int) -> int:
        return len(self.neighbors(waypoint_id))

    def edge_count(self) -> int:
        return sum(len(n) for n in self.connections.values()) // 2

    def is_symmetric(self) -> bool:
        """Check that every edge is recorded on both ends."""
        for a, neighbors in self.connections.items():
            for b in neighbors:
                if a not in self.connections.get(b, []):
                    return False
        return True

    def closest_node(self, x: float, y: float) -> Optional[int]:
        """Id of the waypoint nearest to (x, y), or None for an empty graph."""
        closest_id = None
        closest_distance = math.inf
        for waypoint in self.waypoints.values():
            d = distance(x, y, waypoint.x, waypoint.y)
            if d < closest_distance:
                closest_distance = d
                closest_id = waypoint.id
        return closest_id

    def _bfs(self, start_id: int, is_goal) -> list[Waypoint]:
        if start_id not in self.waypoints:
            return []

        parents: dict[int, Optional[int]] = {start_id: None}
        queue = deque([start_id])
        while queue:
            current = queue.popleft()
            if is_goal(current):
                path = []
                node: Optional[int] = current
                while node is not None:
                    path.append(self.waypoints[node])
                    node = parents[node]
                path.reverse()
                return path

            for neighbor in self.connections.get(current, []):
                if neighbor not in parents:
                    parents[neighbor] = current
                    queue.append(neighbor)

        return []

    def find_path_between_nodes(self, start_id: int, target_id: int) -> list[Waypoint]:
        """
        Unweighted breadth-first path between two waypoints.

        Returns:
            Waypoints from start to target inclusive, or [] if unreachable
        """
        if target_id not in self.waypoints:
            return []
        return self._bfs(start_id, lambda node: node == target_id)

    def find_path_to_zone_entry(self, start_id: int, zone_index: int) -> list[Waypoint]:
        """Breadth-first path to the nearest (in hops) entry point of a residential zone."""
        entries = set(self.zone_entries.get(zone_index, []))
        if not entries:
            return []
        return self._bfs(start_id, lambda node: node in entries)


class RoadNetworkBuilder:
    """
    Turns road zones into a waypoint graph.

    The graph is always rebuilt from scratch; ``needs_rebuild`` marks it stale.
    """

    def __init__(self, zones: ZoneStore, settings: Settings):
        self.zones = zones
        self.settings = settings
        self.graph = RoadGraph()
        self.needs_rebuild = True

    def rebuild(self) -> RebuildReport:
        """
        Rebuild the whole graph.

        Failures are logged and reported, never raised; the stale flag is
        cleared either way so a broken world does not rebuild every tick.
        """
        try:
            self.graph.clear()

            for zone in self.zones.road_zones:
                self._extract_centerline(zone)

            self._connect_nearby_waypoints()
            self._identify_intersections()
            self._order_intersection_connections()
            self._identify_edge_points()
            self._find_zone_entry_points()

            report = self._report()
            logger.info(
                f"[ROADS] Rebuilt network: {report.waypoint_count} waypoints, "
                f"{report.connection_count} links, {report.edge_point_count} edge points"
            )
            return report
        except Exception as e:
            logger.error(f"[ROADS] Rebuild failed: {e}")
            return self._report(error=str(e))
        finally:
            self.needs_rebuild = False

    def _report(self, error: Optional[str] = None) -> RebuildReport:
        waypoints = self.graph.waypoints.values()
        return RebuildReport(
            waypoint_count=len(self.graph),
            connection_count=self.graph.edge_count(),
            intersection_count=sum(1 for w in waypoints if w.is_intersection),
            approach_count=sum(1 for w in waypoints if w.is_approach),
            edge_point_count=len(self.graph.edge_points),
            error=error,
        )

    def _add_waypoint(self, x: float, y: float, **flags) -> int:
        return self.graph.add_waypoint(x, y, self.settings.min_point_distance, **flags)

    # -------------------------------------------------------------------------
    # Centerline extraction
    # -------------------------------------------------------------------------

    def _extract_centerline(self, zone: Zone):
        processed: set[int] = set()
        for i in range(len(zone.circles)):
            if i in processed:
                continue
            segment = self.trace_road_segment(zone.circles, i, processed)
            if segment:
                self._create_waypoints_for_segment(segment)

    def trace_road_segment(self, circles: list[Circle], start: int, processed: set[int]) -> list[Circle]:
        """Breadth-first cluster of circles whose centres chain within the connection radius."""
        segment = []
        queue = deque([start])
        radius = self.settings.connection_radius

        while queue:
            current = queue.popleft()
            if current in processed:
                continue
            processed.add(current)
            segment.append(circles[current])

            here = circles[current]
            for i, other in enumerate(circles):
                if i in processed:
                    continue
                if distance(here.x, here.y, other.x, other.y) <= radius:
                    queue.append(i)

        return segment

    @staticmethod
    def sort_for_flow(circles: list[Circle]) -> list[Circle]:
        """Order circles by greedy nearest-neighbour chaining from the first one."""
        if len(circles) <= 1:
            return list(circles)

        ordered = [circles[0]]
        remaining = list(circles[1:])
        while remaining:
            last = ordered[-1]
            closest = min(
                range(len(remaining)),
                key=lambda i: distance(last.x, last.y, remaining[i].x, remaining[i].y),
            )
            ordered.append(remaining.pop(closest))
        return ordered

    def _create_waypoints_for_segment(self, segment: list[Circle]):
        ordered = self.sort_for_flow(segment)
        threshold = self.settings.intermediate_threshold
        spacing = self.settings.intermediate_spacing

        for i, circle in enumerate(ordered):
            self._add_waypoint(circle.x, circle.y, road_radius=circle.radius, is_road_center=True)

            if i == len(ordered) - 1:
                continue

            nxt = ordered[i + 1]
            gap = distance(circle.x, circle.y, nxt.x, nxt.y)
            if gap <= threshold:
                continue

            steps = math.ceil(gap / spacing)
            for step in range(1, steps):
                t = step / steps
                x = circle.x + (nxt.x - circle.x) * t
                y = circle.y + (nxt.y - circle.y) * t
                if self.zones.is_on_road(x, y):
                    self._add_waypoint(
                        x, y,
                        road_radius=min(circle.radius, nxt.radius),
                        is_intermediate=True,
                    )

    # -------------------------------------------------------------------------
    # Linking and intersections
    # -------------------------------------------------------------------------

    def has_road_path_between(self, a: Waypoint, b: Waypoint) -> bool:
        """Sample the straight segment a-b; every sample must be on a road."""
        steps = self.settings.road_check_samples
        for i in range(steps + 1):
            t = i / steps
            x = a.x + (b.x - a.x) * t
            y = a.y + (b.y - a.y) * t
            if not self.zones.is_on_road(x, y):
                return False
        return True

    def _connect_nearby_waypoints(self):
        radius = self.settings.connection_radius
        waypoints = list(self.graph.waypoints.values())

        for i, a in enumerate(waypoints):
            for b in waypoints[i + 1:]:
                if distance(a.x, a.y, b.x, b.y) > radius:
                    continue
                if self.has_road_path_between(a, b):
                    self.graph.connect(a.id, b.id)

    def _identify_intersections(self):
        # Degrees are read before any approach nodes are added
        intersections = [
            waypoint_id for waypoint_id in list(self.graph.waypoints)
            if self.graph.degree(waypoint_id) >= 3
        ]
        for waypoint_id in intersections:
            self.graph.waypoints[waypoint_id].is_intersection = True

        for waypoint_id in intersections:
            if self.graph.degree(waypoint_id) >= 4:
                self._enhance_intersection(waypoint_id)

    def _enhance_intersection(self, intersection_id: int):
        intersection = self.graph.waypoints[intersection_id]
        approach = self.settings.approach_distance

        for neighbor_id in list(self.graph.neighbors(intersection_id)):
            neighbor = self.graph.waypoints[neighbor_id]
            dx = intersection.x - neighbor.x
            dy = intersection.y - neighbor.y
            length = math.hypot(dx, dy)
            if length <= approach * 2:
                continue

            x = round(intersection.x - dx / length * approach)
            y = round(intersection.y - dy / length * approach)
            if not self.zones.is_on_road(x, y):
                continue
            if self.graph.find_near(x, y, self.settings.min_point_distance) is not None:
                continue

            approach_id = self._add_waypoint(
                x, y,
                is_approach=True,
                parent_intersection=intersection_id,
            )
            self.graph.connect(approach_id, intersection_id)
            self.graph.connect(approach_id, neighbor_id)

    def _order_intersection_connections(self):
        for waypoint in self.graph.waypoints.values():
            if not waypoint.is_intersection:
                continue
            self.graph.connections[waypoint.id].sort(
                key=lambda n: math.atan2(
                    self.graph.waypoints[n].y - waypoint.y,
                    self.graph.waypoints[n].x - waypoint.x,
                )
            )

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def _identify_edge_points(self):
        threshold = self.settings.edge_threshold
        width = self.settings.world_width
        height = self.settings.world_height

        for waypoint in self.graph.waypoints.values():
            if (
                waypoint.x <= threshold or waypoint.x >= width - threshold
                or waypoint.y <= threshold or waypoint.y >= height - threshold
            ):
                self.graph.edge_points.append(waypoint.id)

    def _find_zone_entry_points(self):
        outer = self.settings.entry_outer_margin
        inner = self.settings.entry_inner_margin

        for zone_index, zone in enumerate(self.zones.residential_zones):
            entries = []
            for waypoint in self.graph.waypoints.values():
                for circle in zone.circles:
                    d = distance(waypoint.x, waypoint.y, circle.x, circle.y)
                    if circle.radius - inner <= d <= circle.radius + outer:
                        entries.append(waypoint.id)
                        break
            self.graph.zone_entries[zone_index] = entries


# =============================================================================
# Road sampling
# =============================================================================

@dataclass
class RoadSegment:
    """The road sample nearest to a query point."""

    position: Optional[Circle]
    direction: Point
    distance: float


def road_direction(zones: ZoneStore, x: float, y: float, sample_radius: float) -> Point:
    """
    Estimate the local road direction at (x, y).

    Distance-weighted average of offsets to road centres within
    ``sample_radius``; defaults to (0, 1) when nothing is nearby.
    Offsets are folded onto the half-plane of the first one found, so the
    samples on both sides of a straight road reinforce instead of cancel.
    """
    sum_x = 0.0
    sum_y = 0.0
    reference: Optional[tuple[float, float]] = None
    for circle in zones.road_circles():
        d = distance(x, y, circle.x, circle.y)
        if not 0 < d <= sample_radius:
            continue
        dx = circle.x - x
        dy = circle.y - y
        if reference is None:
            reference = (dx, dy)
        elif dx * reference[0] + dy * reference[1] < 0:
            dx, dy = -dx, -dy
        weight = 1 / (d + 1)
        sum_x += dx * weight
        sum_y += dy * weight

    if reference is None:
        return Point(0.0, 1.0)
    return normalize(sum_x, sum_y)


def nearest_road_segment(zones: ZoneStore, x: float, y: float, sample_radius: float) -> RoadSegment:
    """Find the nearest road circle and the road direction around it."""
    closest: Optional[Circle] = None
    closest_distance = math.inf
    for circle in zones.road_circles():
        d = distance(x, y, circle.x, circle.y)
        if d < closest_distance:
            closest_distance = d
            closest = circle

    if closest is None:
        return RoadSegment(position=None, direction=Point(0.0, 1.0), distance=math.inf)

    return RoadSegment(
        position=closest,
        direction=road_direction(zones, closest.x, closest.y, sample_radius),
        distance=closest_distance,
    )
