"""Zone store: residential and road zones as unions of painted circles."""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from zonesim.config import Settings, validate_zone_kind
from zonesim.engine.geometry import Point, distance, quadratic_bezier

logger = logging.getLogger(__name__)


class ZoneKind(str, Enum):
    """Kinds of paintable zones."""

    RESIDENTIAL = "residential"
    ROAD = "road"


@dataclass
class Circle:
    """One brush dab. A zone is the union of its circles."""

    x: float
    y: float
    radius: float

    def contains(self, x: float, y: float) -> bool:
        return distance(self.x, self.y, x, y) <= self.radius

    @property
    def area(self) -> float:
        return math.pi * self.radius * self.radius


@dataclass
class Zone:
    """A painted zone of a single kind."""

    kind: ZoneKind
    circles: list[Circle] = field(default_factory=list)
    # Assigned by the store; survives merges into this zone and index shifts
    id: Optional[int] = None

    def contains(self, x: float, y: float) -> bool:
        """Check if a point lies inside any of the zone's circles."""
        return any(c.contains(x, y) for c in self.circles)

    def total_area(self) -> float:
        """Sum of circle areas. Overlapping dabs are counted twice."""
        return sum(c.area for c in self.circles)

    def has_circle_within(self, x: float, y: float, radius: float) -> bool:
        """Check if any circle centre is strictly closer than ``radius`` to (x, y)."""
        return any(distance(c.x, c.y, x, y) < radius for c in self.circles)


class ZoneStore:
    """
    Owns the residential and road zone collections.

    Roads dominate residential: a road stroke removes residential dabs under
    it, and a residential stroke over a road is rejected outright.

    Zones carry an id that stays fixed while the lists shift around them.
    When a stroke folds several zones together, the absorbed ids are recorded
    in ``merged_into`` so holders of an old id can follow it.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.residential_zones: list[Zone] = []
        self.road_zones: list[Zone] = []
        self.merged_into: dict[int, int] = {}
        self._next_zone_id = 0

    def zones(self, kind: Union[ZoneKind, str]) -> list[Zone]:
        """Get the live zone list for a kind."""
        kind = ZoneKind(kind)
        if kind == ZoneKind.RESIDENTIAL:
            return self.residential_zones
        return self.road_zones

    def paint(self, kind: Union[ZoneKind, str], x: float, y: float, radius: float) -> bool:
        """
        Paint one circle of the given kind.

        Args:
            kind: Zone kind to paint
            x, y: Brush centre in world coordinates
            radius: Brush radius

        Returns:
            True if the store changed, False if the stroke was rejected
        """
        if not validate_zone_kind(kind):
            raise ValueError(f"Unknown zone kind: {kind!r}")
        kind = ZoneKind(kind)
        if radius <= 0:
            raise ValueError(f"Brush radius must be positive, got {radius}")

        if kind == ZoneKind.RESIDENTIAL:
            if any(z.has_circle_within(x, y, radius) for z in self.road_zones):
                logger.debug(f"[ZONES] Residential stroke at ({x:.0f}, {y:.0f}) rejected: overlaps road")
                return False
        else:
            self._remove_circles(self.residential_zones, x, y, radius)

        self._merge_circle(self.zones(kind), kind, Circle(x, y, radius))
        return True

    def erase(self, x: float, y: float, radius: float) -> int:
        """
        Remove every circle whose centre is within ``radius`` of (x, y).

        Applies to both kinds. Zones left empty are deleted.

        Returns:
            Number of circles removed
        """
        removed = self._remove_circles(self.residential_zones, x, y, radius)
        removed += self._remove_circles(self.road_zones, x, y, radius)
        if removed:
            logger.debug(f"[ZONES] Erased {removed} circles at ({x:.0f}, {y:.0f})")
        return removed

    def _merge_circle(self, zones: list[Zone], kind: ZoneKind, circle: Circle):
        merge_distance = circle.radius * self.settings.merge_distance_multiplier
        matched = [
            i for i, zone in enumerate(zones)
            if zone.has_circle_within(circle.x, circle.y, merge_distance)
        ]

        if not matched:
            zones.append(Zone(kind=kind, circles=[circle], id=self._next_zone_id))
            self._next_zone_id += 1
            return

        # Lowest index survives, the rest fold into it
        primary = zones[matched[0]]
        primary.circles.append(circle)
        for idx in sorted(matched[1:], reverse=True):
            absorbed = zones[idx]
            primary.circles.extend(absorbed.circles)
            del zones[idx]
            if absorbed.id is not None and primary.id is not None:
                self._record_merge(absorbed.id, primary.id)

    def _record_merge(self, absorbed_id: int, primary_id: int):
        # Keep every alias one hop from a live id
        for old_id, target in self.merged_into.items():
            if target == absorbed_id:
                self.merged_into[old_id] = primary_id
        self.merged_into[absorbed_id] = primary_id

    @staticmethod
    def _remove_circles(zones: list[Zone], x: float, y: float, radius: float) -> int:
        removed = 0
        for i in range(len(zones) - 1, -1, -1):
            zone = zones[i]
            kept = [c for c in zone.circles if distance(c.x, c.y, x, y) >= radius]
            removed += len(zone.circles) - len(kept)
            zone.circles = kept
            if not kept:
                del zones[i]
        return removed

    def is_on_road(self, x: float, y: float) -> bool:
        """Check if a point lies inside any road circle."""
        return any(z.contains(x, y) for z in self.road_zones)

    def is_in_residential(self, x: float, y: float) -> bool:
        """Check if a point lies inside any residential circle."""
        return any(z.contains(x, y) for z in self.residential_zones)

    def road_circles(self) -> list[Circle]:
        """All road circles across all road zones."""
        return [c for z in self.road_zones for c in z.circles]

    def residential_zone(self, index: int) -> Optional[Zone]:
        if 0 <= index < len(self.residential_zones):
            return self.residential_zones[index]
        return None

    def canonical_zone_id(self, zone_id: int) -> int:
        """The id a zone now lives under after any merges."""
        return self.merged_into.get(zone_id, zone_id)

    def residential_index(self, zone_id: Optional[int]) -> Optional[int]:
        """Current list position of a residential zone id, or None if it is gone."""
        if zone_id is None:
            return None
        for index, zone in enumerate(self.residential_zones):
            if zone.id == zone_id:
                return index
        return None

    def residential_zone_by_id(self, zone_id: int) -> Optional[Zone]:
        index = self.residential_index(zone_id)
        return self.residential_zones[index] if index is not None else None


@dataclass
class StrokeSample:
    """A recorded brush position."""

    x: float
    y: float
    time_ms: float
    radius: float


class BrushStroke:
    """
    Input front-end that feeds dense, smoothed samples into paint/erase.

    Sparse pointer events are joined with a quadratic Bezier through the last
    three samples so a fast stroke does not leave a dotted line of dabs.
    """

    def __init__(
        self,
        settings: Settings,
        paint: Callable[[str, float, float, float], bool],
        erase: Optional[Callable[[float, float, float], int]] = None,
    ):
        self.settings = settings
        self._paint = paint
        self._erase = erase
        self.history: deque[StrokeSample] = deque(maxlen=settings.max_history_length)
        self.last_x: Optional[float] = None
        self.last_y: Optional[float] = None

    def _too_close(self, x: float, y: float, radius: float) -> bool:
        if self.last_x is None or self.last_y is None:
            return False
        spacing = radius * self.settings.sampling_distance_multiplier
        return distance(x, y, self.last_x, self.last_y) < spacing

    def paint_sample(
        self,
        kind: str,
        x: float,
        y: float,
        radius: float,
        time_ms: float,
        force: bool = False,
    ) -> int:
        """
        Record a pointer sample and paint along the smoothed stroke.

        Returns:
            Number of dabs that changed the zone store
        """
        self.history.append(StrokeSample(x, y, time_ms, radius))

        if len(self.history) >= 3 and self.settings.smoothing_enabled:
            return self._paint_smooth(kind)

        if not force and self._too_close(x, y, radius):
            return 0
        self.last_x, self.last_y = x, y
        return int(self._paint(kind, x, y, radius))

    def _paint_smooth(self, kind: str) -> int:
        p0, p1, p2 = list(self.history)[-3:]
        radius = p2.radius

        velocity = self.velocity(p1, p2)
        adaptive = max(0.1, min(1.0, velocity / 100))

        span = distance(p0.x, p0.y, p2.x, p2.y)
        base_steps = math.ceil(span / (radius * 0.3))
        steps = max(3, math.floor(base_steps * adaptive))

        painted = 0
        for i in range(steps + 1):
            t = i / steps
            point = quadratic_bezier(Point(p0.x, p0.y), Point(p1.x, p1.y), Point(p2.x, p2.y), t)
            variation = 1.0 + math.sin(velocity * 0.01 + t * math.pi * 2) * 0.1
            if self._paint(kind, point.x, point.y, radius * variation):
                painted += 1
            self.last_x, self.last_y = point.x, point.y
        return painted

    def erase_sample(self, x: float, y: float, radius: float, force: bool = False) -> int:
        """Erase at a pointer sample, skipping samples too close to the previous one."""
        if self._erase is None:
            raise RuntimeError("BrushStroke was created without an erase callback")
        if not force and self._too_close(x, y, radius):
            return 0
        self.last_x, self.last_y = x, y
        return self._erase(x, y, radius)

    @staticmethod
    def velocity(a: StrokeSample, b: StrokeSample) -> float:
        """Brush speed in world units per second."""
        elapsed = max(1.0, b.time_ms - a.time_ms)
        return distance(a.x, a.y, b.x, b.y) / elapsed * 1000

    def end(self):
        """Finish the stroke (pointer released)."""
        self.history.clear()
        self.last_x = None
        self.last_y = None
