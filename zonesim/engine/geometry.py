"""Planar geometry helpers shared by every engine component."""

import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

from shapely.geometry import Point as ShapelyPoint, Polygon
from shapely.prepared import PreparedGeometry, prep


@dataclass(frozen=True)
class Point:
    """A position on the world plane."""

    x: float
    y: float


def distance(ax: float, ay: float, bx: float, by: float) -> float:
    """Euclidean distance between two coordinates."""
    return math.hypot(ax - bx, ay - by)


def to_shape(points: Sequence[Point]) -> Polygon:
    """
    Build a shapely polygon from a vertex ring.

    Fewer than three vertices give an empty polygon. Self-intersecting rings
    are repaired with ``buffer(0)``, keeping the largest piece.
    """
    if len(points) < 3:
        return Polygon()

    shape = Polygon([(p.x, p.y) for p in points])
    if not shape.is_valid:
        fixed = shape.buffer(0)
        if fixed.geom_type == "MultiPolygon":
            fixed = max(fixed.geoms, key=lambda g: g.area)
        shape = fixed if fixed.geom_type == "Polygon" else Polygon()
    return shape


def prepare(points: Sequence[Point]) -> PreparedGeometry:
    """Prepared polygon for repeated containment tests."""
    return prep(to_shape(points))


def point_in_polygon(x: float, y: float, polygon: Union[Sequence[Point], PreparedGeometry]) -> bool:
    """Check if (x, y) lies strictly inside a vertex ring or a prepared polygon."""
    shape = polygon if isinstance(polygon, PreparedGeometry) else to_shape(polygon)
    return shape.contains(ShapelyPoint(x, y))


def polygons_overlap(first: Sequence[Point], second: Sequence[Point]) -> bool:
    """Check whether two polygons share interior area. Touching edges do not count."""
    a = to_shape(first)
    b = to_shape(second)
    return a.intersects(b) and not a.touches(b)


def polygon_area(polygon: Sequence[Point]) -> float:
    """Unsigned polygon area."""
    return to_shape(polygon).area


def normalize(dx: float, dy: float, default: Point = Point(0.0, 1.0)) -> Point:
    """Unit vector in the direction of (dx, dy), or ``default`` for a zero vector."""
    length = math.hypot(dx, dy)
    if length > 0:
        return Point(dx / length, dy / length)
    return default


def perpendicular(direction: Point) -> Point:
    """Rotate a direction vector by 90 degrees: (x, y) -> (-y, x)."""
    return Point(-direction.y, direction.x)


def march_ray(
    start: Point,
    direction: Point,
    max_distance: float,
    step: float,
    blocked: Callable[[float, float], Optional[str]],
) -> tuple[float, str]:
    """
    Walk outward from ``start`` until something blocks the ray.

    Args:
        start: Ray origin
        direction: Unit direction vector
        max_distance: Longest distance to sample
        step: Distance between samples
        blocked: Returns a stop reason for a blocked sample, None when free

    Returns:
        (last free distance, stop reason); reason is "max_reached" when
        every sample up to ``max_distance`` was free
    """
    travelled = step
    while travelled <= max_distance + 1e-9:
        reason = blocked(start.x + direction.x * travelled, start.y + direction.y * travelled)
        if reason is not None:
            return travelled - step, reason
        travelled += step
    return max_distance, "max_reached"


def regular_polygon(center: Point, radius: float, segments: int) -> list[Point]:
    """Vertices of a regular polygon, first vertex on the +x axis."""
    return [
        Point(
            center.x + math.cos(2 * math.pi * i / segments) * radius,
            center.y + math.sin(2 * math.pi * i / segments) * radius,
        )
        for i in range(segments)
    ]


def smooth_polygon(points: Sequence[Point], factor: float) -> list[Point]:
    """One pass of cyclic neighbour averaging: p + (prev + next - 2p) * factor."""
    if len(points) < 3:
        return list(points)

    count = len(points)
    smoothed = []
    for i, curr in enumerate(points):
        prev = points[(i - 1) % count]
        nxt = points[(i + 1) % count]
        smoothed.append(Point(
            curr.x + (prev.x + nxt.x - 2 * curr.x) * factor,
            curr.y + (prev.y + nxt.y - 2 * curr.y) * factor,
        ))
    return smoothed


def quadratic_bezier(p0: Point, p1: Point, p2: Point, t: float) -> Point:
    """Point at parameter t on the quadratic Bezier curve p0 -> p1 -> p2."""
    u = 1 - t
    return Point(
        u * u * p0.x + 2 * u * t * p1.x + t * t * p2.x,
        u * u * p0.y + 2 * u * t * p1.y + t * t * p2.y,
    )
