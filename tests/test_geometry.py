"""Tests for the geometry helpers."""

import math

import pytest

from zonesim.engine.geometry import (
    Point,
    march_ray,
    normalize,
    perpendicular,
    point_in_polygon,
    polygon_area,
    polygons_overlap,
    prepare,
    quadratic_bezier,
    regular_polygon,
    smooth_polygon,
)

SQUARE = [Point(0, 0), Point(10, 0), Point(10, 10), Point(0, 10)]


class TestPolygons:
    """Tests for polygon predicates."""

    def test_point_inside_square(self):
        assert point_in_polygon(5, 5, SQUARE)

    def test_point_outside_square(self):
        assert not point_in_polygon(15, 5, SQUARE)
        assert not point_in_polygon(5, -1, SQUARE)

    def test_degenerate_polygon_contains_nothing(self):
        """Fewer than three vertices never contain a point."""
        assert not point_in_polygon(0, 0, [Point(0, 0), Point(1, 1)])

    def test_overlapping_squares(self):
        shifted = [Point(p.x + 5, p.y + 5) for p in SQUARE]
        assert polygons_overlap(SQUARE, shifted)

    def test_disjoint_squares(self):
        far = [Point(p.x + 50, p.y) for p in SQUARE]
        assert not polygons_overlap(SQUARE, far)

    def test_square_area(self):
        assert polygon_area(SQUARE) == pytest.approx(100.0)
        assert polygon_area(list(reversed(SQUARE))) == pytest.approx(100.0)

    def test_touching_squares_do_not_overlap(self):
        """Sharing an edge is not shared area."""
        beside = [Point(p.x + 10, p.y) for p in SQUARE]
        assert not polygons_overlap(SQUARE, beside)

    def test_self_intersecting_ring_is_repaired(self):
        """Keeps one lobe rather than a signed area of zero."""
        bowtie = [Point(0, 0), Point(10, 10), Point(10, 0), Point(0, 10)]
        assert polygon_area(bowtie) == pytest.approx(25.0)

    def test_prepared_polygon_matches_ring(self):
        prepared = prepare(SQUARE)
        for x, y in [(5, 5), (15, 5), (9.9, 0.1), (-1, 5)]:
            assert point_in_polygon(x, y, prepared) == point_in_polygon(x, y, SQUARE)


class TestVectors:
    """Tests for direction vectors."""

    def test_normalize(self):
        v = normalize(3, 4)
        assert v.x == pytest.approx(0.6)
        assert v.y == pytest.approx(0.8)

    def test_normalize_zero_uses_default(self):
        assert normalize(0, 0) == Point(0.0, 1.0)
        assert normalize(0, 0, default=Point(1, 0)) == Point(1, 0)

    def test_perpendicular(self):
        p = perpendicular(Point(1, 0))
        assert p.x == pytest.approx(0)
        assert p.y == pytest.approx(1)


class TestMarching:
    """Tests for ray marching."""

    def test_stops_before_obstacle(self):
        """Distance is the last free sample, not the blocked one."""
        reach, reason = march_ray(
            Point(0, 0), Point(1, 0), 50, 5,
            lambda x, y: "wall" if x > 12 else None,
        )
        assert reach == pytest.approx(10)
        assert reason == "wall"

    def test_unblocked_reaches_max(self):
        reach, reason = march_ray(Point(0, 0), Point(0, 1), 30, 5, lambda x, y: None)
        assert reach == 30
        assert reason == "max_reached"

    def test_blocked_at_first_sample(self):
        reach, reason = march_ray(Point(0, 0), Point(0, 1), 30, 5, lambda x, y: "edge")
        assert reach == 0
        assert reason == "edge"


class TestShapes:
    """Tests for shape construction."""

    def test_regular_polygon(self):
        points = regular_polygon(Point(10, 10), 30, 8)
        assert len(points) == 8
        for p in points:
            assert math.hypot(p.x - 10, p.y - 10) == pytest.approx(30)
        assert points[0].x == pytest.approx(40)

    def test_smoothing_pulls_corners_inward(self):
        square = [Point(0, 0), Point(1, 0), Point(1, 1), Point(0, 1)]
        smoothed = smooth_polygon(square, 0.3)
        assert smoothed[0].x == pytest.approx(0.3)
        assert smoothed[0].y == pytest.approx(0.3)
        assert smoothed[2].x == pytest.approx(0.7)

    def test_smoothing_short_input_unchanged(self):
        points = [Point(0, 0), Point(1, 1)]
        assert smooth_polygon(points, 0.3) == points

    def test_bezier_endpoints(self):
        p0, p1, p2 = Point(0, 0), Point(5, 10), Point(10, 0)
        assert quadratic_bezier(p0, p1, p2, 0) == p0
        assert quadratic_bezier(p0, p1, p2, 1) == p2
        mid = quadratic_bezier(p0, p1, p2, 0.5)
        assert mid.x == pytest.approx(5)
        assert mid.y == pytest.approx(5)
