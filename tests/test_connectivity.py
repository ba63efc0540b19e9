"""Tests for flood-fill connectivity."""

import pytest

from zonesim.config import Settings
from zonesim.engine.connectivity import ConnectivityChecker
from zonesim.engine.geometry import Point, distance
from zonesim.engine.zones import ZoneStore


@pytest.fixture
def settings():
    return Settings(world_width=1000, world_height=1000)


@pytest.fixture
def store(settings):
    return ZoneStore(settings)


@pytest.fixture
def checker(store, settings):
    return ConnectivityChecker(store, settings)


def paint_road(store, x_from, x_to, y=500, radius=40, spacing=30):
    for x in range(x_from, x_to + 1, spacing):
        store.paint("road", x, y, radius)


class TestBoundaryScan:
    """Tests for finding roads that touch the world edge."""

    def test_no_roads(self, checker):
        assert checker.boundary_road_points() == []

    def test_road_at_left_edge(self, store, checker):
        paint_road(store, 0, 300)
        points = checker.boundary_road_points()
        assert points == [Point(0.0, 500.0)]

    def test_scan_includes_far_corner(self, store, checker):
        store.paint("road", 1000, 1000, 10)
        points = checker.boundary_road_points()
        assert Point(1000.0, 1000.0) in points


class TestZoneConnectivity:
    """Tests for boundary-to-zone reachability."""

    def test_zone_beside_edge_road_is_connected(self, store, checker):
        paint_road(store, 0, 300)
        store.paint("residential", 150, 600, 60)
        assert checker.is_zone_connected(0)

    def test_road_not_touching_edge(self, store, checker):
        paint_road(store, 300, 600)
        store.paint("residential", 450, 600, 60)
        assert not checker.is_zone_connected(0)

    def test_zone_far_from_road(self, store, checker):
        paint_road(store, 0, 300)
        store.paint("residential", 700, 700, 60)
        assert not checker.is_zone_connected(0)

    def test_missing_zone_index(self, store, checker):
        paint_road(store, 0, 300)
        assert not checker.is_zone_connected(0)
        assert not checker.is_zone_connected(-1)

    def test_only_the_reached_zone_is_connected(self, store, checker):
        paint_road(store, 0, 300)
        store.paint("residential", 150, 600, 60)
        store.paint("residential", 800, 200, 60)
        assert checker.is_zone_connected(0)
        assert not checker.is_zone_connected(1)


class TestGridPath:
    """Tests for the grid path fallback."""

    def test_path_reaches_zone(self, store, checker, settings):
        paint_road(store, 0, 300)
        store.paint("residential", 150, 600, 60)
        zone = store.residential_zones[0]

        path = checker.find_path_to_zone(Point(0.0, 500.0), zone)

        assert path[0] == Point(0.0, 500.0)
        assert zone.contains(path[-1].x, path[-1].y)
        for a, b in zip(path, path[1:]):
            assert distance(a.x, a.y, b.x, b.y) == pytest.approx(settings.pathfinding_step)
        for p in path[:-1]:
            assert store.is_on_road(p.x, p.y) or zone.contains(p.x, p.y)

    def test_unreachable_returns_start(self, store, checker):
        paint_road(store, 0, 300)
        store.paint("residential", 700, 700, 60)
        start = Point(0.0, 500.0)
        assert checker.find_path_to_zone(start, store.residential_zones[0]) == [start]
