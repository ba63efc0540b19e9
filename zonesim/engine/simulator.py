"""Core simulation engine for ZoneSim."""

import logging
from typing import Optional

import numpy as np

from zonesim.config import Settings, get_settings
from zonesim.engine.agents import Agent, AgentSimulation
from zonesim.engine.connectivity import ConnectivityChecker
from zonesim.engine.lots import LotGeometry
from zonesim.engine.road_network import RoadNetworkBuilder
from zonesim.engine.zones import BrushStroke, Zone, ZoneKind, ZoneStore
from zonesim.schemas.world import (
    AgentView,
    CircleView,
    LotView,
    PointView,
    RoadGraphView,
    TerritoryView,
    TickReport,
    WaypointView,
    WorldSnapshot,
    ZoneView,
)

logger = logging.getLogger(__name__)


class ZoneSimulator:
    """
    Main simulation engine.

    Owns the zone store, road graph, connectivity checker and agent
    population, and advances them together one tick at a time. The
    presentation layer reads ``snapshot()`` and mutates only through
    ``paint``, ``erase`` and ``tick``.
    """

    def __init__(self, settings: Optional[Settings] = None, seed: Optional[int] = None):
        """Initialize simulator; ``seed`` overrides the configured seed."""
        self.settings = settings or get_settings()
        self.rng = np.random.default_rng(seed if seed is not None else self.settings.seed)

        self.zones = ZoneStore(self.settings)
        self.network = RoadNetworkBuilder(self.zones, self.settings)
        self.connectivity = ConnectivityChecker(self.zones, self.settings)
        self.lots = LotGeometry(self.zones, self.settings)
        self.population = AgentSimulation(
            self.zones,
            self.network,
            self.connectivity,
            self.lots,
            self.settings,
            rng=self.rng,
        )

        self.needs_connection_update = False
        self.tick_count = 0
        self.clock_ms = 0.0

    # -------------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------------

    @property
    def needs_rebuild(self) -> bool:
        return self.network.needs_rebuild

    def mark_stale(self):
        """Schedule a graph rebuild and a connectivity pass for the next tick."""
        self.network.needs_rebuild = True
        self.needs_connection_update = True

    def paint(self, kind: str, x: float, y: float, radius: float) -> bool:
        """Paint a zone circle. Returns False if the stroke was rejected."""
        changed = self.zones.paint(kind, x, y, radius)
        if changed:
            self.mark_stale()
        return changed

    def erase(self, x: float, y: float, radius: float) -> int:
        """Erase circles of both kinds around a point. Returns circles removed."""
        removed = self.zones.erase(x, y, radius)
        self.mark_stale()
        return removed

    def brush(self) -> BrushStroke:
        """A smoothing brush front-end bound to this simulator."""
        return BrushStroke(self.settings, self.paint, self.erase)

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def tick(self, now_ms: Optional[float] = None) -> TickReport:
        """
        Advance the whole simulation by one step.

        Args:
            now_ms: Wall-clock time in milliseconds; when omitted the internal
                clock advances by ``tick_interval_ms``

        Returns:
            Report of what changed. Failures are recorded on the report and
            never raised.
        """
        self.clock_ms = now_ms if now_ms is not None else self.clock_ms + self.settings.tick_interval_ms
        self.tick_count += 1
        report = TickReport(tick=self.tick_count, time_ms=self.clock_ms)

        try:
            if self.network.needs_rebuild:
                report.rebuild = self.network.rebuild()

            if self.needs_connection_update:
                report.changes = self.population.update_all_connections()
                report.connectivity_updated = True
                self.needs_connection_update = False

            if self.population.process_spawn_queue(self.clock_ms) is not None:
                report.spawned_from_queue = 1

            report.settled_agent_ids = [a.id for a in self.population.update_agents()]
            self.population.refresh_territories()
        except Exception as e:
            logger.exception(f"[SIM] Tick {self.tick_count} failed: {e}")
            report.error = str(e)

        return report

    def run(self, ticks: int) -> list[TickReport]:
        """Run several ticks on the internal clock."""
        return [self.tick() for _ in range(ticks)]

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def agents(self) -> list[Agent]:
        return self.population.agents

    @property
    def zone_connections(self) -> dict[int, bool]:
        """Last computed connectivity, keyed by residential zone index."""
        connections = self.population.zone_connections
        return {
            index: connections[zone.id]
            for index, zone in enumerate(self.zones.residential_zones)
            if zone.id in connections
        }

    def is_zone_connected(self, zone_index: int) -> bool:
        """Last computed connectivity of a residential zone."""
        zone = self.zones.residential_zone(zone_index)
        if zone is None:
            return False
        return self.population.zone_connections.get(zone.id, False)

    def snapshot(self) -> WorldSnapshot:
        """Copy the current state into read-only views."""
        graph = self.network.graph
        return WorldSnapshot(
            world_width=self.settings.world_width,
            world_height=self.settings.world_height,
            residential_zones=[
                self._zone_view(i, z, connected=self.is_zone_connected(i))
                for i, z in enumerate(self.zones.residential_zones)
            ],
            road_zones=[self._zone_view(i, z) for i, z in enumerate(self.zones.road_zones)],
            road_graph=RoadGraphView(
                waypoints=[
                    WaypointView(
                        id=w.id,
                        x=w.x,
                        y=w.y,
                        is_road_center=w.is_road_center,
                        is_intermediate=w.is_intermediate,
                        is_intersection=w.is_intersection,
                        is_approach=w.is_approach,
                        parent_intersection=w.parent_intersection,
                    )
                    for w in graph.waypoints.values()
                ],
                connections={k: list(v) for k, v in graph.connections.items()},
                edge_points=list(graph.edge_points),
                zone_entries={k: list(v) for k, v in graph.zone_entries.items()},
            ),
            connectivity=self.zone_connections,
            agents=[self._agent_view(a) for a in self.population.agents],
            queued_agents=len(self.population.spawn_queue),
        )

    def _zone_view(self, index: int, zone: Zone, connected: Optional[bool] = None) -> ZoneView:
        residential = zone.kind == ZoneKind.RESIDENTIAL
        return ZoneView(
            index=index,
            id=zone.id,
            kind=zone.kind.value,
            circles=[CircleView(x=c.x, y=c.y, radius=c.radius) for c in zone.circles],
            total_area=zone.total_area(),
            connected=connected if residential else None,
            capacity=self.population.max_agents(zone) if residential else None,
        )

    def _agent_view(self, agent: Agent) -> AgentView:
        lot = None
        if agent.lot_polygon is not None:
            lot = LotView(
                points=[PointView(x=p.x, y=p.y) for p in agent.lot_polygon.points],
                center=PointView(x=agent.lot_polygon.center.x, y=agent.lot_polygon.center.y),
                area=agent.lot_polygon.area,
            )
        territory = None
        if agent.territory_polygon is not None:
            territory = TerritoryView(
                points=[PointView(x=p.x, y=p.y) for p in agent.territory_polygon.points],
                center=PointView(x=agent.territory_polygon.center.x, y=agent.territory_polygon.center.y),
            )
        return AgentView(
            id=agent.id,
            x=agent.x,
            y=agent.y,
            phase=agent.phase.value,
            target_zone_id=agent.target_zone_id,
            target_zone_index=self.zones.residential_index(agent.target_zone_id),
            final_position=PointView(x=agent.final_position.x, y=agent.final_position.y),
            path_length=len(agent.path_to_node),
            path_index=agent.path_to_node_index,
            speed=agent.speed,
            radius=agent.radius,
            lot=lot,
            territory=territory,
        )
