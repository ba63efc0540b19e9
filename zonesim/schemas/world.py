"""Pydantic schemas for read-only world views and tick reports."""

from typing import Optional, Literal

from pydantic import BaseModel, Field


# =============================================================================
# Geometry / Zones
# =============================================================================

class PointView(BaseModel):
    """A position on the world plane."""

    x: float
    y: float


class CircleView(BaseModel):
    """One painted circle of a zone."""

    x: float
    y: float
    radius: float = Field(..., gt=0)


class ZoneView(BaseModel):
    """A residential or road zone."""

    index: int = Field(..., ge=0, description="Position in its kind's zone list")
    id: Optional[int] = Field(None, description="Stable zone id, unchanged when other zones are removed")
    kind: Literal["residential", "road"]
    circles: list[CircleView] = Field(default_factory=list)
    total_area: float = Field(default=0, description="Sum of circle areas")
    connected: Optional[bool] = Field(None, description="Connectivity status (residential only)")
    capacity: Optional[int] = Field(None, description="Max agents (residential only)")


# =============================================================================
# Road Graph
# =============================================================================

class WaypointView(BaseModel):
    """A node of the road graph."""

    id: int
    x: float
    y: float
    is_road_center: bool = False
    is_intermediate: bool = False
    is_intersection: bool = False
    is_approach: bool = False
    parent_intersection: Optional[int] = None


class RoadGraphView(BaseModel):
    """The waypoint graph with its boundary and zone-entry classifications."""

    waypoints: list[WaypointView] = Field(default_factory=list)
    connections: dict[int, list[int]] = Field(default_factory=dict)
    edge_points: list[int] = Field(default_factory=list)
    zone_entries: dict[int, list[int]] = Field(default_factory=dict)


class RebuildReport(BaseModel):
    """Outcome of a road graph rebuild."""

    waypoint_count: int = 0
    connection_count: int = Field(default=0, description="Undirected edges")
    intersection_count: int = 0
    approach_count: int = 0
    edge_point_count: int = 0
    error: Optional[str] = Field(None, description="Set when the rebuild failed part-way")

    @property
    def succeeded(self) -> bool:
        return self.error is None


# =============================================================================
# Agents
# =============================================================================

class LotView(BaseModel):
    """A settled agent's parcel."""

    points: list[PointView]
    center: PointView
    area: float


class TerritoryView(BaseModel):
    """A settled agent's space claim."""

    points: list[PointView]
    center: PointView


class AgentView(BaseModel):
    """A live agent."""

    id: int
    x: float
    y: float
    phase: Literal["traveling_to_node", "traveling_to_area", "settling", "settled"]
    target_zone_id: int
    target_zone_index: Optional[int] = Field(None, description="Current list position of the target zone")
    final_position: PointView
    path_length: int = 0
    path_index: int = 0
    speed: float
    radius: float
    lot: Optional[LotView] = None
    territory: Optional[TerritoryView] = None


# =============================================================================
# Snapshot / Tick
# =============================================================================

class WorldSnapshot(BaseModel):
    """Everything the presentation layer may read."""

    world_width: float
    world_height: float
    residential_zones: list[ZoneView] = Field(default_factory=list)
    road_zones: list[ZoneView] = Field(default_factory=list)
    road_graph: RoadGraphView = Field(default_factory=RoadGraphView)
    connectivity: dict[int, bool] = Field(default_factory=dict)
    agents: list[AgentView] = Field(default_factory=list)
    queued_agents: int = 0


class ConnectivityChange(BaseModel):
    """A residential zone whose connectivity was re-evaluated."""

    zone_index: int
    zone_id: int
    was_connected: bool
    is_connected: bool
    agents_queued: int = 0
    agents_spawned: int = 0
    agents_removed: int = 0


class TickReport(BaseModel):
    """What happened during one simulation tick."""

    tick: int
    time_ms: float
    rebuild: Optional[RebuildReport] = Field(None, description="Present when the graph was rebuilt")
    connectivity_updated: bool = False
    changes: list[ConnectivityChange] = Field(default_factory=list)
    spawned_from_queue: int = 0
    settled_agent_ids: list[int] = Field(default_factory=list)
    error: Optional[str] = Field(None, description="Unexpected failure, the simulation keeps running")

    @property
    def ok(self) -> bool:
        return self.error is None and (self.rebuild is None or self.rebuild.succeeded)
