"""Agent population: capacity, spawning, pathing and the per-agent state machine."""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from zonesim.config import AGENT_PHASE_ORDER, Settings
from zonesim.engine.connectivity import ConnectivityChecker
from zonesim.engine.geometry import Point, distance
from zonesim.engine.lots import LotGeometry, LotPolygon, TerritoryPolygon
from zonesim.engine.road_network import RoadNetworkBuilder
from zonesim.engine.zones import Zone, ZoneStore
from zonesim.schemas.world import ConnectivityChange

logger = logging.getLogger(__name__)

# Slack for float error in area ratios that should be whole numbers
CAPACITY_TOLERANCE = 1e-9


class AgentPhase(str, Enum):
    """Agent lifecycle phases, in order. SETTLED is terminal."""

    TRAVELING_TO_NODE = "traveling_to_node"
    TRAVELING_TO_AREA = "traveling_to_area"
    SETTLING = "settling"
    SETTLED = "settled"

    @property
    def rank(self) -> int:
        return AGENT_PHASE_ORDER.index(self.value)


@dataclass
class Agent:
    """A mobile agent heading for (or settled at) a spot in a residential zone."""

    id: int
    x: float
    y: float
    target_zone_id: int
    final_position: Point
    path_to_node: list[Point] = field(default_factory=list)
    path_to_node_index: int = 0
    phase: AgentPhase = AgentPhase.TRAVELING_TO_NODE
    speed: float = 2.0
    radius: float = 10.0
    lot_polygon: Optional[LotPolygon] = None
    territory_polygon: Optional[TerritoryPolygon] = None

    def advance_to(self, phase: AgentPhase):
        """Move to a later phase. Phases never go backwards."""
        if phase.rank < self.phase.rank:
            raise ValueError(f"Agent {self.id} cannot regress from {self.phase.value} to {phase.value}")
        self.phase = phase

    def move_toward(self, target: Point) -> bool:
        """
        Step toward ``target`` at the agent's speed.

        Returns:
            True if the target was closer than one step (no movement made)
        """
        dx = target.x - self.x
        dy = target.y - self.y
        d = math.hypot(dx, dy)
        if d < self.speed:
            return True
        self.x += dx / d * self.speed
        self.y += dy / d * self.speed
        return False

    @property
    def is_settled(self) -> bool:
        return self.phase == AgentPhase.SETTLED


class AgentSimulation:
    """
    Spawns, routes and settles agents for every connected residential zone.

    Zone connectivity transitions drive the population:
    - false -> true: the full capacity is queued and released one at a time
    - true -> false: every agent of the zone is dropped at once
    - true -> true: shortfall is spawned live, surplus trimmed
    """

    def __init__(
        self,
        zones: ZoneStore,
        network: RoadNetworkBuilder,
        connectivity: ConnectivityChecker,
        lots: LotGeometry,
        settings: Settings,
        rng: Optional[np.random.Generator] = None,
    ):
        self.zones = zones
        self.network = network
        self.connectivity = connectivity
        self.lots = lots
        self.settings = settings
        self.rng = rng if rng is not None else np.random.default_rng(settings.seed)

        self.agents: list[Agent] = []
        self.spawn_queue: deque[Agent] = deque()
        # Keyed by zone id, not list position
        self.zone_connections: dict[int, bool] = {}
        self.last_spawn_time: Optional[float] = None
        self._next_agent_id = 0

    # -------------------------------------------------------------------------
    # Capacity
    # -------------------------------------------------------------------------

    def max_agents(self, zone: Zone) -> int:
        """How many agents a zone can hold."""
        footprint = math.pi * self.settings.agent_footprint_radius ** 2
        ratio = zone.total_area() / footprint * self.settings.packing_efficiency
        count = math.floor(ratio + CAPACITY_TOLERANCE)
        return max(0, min(count, self.settings.max_agents_per_zone))

    def agents_in_zone(self, zone_id: int) -> list[Agent]:
        return [a for a in self.agents if a.target_zone_id == zone_id]

    def queued_in_zone(self, zone_id: int) -> list[Agent]:
        return [a for a in self.spawn_queue if a.target_zone_id == zone_id]

    def population(self, zone_id: int) -> int:
        """Live plus queued agents bound for a zone."""
        return len(self.agents_in_zone(zone_id)) + len(self.queued_in_zone(zone_id))

    # -------------------------------------------------------------------------
    # Connectivity reactions
    # -------------------------------------------------------------------------

    def update_all_connections(self) -> list[ConnectivityChange]:
        """Re-evaluate every residential zone and react to transitions."""
        self._follow_merges()

        changes = []
        live_ids = set()
        for zone_index, zone in enumerate(self.zones.residential_zones):
            zone_id = zone.id
            live_ids.add(zone_id)
            was_connected = self.zone_connections.get(zone_id, False)
            is_connected = self.connectivity.is_zone_connected(zone_index)
            self.zone_connections[zone_id] = is_connected

            change = ConnectivityChange(
                zone_index=zone_index,
                zone_id=zone_id,
                was_connected=was_connected,
                is_connected=is_connected,
            )
            if not was_connected and is_connected:
                change.agents_queued = self.spawn_agents_for_zone(zone_id)
                logger.info(f"[AGENTS] Zone {zone_id} connected, queued {change.agents_queued} agents")
            elif was_connected and not is_connected:
                change.agents_removed = self.remove_agents_from_zone(zone_id)
                logger.info(f"[AGENTS] Zone {zone_id} disconnected, removed {change.agents_removed} agents")
            elif is_connected:
                change.agents_spawned, change.agents_removed = self.update_agents_for_zone(zone_id)
            changes.append(change)

        # Zones erased away take their agents with them
        for stale_id in [i for i in self.zone_connections if i not in live_ids]:
            del self.zone_connections[stale_id]
        stale_agents = [a for a in self.agents if a.target_zone_id not in live_ids]
        if stale_agents:
            logger.info(f"[AGENTS] Dropping {len(stale_agents)} agents of removed zones")
        self.agents = [a for a in self.agents if a.target_zone_id in live_ids]
        self.spawn_queue = deque(a for a in self.spawn_queue if a.target_zone_id in live_ids)

        return changes

    def _follow_merges(self):
        """Retarget agents and connectivity of zones folded into another zone."""
        for agent in list(self.agents) + list(self.spawn_queue):
            agent.target_zone_id = self.zones.canonical_zone_id(agent.target_zone_id)

        for zone_id in list(self.zone_connections):
            merged_id = self.zones.canonical_zone_id(zone_id)
            if merged_id == zone_id:
                continue
            # The merged zone counts as connected if any of its parts was
            connected = self.zone_connections.pop(zone_id)
            self.zone_connections[merged_id] = self.zone_connections.get(merged_id, False) or connected

    def spawn_agents_for_zone(self, zone_id: int) -> int:
        """Queue agents up to the zone's capacity. Returns the number queued."""
        queued = 0
        for agent in self._plan_shortfall(zone_id):
            self.spawn_queue.append(agent)
            queued += 1
        return queued

    def update_agents_for_zone(self, zone_id: int) -> tuple[int, int]:
        """
        Bring an already-connected zone to capacity.

        New agents are created live, not queued.

        Returns:
            (agents spawned, agents removed)
        """
        spawned = 0
        for agent in self._plan_shortfall(zone_id):
            self.agents.append(agent)
            spawned += 1

        removed = self._trim_to_capacity(zone_id)
        return spawned, removed

    def remove_agents_from_zone(self, zone_id: int) -> int:
        """Drop all live and queued agents bound for a zone."""
        before = len(self.agents) + len(self.spawn_queue)
        self.agents = [a for a in self.agents if a.target_zone_id != zone_id]
        self.spawn_queue = deque(a for a in self.spawn_queue if a.target_zone_id != zone_id)
        return before - len(self.agents) - len(self.spawn_queue)

    def _trim_to_capacity(self, zone_id: int) -> int:
        zone = self.zones.residential_zone_by_id(zone_id)
        capacity = self.max_agents(zone) if zone is not None else 0
        surplus = self.population(zone_id) - capacity
        if surplus <= 0:
            return 0

        removed = 0
        # Queued agents go first, then the newest live ones
        for agent in reversed(self.queued_in_zone(zone_id)):
            if removed == surplus:
                break
            self.spawn_queue.remove(agent)
            removed += 1
        for agent in sorted(self.agents_in_zone(zone_id), key=lambda a: a.id, reverse=True):
            if removed == surplus:
                break
            self.agents.remove(agent)
            removed += 1

        logger.info(f"[AGENTS] Zone {zone_id} shrank, trimmed {removed} agents")
        return removed

    # -------------------------------------------------------------------------
    # Spawn planning
    # -------------------------------------------------------------------------

    def _plan_shortfall(self, zone_id: int) -> list[Agent]:
        zone = self.zones.residential_zone_by_id(zone_id)
        if zone is None:
            return []

        shortfall = self.max_agents(zone) - self.population(zone_id)
        reserved = [a.final_position for a in self.agents_in_zone(zone_id)]
        reserved += [a.final_position for a in self.queued_in_zone(zone_id)]

        planned = []
        for _ in range(shortfall):
            agent = self._plan_agent(zone, reserved)
            if agent is None:
                break
            planned.append(agent)
            reserved.append(agent.final_position)
        return planned

    def _plan_agent(self, zone: Zone, reserved: list[Point]) -> Optional[Agent]:
        final_position = self.find_free_position(zone, reserved)
        if final_position is None:
            logger.debug(f"[AGENTS] No free position left in zone {zone.id}")
            return None

        origin = self.find_random_edge_connection()
        if origin is None:
            logger.debug("[AGENTS] No road reaches the world edge, cannot spawn")
            return None

        agent = Agent(
            id=self._next_agent_id,
            x=origin.x,
            y=origin.y,
            target_zone_id=zone.id,
            final_position=final_position,
            path_to_node=self.plan_path(origin, final_position, zone),
            speed=self.settings.agent_speed,
            radius=self.settings.agent_radius,
        )
        self._next_agent_id += 1
        return agent

    def find_free_position(self, zone: Zone, reserved: list[Point]) -> Optional[Point]:
        """
        Rejection-sample a settle position inside the zone.

        Rejects samples too close to ``reserved`` positions or inside any
        agent's territory.
        """
        if not zone.circles:
            return None

        min_distance = self.settings.min_agent_distance
        territories = [a.territory_polygon for a in self.agents if a.territory_polygon is not None]

        for _ in range(self.settings.max_placement_attempts):
            circle = zone.circles[int(self.rng.integers(len(zone.circles)))]
            angle = self.rng.random() * math.pi * 2
            reach = self.rng.random() * max(0.0, circle.radius - self.settings.settle_margin)
            x = circle.x + math.cos(angle) * reach
            y = circle.y + math.sin(angle) * reach

            if any(distance(x, y, p.x, p.y) < min_distance for p in reserved):
                continue
            if any(t.contains(x, y) for t in territories):
                continue
            return Point(x, y)

        return None

    def find_random_edge_connection(self) -> Optional[Point]:
        """A random spawn origin: an edge waypoint, else an on-road boundary point."""
        edge_points = self.network.graph.edge_points
        if edge_points:
            waypoint_id = edge_points[int(self.rng.integers(len(edge_points)))]
            return self.network.graph.waypoints[waypoint_id].position

        boundary = self.connectivity.boundary_road_points()
        if not boundary:
            return None
        return boundary[int(self.rng.integers(len(boundary)))]

    def plan_path(self, origin: Point, final_position: Point, zone: Zone) -> list[Point]:
        """
        Route from a spawn origin toward a settle position.

        Tries, in order: graph BFS between the nodes nearest each end, graph
        BFS to the nearest entry point of the zone, grid BFS into the zone.
        """
        graph = self.network.graph
        start_node = graph.closest_node(origin.x, origin.y)
        if start_node is None:
            return self.connectivity.find_path_to_zone(origin, zone)

        target_node = graph.closest_node(final_position.x, final_position.y)
        path = graph.find_path_between_nodes(start_node, target_node)

        if not path:
            # The nearest node can sit on a road piece cut off from the spawn side
            zone_index = self.zones.residential_index(zone.id)
            if zone_index is not None:
                path = graph.find_path_to_zone_entry(start_node, zone_index)

        if not path:
            return self.connectivity.find_path_to_zone(origin, zone)
        return [w.position for w in path]

    # -------------------------------------------------------------------------
    # Per-tick updates
    # -------------------------------------------------------------------------

    def process_spawn_queue(self, now_ms: float) -> Optional[Agent]:
        """Release at most one queued agent once the spawn delay has elapsed."""
        if not self.spawn_queue:
            return None
        if self.last_spawn_time is not None and now_ms - self.last_spawn_time < self.settings.spawn_delay_ms:
            return None

        agent = self.spawn_queue.popleft()
        self.agents.append(agent)
        self.last_spawn_time = now_ms
        return agent

    def update_agents(self) -> list[Agent]:
        """Advance every agent one step. Returns agents that settled this step."""
        settled = []
        for agent in self.agents:
            if self.step_agent(agent):
                settled.append(agent)
        return settled

    def step_agent(self, agent: Agent) -> bool:
        """Advance one agent's state machine. Returns True if it just settled."""
        if agent.phase == AgentPhase.TRAVELING_TO_NODE:
            if agent.path_to_node_index >= len(agent.path_to_node):
                agent.advance_to(AgentPhase.TRAVELING_TO_AREA)
                return False

            target = agent.path_to_node[agent.path_to_node_index]
            if agent.move_toward(target):
                agent.x = target.x
                agent.y = target.y
                agent.path_to_node_index += 1

        elif agent.phase == AgentPhase.TRAVELING_TO_AREA:
            if agent.move_toward(agent.final_position):
                agent.advance_to(AgentPhase.SETTLING)

        elif agent.phase == AgentPhase.SETTLING:
            if agent.move_toward(agent.final_position):
                agent.x = agent.final_position.x
                agent.y = agent.final_position.y
                agent.advance_to(AgentPhase.SETTLED)
                agent.lot_polygon = self.lots.generate_adaptive_lot(agent, self.agents)
                return True

        return False

    def refresh_territories(self):
        """Recompute the territory polygon of every settled agent."""
        for agent in self.agents:
            if agent.is_settled:
                agent.territory_polygon = self.lots.generate_territory(agent, self.agents)
