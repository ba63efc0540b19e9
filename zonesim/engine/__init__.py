"""Simulation engine components."""

from zonesim.engine.simulator import ZoneSimulator
from zonesim.engine.zones import ZoneStore, Zone, ZoneKind, Circle, BrushStroke
from zonesim.engine.road_network import RoadNetworkBuilder, RoadGraph, Waypoint
from zonesim.engine.connectivity import ConnectivityChecker
from zonesim.engine.agents import AgentSimulation, Agent, AgentPhase
from zonesim.engine.lots import LotGeometry, LotPolygon, TerritoryPolygon
from zonesim.engine.geometry import Point

__all__ = [
    "ZoneSimulator",
    "ZoneStore",
    "Zone",
    "ZoneKind",
    "Circle",
    "BrushStroke",
    "RoadNetworkBuilder",
    "RoadGraph",
    "Waypoint",
    "ConnectivityChecker",
    "AgentSimulation",
    "Agent",
    "AgentPhase",
    "LotGeometry",
    "LotPolygon",
    "TerritoryPolygon",
    "Point",
]
