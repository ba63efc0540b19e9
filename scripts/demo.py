#!/usr/bin/env python3
"""
Demo script showing ZoneSim in action.

Usage:
    python scripts/demo.py

Runs two headless scenarios:
1. A road from the world edge with a neighbourhood beside it
2. Cutting the road off and watching the neighbourhood empty
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from zonesim.config import Settings
from zonesim.engine.simulator import ZoneSimulator
from zonesim.logging_config import setup_logging


def print_header(title: str):
    """Print a formatted header."""
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)


def print_state(sim: ZoneSimulator):
    """Print world state in a readable format."""
    snapshot = sim.snapshot()
    graph = snapshot.road_graph
    intersections = sum(1 for w in graph.waypoints if w.is_intersection)

    print(f"\n🛣️  Road graph: {len(graph.waypoints)} waypoints, "
          f"{len(graph.edge_points)} edge points, {intersections} intersections")

    print("\n🏘️  Residential zones:")
    for zone in snapshot.residential_zones:
        status = "✅ connected" if zone.connected else "❌ cut off"
        print(f"   Zone {zone.index}: {status}, capacity {zone.capacity}")

    print(f"\n👥 Agents: {len(snapshot.agents)} live, {snapshot.queued_agents} queued")
    for agent in snapshot.agents:
        lot = f"lot {agent.lot.area:.0f}" if agent.lot else "no lot yet"
        print(f"   #{agent.id} {agent.phase} at ({agent.x:.0f}, {agent.y:.0f}) - {lot}")


def main():
    setup_logging(level="WARNING")
    sim = ZoneSimulator(Settings(world_width=1000, world_height=1000), seed=42)

    print_header("Scenario 1: Road and neighbourhood")
    for x in range(0, 481, 30):
        sim.paint("road", x, 500, 40)
    sim.paint("residential", 240, 640, 90)
    sim.paint("residential", 400, 640, 90)
    sim.run(600)
    print_state(sim)

    print_header("Scenario 2: Road cut at the edge")
    sim.erase(0, 500, 100)
    report = sim.tick()
    for change in report.changes:
        print(f"   Zone {change.zone_index}: {change.was_connected} -> {change.is_connected}, "
              f"removed {change.agents_removed}")
    print_state(sim)


if __name__ == "__main__":
    main()
