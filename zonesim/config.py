"""Simulation configuration using Pydantic settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


# Zone kinds accepted by the paint brush
ZONE_KINDS = ("residential", "road")

# Agent phases, in the only order an agent may pass through them
AGENT_PHASE_ORDER = (
    "traveling_to_node",
    "traveling_to_area",
    "settling",
    "settled",
)


class Settings(BaseSettings):
    """Simulation settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ZONESIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # World
    world_width: float = 10000.0
    world_height: float = 10000.0

    # Zones
    merge_distance_multiplier: float = 1.2
    sampling_distance_multiplier: float = 0.15
    max_history_length: int = 4
    smoothing_enabled: bool = True

    # Road graph
    min_point_distance: float = 20.0
    connection_radius: float = 60.0
    intermediate_threshold: float = 50.0
    intermediate_spacing: float = 30.0
    road_check_samples: int = 10
    approach_distance: float = 25.0
    edge_threshold: float = 30.0
    entry_outer_margin: float = 40.0
    entry_inner_margin: float = 20.0

    # Connectivity
    pathfinding_step: float = 25.0
    edge_scan_step: float = 50.0

    # Agents
    agent_radius: float = 10.0
    agent_speed: float = 2.0
    max_agents_per_zone: int = 10
    packing_efficiency: float = 0.8
    agent_footprint_radius: float = 50.0
    min_agent_distance: float = 100.0
    settle_margin: float = 55.0
    max_placement_attempts: int = 100
    spawn_delay_ms: float = 1000.0
    tick_interval_ms: float = 1000.0 / 60.0

    # Lots
    road_sample_radius: float = 40.0
    street_front_distance: float = 5.0
    lot_step: float = 5.0
    min_lot_depth: float = 25.0
    max_lot_depth: float = 50.0
    min_lot_width: float = 20.0
    max_lot_width: float = 60.0
    fallback_lot_radius: float = 30.0
    fallback_lot_segments: int = 8
    claim_distance: float = 30.0

    # Territories
    territory_max_radius: float = 80.0
    territory_ray_count: int = 12
    territory_step: float = 5.0
    territory_smoothing: float = 0.3

    # Randomness (None = nondeterministic)
    seed: Optional[int] = None

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def validate_zone_kind(kind: str) -> bool:
    """Check if a zone kind is one the brush can paint."""
    return kind in ZONE_KINDS
