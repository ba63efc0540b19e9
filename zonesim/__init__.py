"""ZoneSim: paint zones, extract roads, settle agents."""

__version__ = "0.1.0"
