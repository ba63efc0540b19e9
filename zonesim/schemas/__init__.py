"""Pydantic schemas for ZoneSim."""
