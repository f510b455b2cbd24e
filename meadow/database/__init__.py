"""Persistence layer: ORM models for the Meadow engine."""
