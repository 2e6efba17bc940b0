"""Configuration and static reference data."""
