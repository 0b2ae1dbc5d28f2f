"""Catalogs, query building and the geocoding orchestrator."""
