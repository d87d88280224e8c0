"""API layer for Infernet Core."""
