"""Reputation-weighted provider discovery."""

from infernet_core.discovery.engine import DiscoveryEngine

__all__ = ["DiscoveryEngine"]
