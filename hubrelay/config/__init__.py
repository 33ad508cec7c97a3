"""
Configuration management for hub-relay.

Handles:
- relay.yaml (connections, bindings, relay settings)
- transform plugin resolution
"""

from .loader import (
    ConfigLoader,
    RelayConfig,
    RelaySettings,
    resolve_transform,
)

__all__ = [
    "ConfigLoader",
    "RelayConfig",
    "RelaySettings",
    "resolve_transform",
]
