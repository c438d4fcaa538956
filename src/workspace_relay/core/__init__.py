"""
Core utilities package for Workspace Relay.

This package provides shared configuration for the relay and the local agent.
"""

from .config import (
    EXPIRY_SAFETY_MARGIN_SECONDS,
    AgentConfig,
    RelayConfig,
    get_agent_config,
    get_relay_config,
    reload_agent_config,
    reload_relay_config,
)

__all__ = [
    "EXPIRY_SAFETY_MARGIN_SECONDS",
    "AgentConfig",
    "RelayConfig",
    "get_agent_config",
    "get_relay_config",
    "reload_agent_config",
    "reload_relay_config",
]
