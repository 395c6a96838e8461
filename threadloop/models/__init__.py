"""
Configuration models for threadloop.
"""

from .config import (
    ProviderConfig,
    AgentSection,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

__all__ = [
    "ProviderConfig",
    "AgentSection",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
]
