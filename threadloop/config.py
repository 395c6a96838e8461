"""
Configuration management for threadloop.

Loads defaults from environment variables (and a local ``.env`` file) for
local development. The YAML loader in ``config_loader`` falls back to these.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class ProviderSettings:
    """Connection settings for the responses provider."""
    base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    api_key: str = os.getenv("OPENAI_API_KEY", "")
    timeout: float = float(os.getenv("OPENAI_TIMEOUT", "120"))


@dataclass
class AgentSettings:
    """Defaults for agents built without explicit configuration."""
    model: str = os.getenv("AGENT_MODEL", "gpt-4o")
    instructions: str = os.getenv("AGENT_INSTRUCTIONS", "")
    parallel_tool_calls: bool = (
        os.getenv("AGENT_PARALLEL_TOOL_CALLS", "true").lower() == "true"
    )


@dataclass
class LangfuseSettings:
    """Langfuse observability settings.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = os.getenv("LANGFUSE_PUBLIC_KEY", "")
    secret_key: str = os.getenv("LANGFUSE_SECRET_KEY", "")
    host: str = os.getenv("LANGFUSE_HOST", "")
    debug: bool = os.getenv("LANGFUSE_DEBUG", "false").lower() == "true"

    @property
    def enabled(self) -> bool:
        return bool(self.public_key and self.secret_key)


@dataclass
class Config:
    """Main configuration container."""
    provider: ProviderSettings
    agent: AgentSettings
    langfuse: LangfuseSettings
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def get_config() -> Config:
    """Get the environment-derived configuration."""
    return Config(
        provider=ProviderSettings(),
        agent=AgentSettings(),
        langfuse=LangfuseSettings(),
    )


# Global config instance
config = get_config()
