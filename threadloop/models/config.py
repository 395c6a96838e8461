"""
Configuration models for threadloop.

Dataclasses for the YAML configuration file.
"""

from dataclasses import dataclass, field


@dataclass
class ProviderConfig:
    """Connection to the responses provider."""
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    timeout: float = 120.0


@dataclass
class AgentSection:
    """Model and behaviour of the agent."""
    model: str = "gpt-4o"
    instructions: str = ""
    parallel_tool_calls: bool = True
    validate_model: bool = True


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability."""
    public_key: str = ""
    secret_key: str = ""
    host: str = ""
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """Check if Langfuse is configured (both keys present)."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Unified application configuration container.

    Holds all sections loaded from the YAML config file.
    """
    version: str = "1.0"
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    agent: AgentSection = field(default_factory=AgentSection)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)

    @property
    def log_level(self) -> str:
        return self.logging.level
