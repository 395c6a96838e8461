"""
Exception hierarchy for threadloop.

Configuration and addressing errors are raised synchronously to the caller.
Run-fatal errors (registry drift, provider failures) are reported through
the run's AgentStream instead.
"""


class AgentError(Exception):
    """Base class for all threadloop errors."""


class ConfigurationError(AgentError):
    """The agent was configured in a way that can never work."""


class ToolNotDefinedError(ConfigurationError):
    """A tool was declared without a matching local callback."""


class ModelNotFoundError(ConfigurationError):
    """The configured model is not in the provider's catalog."""


class ThreadError(AgentError):
    """Base class for thread addressing errors."""


class ThreadNotFoundError(ThreadError):
    """No thread exists with the requested id."""


class ThreadExistsError(ThreadError):
    """A thread with the requested id already exists."""


class ThreadBusyError(ThreadError):
    """The thread already has a run in flight."""


class ToolNotRegisteredError(AgentError):
    """The provider requested a tool that has no registered callback."""


class ToolArgumentsError(AgentError):
    """A tool call's argument payload could not be decoded into an object."""


class ProviderError(AgentError):
    """The model provider failed or returned data we cannot interpret."""


class StreamClosedError(AgentError):
    """An event was published after the stream ended."""
