"""
Langfuse tracing client with graceful degradation.

Uses the Langfuse SDK v3 (OpenTelemetry-based) API. A single process-wide
client is held here; every tracing operation is a no-op when it was never
initialized, has no credentials, or failed its startup auth check.
"""

import logging
from typing import Any, Optional

from langfuse import Langfuse

logger = logging.getLogger(__name__)


class TracingClient:
    """Langfuse client wrapper that never breaks the caller."""

    def __init__(
        self,
        public_key: str = "",
        secret_key: str = "",
        host: str = "",
        debug: bool = False,
    ):
        self._client: Optional[Langfuse] = None
        self._enabled = False
        self._error: Optional[str] = None

        if not public_key or not secret_key:
            self._error = "Langfuse credentials not configured"
            logger.debug("Tracing disabled: %s", self._error)
            return

        if host and not host.startswith(("http://", "https://")):
            logger.warning(
                "LANGFUSE_HOST '%s' may be malformed. "
                "Expected format: http://hostname:port or https://hostname:port.",
                host,
            )

        try:
            kwargs: dict[str, Any] = {
                "public_key": public_key,
                "secret_key": secret_key,
                "debug": debug,
            }
            if host:
                kwargs["host"] = host
            self._client = Langfuse(**kwargs)
        except Exception as e:
            self._error = f"Failed to initialize Langfuse client: {e}"
            logger.warning("Tracing disabled: %s", self._error)
            return

        if self._check_auth():
            self._enabled = True
            logger.info("Langfuse tracing enabled (host: %s)", host or "default")

    def _check_auth(self) -> bool:
        """Verify the endpoint is reachable and the credentials are valid."""
        try:
            ok = self._client.auth_check()
        except Exception as e:
            self._error = f"Langfuse connectivity check failed: {e}"
            ok = False
        else:
            if not ok:
                self._error = "Langfuse auth_check() failed"
        if not ok:
            logger.warning("Tracing disabled: %s", self._error)
            self._client = None
        return ok

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def error(self) -> Optional[str]:
        """Why tracing is disabled, if it is."""
        return self._error

    @property
    def client(self) -> Optional[Langfuse]:
        return self._client

    def flush(self) -> None:
        """Flush any pending events to Langfuse."""
        if not self._enabled or not self._client:
            return
        try:
            self._client.flush()
        except Exception as e:
            logger.warning("Failed to flush tracing events: %s", e)

    def shutdown(self) -> None:
        """Shutdown the client, flushing any remaining events."""
        if not self._enabled or not self._client:
            return
        try:
            self._client.shutdown()
            logger.info("Langfuse tracing client shutdown complete")
        except Exception as e:
            logger.warning("Error during tracing client shutdown: %s", e)


_tracing_client: Optional[TracingClient] = None


def init_tracing_client(
    public_key: str = "",
    secret_key: str = "",
    host: str = "",
    debug: bool = False,
) -> TracingClient:
    """Initialize the global tracing client singleton."""
    global _tracing_client
    _tracing_client = TracingClient(
        public_key=public_key,
        secret_key=secret_key,
        host=host,
        debug=debug,
    )
    return _tracing_client


def get_tracing_client() -> Optional[TracingClient]:
    """Get the global tracing client instance."""
    return _tracing_client


def shutdown_tracing() -> None:
    """Shutdown the global tracing client."""
    global _tracing_client
    if _tracing_client:
        _tracing_client.shutdown()
        _tracing_client = None
