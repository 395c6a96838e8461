"""
Responses provider client for threadloop.

Thin async wrapper over the OpenAI "responses" API. It opens streamed
turns, lists models, and reads back stored input items. Raw stream events
are classified with ``translate_event`` so the generate-loop never sees the
SDK's types, and SDK/transport failures are re-raised as ProviderError.
"""

import logging
from typing import AsyncIterator, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from .config import config
from .errors import ProviderError
from .orchestration.events import ProviderEvent, TurnRequest, translate_event

logger = logging.getLogger(__name__)


class ResponsesProvider:
    """Async client for an OpenAI-compatible responses endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.base_url = base_url or config.provider.base_url
        self._client = client or AsyncOpenAI(
            api_key=api_key or config.provider.api_key or None,
            base_url=self.base_url,
            timeout=timeout if timeout is not None else config.provider.timeout,
        )

    async def list_models(self) -> list[str]:
        """List the model ids available to these credentials."""
        try:
            return [model.id async for model in self._client.models.list()]
        except (OpenAIError, httpx.HTTPError) as e:
            logger.error("Model listing at %s failed: %s", self.base_url, e)
            raise ProviderError(f"Failed to list models: {e}") from e

    async def create_turn(self, request: TurnRequest) -> AsyncIterator[ProviderEvent]:
        """
        Open a streamed turn and yield its classified events in arrival order.

        The HTTP response is closed however iteration ends, including when
        the caller stops at ``response.completed`` or abandons the turn.

        Raises:
            ProviderError: If the request fails, the stream breaks, or an
                event is malformed.
        """
        try:
            stream = await self._client.responses.create(**request.to_create_kwargs())
            try:
                async for raw in stream:
                    event = translate_event(raw)
                    if event is not None:
                        yield event
            finally:
                await stream.close()
        except (OpenAIError, httpx.HTTPError) as e:
            logger.error("Responses stream failed: %s", e)
            raise ProviderError(f"Provider stream failed: {e}") from e

    async def list_turn_items(self, response_id: str) -> list[dict]:
        """
        Read the input items stored for a response, oldest first.

        Used to rebuild a thread's local history from provider state.
        """
        try:
            items = []
            async for item in self._client.responses.input_items.list(
                response_id, order="asc"
            ):
                items.append(item.model_dump() if hasattr(item, "model_dump") else item)
            return items
        except (OpenAIError, httpx.HTTPError) as e:
            logger.error("Listing input items for %s failed: %s", response_id, e)
            raise ProviderError(f"Failed to list items for {response_id}: {e}") from e

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()
