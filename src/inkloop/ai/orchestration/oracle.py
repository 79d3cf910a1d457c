"""Oracle abstraction: the generative text service behind the loop.

The loop only needs ``generate(messages, config)`` returning either the full
response text or an async iterator of text chunks. Tests drive the loop with
scripted oracles; production runs use :class:`AIClientOracle`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Callable, Protocol, Sequence, Union

from .types import Message

if TYPE_CHECKING:
    from ..client import AIClient

LOGGER = logging.getLogger(__name__)

__all__ = ["OracleConfig", "OracleResponse", "Oracle", "AIClientOracle", "collect_response"]

OracleResponse = Union[str, AsyncIterator[str]]


@dataclass(slots=True, frozen=True)
class OracleConfig:
    model: str | None = None
    temperature: float | None = 0.4
    max_tokens: int | None = None
    stream: bool = True


class Oracle(Protocol):
    def generate(
        self, messages: Sequence[Message], config: OracleConfig
    ) -> Awaitable[OracleResponse] | AsyncIterator[str]:
        ...


class AIClientOracle:
    """Oracle backed by :class:`~inkloop.ai.client.AIClient`."""

    def __init__(self, client: AIClient) -> None:
        self._client = client

    @property
    def client(self) -> AIClient:
        return self._client

    async def generate(self, messages: Sequence[Message], config: OracleConfig) -> OracleResponse:
        payload = [message.to_chat_param() for message in messages]
        LOGGER.debug("Oracle request with %s message(s), stream=%s", len(payload), config.stream)
        if not config.stream:
            return await self._client.complete_chat(
                payload,
                model=config.model,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
            )
        return self._stream(payload, config)

    async def _stream(self, payload: list, config: OracleConfig) -> AsyncIterator[str]:
        async for event in self._client.stream_chat(
            payload,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        ):
            if event.type == "content.delta" and event.content:
                yield event.content


async def collect_response(
    response: OracleResponse | Awaitable[OracleResponse],
    chunks: list[str],
    on_chunk: Callable[[str], None] | None = None,
) -> str:
    """Resolve an oracle response into text.

    Streamed chunks are appended to *chunks* as they arrive so a caller that
    cancels the read still holds the partial output.
    """
    if hasattr(response, "__await__"):
        response = await response  # type: ignore[misc]
    if isinstance(response, str):
        chunks.append(response)
        return response
    if response is None:
        return ""
    async for chunk in response:
        if chunk:
            chunks.append(chunk)
            if on_chunk is not None:
                on_chunk(chunk)
    return "".join(chunks)
