# File: llmchat/services/chat_service.py
# Project: LLM Chat
# Description: ChatService base class shared by every endpoint type: lazy delta streams with
# cooperative cancellation, model listing, and OpenAI-style message assembly.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from ..core.settings import EndpointConfig, EndpointType
from ..schemas.chat import ChatMessage, ImageContent, TextContent
from .cancellation import CancellationToken
from .context_window import manage_context
from .prompt_resolver import compose_user_message

logger = structlog.get_logger(__name__)

IMAGE_PLACEHOLDER = '[Image]'


def image_data_url(data: str) -> str:
    return f'data:image/jpeg;base64,{data}'


def history_to_messages(history: Sequence[ChatMessage], *, supports_images: bool = True) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = []
    for message in history:
        content = message.content
        if isinstance(content, ImageContent):
            # Only user images are forwarded.
            if not message.is_user:
                continue
            if supports_images:
                messages.append(
                    {
                        'role': message.role,
                        'content': [
                            {'type': 'text', 'text': ''},
                            {'type': 'image_url', 'image_url': {'url': image_data_url(content.data)}},
                        ],
                    }
                )
            else:
                messages.append({'role': message.role, 'content': IMAGE_PLACEHOLDER})
        elif isinstance(content, TextContent):
            messages.append({'role': message.role, 'content': content.text})
    return messages


def build_messages(
    prompt: str,
    system_prompt: str,
    user_prompt: str,
    model: str,
    history: Sequence[ChatMessage],
    *,
    supports_images: bool = True,
) -> List[Dict[str, Any]]:
    """System prompt, trimmed history, then the new user turn filled into the user template."""
    messages: List[Dict[str, Any]] = []
    if system_prompt.strip():
        messages.append({'role': 'system', 'content': system_prompt})
    trimmed = manage_context(system_prompt, history, model)
    messages.extend(history_to_messages(trimmed, supports_images=supports_images))
    user_content = compose_user_message(user_prompt, prompt)
    if user_content:
        messages.append({'role': 'user', 'content': user_content})
    return messages


class ChatService(ABC):
    """One backend per endpoint type, chosen once by the service factory.

    ``stream_message`` returns a lazy async iterator of text deltas. Nothing goes
    over the wire until the first delta is pulled. ``cancel_request`` stops every
    stream this instance has open; consumers may also simply stop iterating.
    """

    endpoint_type: EndpointType
    supports_images = True

    def __init__(self, endpoint: EndpointConfig) -> None:
        self.endpoint = endpoint
        self._active_tokens: List[CancellationToken] = []

    def stream_message(
        self,
        prompt: str,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        history: Sequence[ChatMessage],
        cancel_token: Optional[CancellationToken] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        token = cancel_token or CancellationToken()
        messages = build_messages(
            prompt,
            system_prompt,
            user_prompt,
            model,
            history,
            supports_images=self.supports_images,
        )
        limit = max_tokens if max_tokens is not None else self.endpoint.maxTokens
        return self._guarded_stream(messages, model, temperature, limit, token)

    async def _guarded_stream(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
        token: CancellationToken,
    ) -> AsyncIterator[str]:
        if token.cancelled:
            return
        self._active_tokens.append(token)
        try:
            stream = self._stream(messages, model, temperature, max_tokens, token)
            try:
                async for delta in stream:
                    if token.cancelled:
                        break
                    yield delta
            finally:
                await stream.aclose()
        finally:
            if token in self._active_tokens:
                self._active_tokens.remove(token)

    def cancel_request(self) -> None:
        tokens, self._active_tokens = self._active_tokens, []
        for token in tokens:
            token.cancel()

    @property
    def has_active_request(self) -> bool:
        return bool(self._active_tokens)

    def _close_on_cancel(self, token: CancellationToken, closer: Callable[[], Awaitable[Any]]) -> None:
        """Abort the underlying transport as soon as the token is cancelled."""

        async def _close() -> None:
            try:
                await closer()
            except Exception as exc:
                logger.debug('chat_service.abort_failed', error=str(exc))

        def _schedule() -> None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
            loop.create_task(_close())

        token.add_callback(_schedule)

    @abstractmethod
    def _stream(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
        token: CancellationToken,
    ) -> AsyncIterator[str]:
        """Backend-specific request; an async generator yielding raw deltas."""

    @abstractmethod
    async def get_available_models(self) -> List[str]:
        """Model identifiers the backend offers, sorted."""

    async def close(self) -> None:
        self.cancel_request()

    async def __aenter__(self) -> 'ChatService':
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
