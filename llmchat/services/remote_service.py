# File: llmchat/services/remote_service.py
# Project: LLM Chat
# Description: remoteAPI backend built on the OpenAI SDK: streamed chat completions and the model list.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import openai
import structlog
from openai import AsyncOpenAI

from ..core.config import REQUEST_TIMEOUT
from ..core.errors import (
    ApiError,
    ChatError,
    InvalidModelError,
    InvalidResponseError,
    TransportError,
    UnauthorizedError,
)
from ..core.settings import REMOTE_API, EndpointConfig
from .cancellation import CancellationToken
from .chat_service import ChatService
from .stream_decoder import extract_delta
from .urls import api_root

logger = structlog.get_logger(__name__)


def _status_detail(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        error = body.get('error', body)
        if isinstance(error, dict):
            detail = error.get('message') or error.get('detail')
            if detail:
                return str(detail)
        elif isinstance(error, str) and error:
            return error
    return exc.message or f'HTTP {exc.status_code}'


def map_openai_error(exc: openai.OpenAIError) -> ChatError:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return UnauthorizedError()
    if isinstance(exc, openai.APITimeoutError):
        return TransportError('request timed out')
    if isinstance(exc, openai.APIConnectionError):
        return TransportError(str(exc) or exc.__class__.__name__)
    if isinstance(exc, openai.APIResponseValidationError):
        return InvalidResponseError()
    if isinstance(exc, openai.APIStatusError):
        detail = _status_detail(exc)
        if exc.status_code == 404 and 'model' in detail.lower():
            return InvalidModelError()
        return ApiError(detail, status_code=exc.status_code)
    return ApiError(str(exc))


class RemoteAPIService(ChatService):
    endpoint_type = REMOTE_API

    def __init__(
        self,
        endpoint: EndpointConfig,
        api_token: Optional[str],
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        super().__init__(endpoint)
        client_kwargs: Dict[str, Any] = {
            # The SDK refuses a missing key; endpoints without auth send none.
            'api_key': api_token or '',
            'base_url': api_root(endpoint.url),
            'timeout': timeout,
            # Retries are the user's call, not the transport's.
            'max_retries': 0,
        }
        if endpoint.organizationID:
            client_kwargs['organization'] = endpoint.organizationID
        if http_client is not None:
            client_kwargs['http_client'] = http_client
        self._owns_client = http_client is None
        self._client = AsyncOpenAI(**client_kwargs)

    async def _stream(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
        token: CancellationToken,
    ) -> AsyncIterator[str]:
        request_body: Dict[str, Any] = {
            'model': model,
            'messages': messages,
            'temperature': temperature,
            'stream': True,
        }
        if max_tokens:
            request_body['max_tokens'] = max_tokens
        try:
            stream = await self._client.chat.completions.create(**request_body)
        except openai.OpenAIError as exc:
            logger.warning('remote.request_failed', endpoint=self.endpoint.name, error=str(exc))
            raise map_openai_error(exc) from exc
        self._close_on_cancel(token, stream.close)
        try:
            async for chunk in stream:
                if token.cancelled:
                    return
                delta = extract_delta(chunk.model_dump())
                if delta:
                    yield delta
        except openai.OpenAIError as exc:
            if token.cancelled:
                return
            raise map_openai_error(exc) from exc
        except httpx.TransportError as exc:
            if token.cancelled:
                return
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
        finally:
            await stream.close()

    async def get_available_models(self) -> List[str]:
        try:
            identifiers = [model.id async for model in self._client.models.list()]
        except openai.OpenAIError as exc:
            raise map_openai_error(exc) from exc
        return sorted(identifiers)

    async def close(self) -> None:
        await super().close()
        if self._owns_client:
            await self._client.close()
