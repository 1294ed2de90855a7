# File: llmchat/services/custom_service.py
# Project: LLM Chat
# Description: customAPI backend for OpenAI-compatible servers, spoken directly over httpx so that
# both SSE streams and single JSON bodies are accepted.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import structlog

from ..core.config import REQUEST_TIMEOUT
from ..core.errors import (
    ApiError,
    ChatError,
    DecodingError,
    InvalidModelError,
    InvalidResponseError,
    TransportError,
    UnauthorizedError,
)
from ..core.settings import CUSTOM_API, EndpointConfig
from .cancellation import CancellationToken
from .chat_service import ChatService
from .stream_decoder import decode_line, normalize_fragment
from .urls import chat_completions_url, models_url

logger = structlog.get_logger(__name__)


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get('error')
        if isinstance(error, dict):
            detail = error.get('message') or error.get('detail')
            if detail:
                return str(detail)
        elif isinstance(error, str) and error:
            return error
        if isinstance(data.get('message'), str) and data['message']:
            return data['message']
    text = response.text.strip()
    if text:
        return text[:500]
    return f'HTTP {response.status_code}'


def status_error(response: httpx.Response) -> ChatError:
    if response.status_code in (401, 403):
        return UnauthorizedError()
    detail = _error_detail(response)
    if response.status_code == 404 and 'model' in detail.lower():
        return InvalidModelError()
    return ApiError(detail, status_code=response.status_code)


def parse_completion_body(text: str) -> str:
    """Content of a non-streamed chat completion, or of a single streamed-style chunk."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodingError(exc.msg) from exc
    if not isinstance(payload, dict):
        raise InvalidResponseError()
    choices = payload.get('choices')
    if not choices or not isinstance(choices, list) or not isinstance(choices[0], dict):
        error = payload.get('error')
        if error:
            detail = error.get('message') if isinstance(error, dict) else str(error)
            raise ApiError(detail or 'unknown error')
        raise InvalidResponseError()
    first = choices[0]
    message = first.get('message') or first.get('delta') or {}
    if isinstance(message, dict):
        return normalize_fragment(message.get('content'))
    return normalize_fragment(first.get('text'))


def parse_model_list(payload: Any) -> List[str]:
    """Accepts {data:[{id}]}, {models:[{name}]} or a bare list of names."""
    identifiers: List[str] = []
    if isinstance(payload, dict):
        if isinstance(payload.get('data'), list):
            identifiers = [item['id'] for item in payload['data'] if isinstance(item, dict) and item.get('id')]
        elif isinstance(payload.get('models'), list):
            for item in payload['models']:
                if isinstance(item, dict) and item.get('name'):
                    identifiers.append(item['name'])
                elif isinstance(item, str):
                    identifiers.append(item)
        else:
            raise InvalidResponseError()
    elif isinstance(payload, list):
        identifiers = [item for item in payload if isinstance(item, str)]
    else:
        raise InvalidResponseError()
    return sorted(identifiers)


class CustomAPIService(ChatService):
    endpoint_type = CUSTOM_API

    def __init__(
        self,
        endpoint: EndpointConfig,
        api_token: Optional[str],
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        super().__init__(endpoint)
        self._api_token = api_token
        # Validated up front so a bad URL fails at construction, not on first send.
        self._chat_url = chat_completions_url(endpoint.url)
        self._models_url = models_url(endpoint.url)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        if self._api_token:
            headers['Authorization'] = f'Bearer {self._api_token}'
        if self.endpoint.organizationID:
            headers['OpenAI-Organization'] = self.endpoint.organizationID
        return headers

    async def _stream(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
        token: CancellationToken,
    ) -> AsyncIterator[str]:
        body: Dict[str, Any] = {
            'model': model,
            'messages': messages,
            'temperature': temperature,
            'stream': True,
        }
        if max_tokens:
            body['max_tokens'] = max_tokens
        try:
            async with self._client.stream('POST', self._chat_url, json=body, headers=self._headers()) as response:
                if not response.is_success:
                    await response.aread()
                    logger.warning(
                        'custom.request_failed',
                        endpoint=self.endpoint.name,
                        status_code=response.status_code,
                    )
                    raise status_error(response)
                self._close_on_cancel(token, response.aclose)
                buffered: List[str] = []
                streaming = False
                async for raw_line in response.aiter_lines():
                    if token.cancelled:
                        return
                    if not streaming and not buffered:
                        if not raw_line.strip():
                            continue
                        # First meaningful line decides between SSE framing and a plain JSON body.
                        streaming = raw_line.lstrip().startswith('data:')
                    if streaming:
                        delta = decode_line(raw_line)
                        if delta is not None:
                            yield delta
                    else:
                        buffered.append(raw_line)
                if buffered and not token.cancelled:
                    text = parse_completion_body('\n'.join(buffered))
                    if text:
                        yield text
        except httpx.TimeoutException as exc:
            if token.cancelled:
                return
            raise TransportError('request timed out') from exc
        except (httpx.TransportError, httpx.StreamError) as exc:
            if token.cancelled:
                return
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

    async def get_available_models(self) -> List[str]:
        headers = self._headers()
        headers.pop('Content-Type', None)
        try:
            response = await self._client.get(self._models_url, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportError('request timed out') from exc
        except httpx.TransportError as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
        if not response.is_success:
            raise status_error(response)
        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodingError(str(exc)) from exc
        return parse_model_list(payload)

    async def close(self) -> None:
        await super().close()
        if self._owns_client:
            await self._client.aclose()
