# File: llmchat/services/local_service.py
# Project: LLM Chat
# Description: localModel backend running a GGUF model file in-process through llama-cpp-python.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, Iterator, List, Optional

import structlog

from ..core.errors import ApiError, InvalidEndpointError, ModelFileNotFoundError
from ..core.settings import LOCAL_MODEL, EndpointConfig
from .cancellation import CancellationToken
from .chat_service import ChatService
from .context_window import context_window_for
from .stream_decoder import extract_delta

logger = structlog.get_logger(__name__)

LlmFactory = Callable[[str, int], Any]

_END_OF_STREAM = object()


def load_llama(model_path: str, n_ctx: int) -> Any:
    try:
        from llama_cpp import Llama
    except ImportError as exc:
        raise InvalidEndpointError('local models need the llama-cpp-python package') from exc
    return Llama(model_path=model_path, n_ctx=n_ctx, verbose=False)


def _next_chunk(iterator: Iterator[Dict[str, Any]]) -> Any:
    return next(iterator, _END_OF_STREAM)


class LocalModelService(ChatService):
    endpoint_type = LOCAL_MODEL
    # Text-only chat format; images are sent as a marker.
    supports_images = False

    def __init__(self, endpoint: EndpointConfig, *, llm_factory: Optional[LlmFactory] = None) -> None:
        super().__init__(endpoint)
        self.model_path = Path(endpoint.url).expanduser()
        if not self.model_path.is_file():
            raise ModelFileNotFoundError(str(self.model_path))
        self._llm_factory = llm_factory or load_llama
        self._llm: Any = None
        self._load_lock = asyncio.Lock()

    async def _ensure_loaded(self) -> Any:
        async with self._load_lock:
            if self._llm is None:
                n_ctx = context_window_for(self.endpoint.defaultModel)
                logger.info('local.model_loading', path=str(self.model_path), n_ctx=n_ctx)
                self._llm = await asyncio.to_thread(self._llm_factory, str(self.model_path), n_ctx)
            return self._llm

    async def _stream(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
        token: CancellationToken,
    ) -> AsyncIterator[str]:
        llm = await self._ensure_loaded()
        if token.cancelled:
            return
        try:
            chunks = await asyncio.to_thread(
                llm.create_chat_completion,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
        except (RuntimeError, ValueError) as exc:
            raise ApiError(str(exc)) from exc
        iterator = iter(chunks)
        while not token.cancelled:
            try:
                chunk = await asyncio.to_thread(_next_chunk, iterator)
            except (RuntimeError, ValueError) as exc:
                raise ApiError(str(exc)) from exc
            if chunk is _END_OF_STREAM:
                return
            delta = extract_delta(chunk)
            if delta:
                yield delta

    async def get_available_models(self) -> List[str]:
        return [self.endpoint.defaultModel]

    async def close(self) -> None:
        await super().close()
        llm, self._llm = self._llm, None
        if llm is not None and hasattr(llm, 'close'):
            llm.close()
