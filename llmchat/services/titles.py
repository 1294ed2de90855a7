# File: llmchat/services/titles.py
# Project: LLM Chat
# Description: Conversation titles: a local fallback from the first user message, or a short
# title asked from the active chat service.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import structlog

from ..schemas.chat import ChatMessage

if TYPE_CHECKING:
    from .chat_service import ChatService

logger = structlog.get_logger(__name__)

TITLE_SYSTEM_PROMPT = (
    'You are a helpful assistant that generates short, concise titles (5 words max) for chat '
    'conversations. The title should capture the main topic or question.'
)
TITLE_MAX_TOKENS = 20
FALLBACK_TITLE_CHARS = 50


def fallback_title(messages: Sequence[ChatMessage]) -> str:
    for message in messages:
        if not message.is_user:
            continue
        if message.is_image:
            return 'Image Conversation'
        text = message.text_value.strip()
        if not text:
            continue
        if len(text) > FALLBACK_TITLE_CHARS:
            return text[:FALLBACK_TITLE_CHARS] + '...'
        return text
    return 'New Conversation'


def _title_source(messages: Sequence[ChatMessage]) -> str:
    lines = []
    for message in messages:
        if message.is_error or message.is_image:
            continue
        lines.append(f'{message.role}: {message.text_value}')
    return '\n'.join(lines[:4])


async def generate_title(service: 'ChatService', model: str, messages: Sequence[ChatMessage]) -> str:
    """Ask the service for a title; any failure falls back to the local title."""
    source = _title_source(messages)
    if not source:
        return fallback_title(messages)
    prompt = f'Generate a short title for this conversation:\n\n{source}'
    try:
        parts = [
            delta
            async for delta in service.stream_message(
                prompt,
                TITLE_SYSTEM_PROMPT,
                '',
                model,
                0.7,
                [],
                max_tokens=TITLE_MAX_TOKENS,
            )
        ]
    except Exception as exc:
        logger.warning('titles.generate_failed', error=str(exc))
        return fallback_title(messages)
    title = ''.join(parts).strip().strip('"\'').strip()
    return title or fallback_title(messages)
