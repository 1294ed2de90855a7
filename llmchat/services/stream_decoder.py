# File: llmchat/services/stream_decoder.py
# Project: LLM Chat
# Description: Turns SSE-framed chat completion lines into ordered text deltas.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import json
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Iterator, Optional

import structlog

from .cancellation import CancellationToken

logger = structlog.get_logger(__name__)

DATA_PREFIX = 'data: '
DONE_MARKER = '[DONE]'


def normalize_fragment(content: Any) -> str:
    """Flatten a delta content field: plain strings, or lists of text parts from some gateways."""
    if content is None:
        return ''
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict) and isinstance(item.get('text'), str):
                parts.append(item['text'])
        return ''.join(parts)
    return ''


def extract_delta(payload: Any) -> Optional[str]:
    """Return the first choice's incremental content, or None when the chunk carries none."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get('choices')
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get('delta')
    if not isinstance(delta, dict) or 'content' not in delta:
        return None
    text = normalize_fragment(delta.get('content'))
    return text or None


def decode_line(raw_line: str) -> Optional[str]:
    line = raw_line.strip('\r\n')
    if not line.strip():
        return None
    if DONE_MARKER in line:
        return None
    if line.startswith(DATA_PREFIX):
        line = line[len(DATA_PREFIX):]
    elif line.startswith('data:'):
        line = line[len('data:'):]
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        # Partial lines at chunk boundaries are expected.
        logger.debug('stream.line_skipped', line=line[:80])
        return None
    return extract_delta(payload)


def iter_deltas(lines: Iterable[str]) -> Iterator[str]:
    for raw_line in lines:
        delta = decode_line(raw_line)
        if delta is not None:
            yield delta


async def aiter_deltas(
    lines: AsyncIterable[str],
    cancel_token: Optional[CancellationToken] = None,
) -> AsyncIterator[str]:
    async for raw_line in lines:
        if cancel_token is not None and cancel_token.cancelled:
            return
        delta = decode_line(raw_line)
        if delta is not None:
            yield delta
