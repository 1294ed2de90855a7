# File: llmchat/services/urls.py
# Project: LLM Chat
# Description: Normalises user-entered endpoint URLs into an OpenAI-compatible API root and derives
# the chat and model-list URLs from it.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import httpx

from ..core.errors import InvalidEndpointError, InvalidEndpointURLError

_CHAT_SUFFIX = '/chat/completions'
_VERSION_SEGMENT = '/v1'


def api_root(url: str) -> str:
    """'api.example.com/v1/chat/completions/' -> 'https://api.example.com/v1'."""
    value = (url or '').strip()
    if not value:
        raise InvalidEndpointError('endpoint URL is empty')
    if not value.startswith(('http://', 'https://')):
        if '://' in value:
            raise InvalidEndpointURLError(value)
        value = f'https://{value}'
    # Anything after /v1/ is an operation path the user pasted along with the root.
    marker = value.find(_VERSION_SEGMENT + '/')
    if marker != -1:
        value = value[:marker + len(_VERSION_SEGMENT)]
    value = value.rstrip('/')
    if value.endswith(_CHAT_SUFFIX):
        value = value[:-len(_CHAT_SUFFIX)].rstrip('/')
    try:
        parsed = httpx.URL(value)
    except httpx.InvalidURL as exc:
        raise InvalidEndpointURLError(value) from exc
    if not parsed.host or ' ' in value:
        raise InvalidEndpointURLError(value)
    if not value.endswith(_VERSION_SEGMENT):
        value = f'{value}{_VERSION_SEGMENT}'
    return value


def chat_completions_url(url: str) -> str:
    return f'{api_root(url)}{_CHAT_SUFFIX}'


def models_url(url: str) -> str:
    return f'{api_root(url)}/models'
