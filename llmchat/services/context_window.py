# File: llmchat/services/context_window.py
# Project: LLM Chat
# Description: Rough token accounting and history compression so requests stay inside the
# model's context window.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from typing import List, Sequence

from ..schemas.chat import ChatMessage

MODEL_CONTEXT_WINDOWS = {
    'gpt-4-turbo': 128000,
    'gpt-4': 8192,
    'gpt-3.5-turbo-16k': 16384,
    'gpt-3.5-turbo': 4096,
}
DEFAULT_CONTEXT_WINDOW = 4096

KEEP_HEAD = 3
KEEP_TAIL = 5
SUMMARY_SNIPPET_CHARS = 100


def estimate_tokens(text: str) -> int:
    return int(len(text) * 0.25) + 4


def context_window_for(model: str) -> int:
    # Longest key first so 'gpt-4-turbo' wins over 'gpt-4' and '-16k' over the base model.
    for name in sorted(MODEL_CONTEXT_WINDOWS, key=len, reverse=True):
        if model.startswith(name):
            return MODEL_CONTEXT_WINDOWS[name]
    return DEFAULT_CONTEXT_WINDOW


def _message_tokens(message: ChatMessage) -> int:
    return estimate_tokens(message.text_value)


def fits_context(system_prompt: str, history: Sequence[ChatMessage], model: str) -> bool:
    window = context_window_for(model)
    budget = window - min(1000, window // 4)
    total = estimate_tokens(system_prompt) + sum(_message_tokens(message) for message in history)
    return total <= budget


def summarize(messages: Sequence[ChatMessage]) -> str:
    lines = ['Summary of earlier conversation:']
    for message in messages:
        if not message.is_user:
            continue
        if message.is_image:
            lines.append('- User: [Image]')
            continue
        text = message.text_value
        if len(text) > SUMMARY_SNIPPET_CHARS:
            text = text[:SUMMARY_SNIPPET_CHARS] + '...'
        lines.append(f'- User: {text}')
    return '\n'.join(lines)


def manage_context(system_prompt: str, history: Sequence[ChatMessage], model: str) -> List[ChatMessage]:
    """Return history unchanged when it fits, else head + summary of the middle + tail."""
    if fits_context(system_prompt, history, model) or len(history) <= KEEP_HEAD + KEEP_TAIL:
        return list(history)
    head = list(history[:KEEP_HEAD])
    middle = history[KEEP_HEAD:-KEEP_TAIL]
    tail = list(history[-KEEP_TAIL:])
    summary = ChatMessage.text(summarize(middle), role='assistant')
    return head + [summary] + tail
