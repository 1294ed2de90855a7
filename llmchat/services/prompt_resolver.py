# File: llmchat/services/prompt_resolver.py
# Project: LLM Chat
# Description: Resolves the effective system/user prompt for a chat turn (chat selection, endpoint
# default, global text) and appends the preferred-language instruction.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from ..core.settings import SYSTEM_LANGUAGE, PromptConfig

LANGUAGE_INSTRUCTIONS: Dict[str, Optional[str]] = {
    SYSTEM_LANGUAGE: None,
    'English': 'Please respond in English.',
    'Spanish': 'Por favor, responde en español.',
    'French': 'Veuillez répondre en français.',
    'German': 'Bitte antworten Sie auf Deutsch.',
    'Italian': 'Per favore, rispondi in italiano.',
    'Portuguese': 'Por favor, responda em português.',
    'Russian': 'Пожалуйста, ответьте на русском языке.',
    'Japanese': '日本語で回答してください。',
    'Chinese': '请用中文回答。',
    'Korean': '한국어로 대답해 주세요.',
}

SUPPORTED_LANGUAGES = tuple(LANGUAGE_INSTRUCTIONS)

_PLACEHOLDERS = ('{message}', '{input}')


@dataclass(frozen=True)
class ResolvedPromptContext:
    system_prompt: str
    user_prompt: str
    # Which link of the chain produced the base text: 'chat', 'endpoint' or 'global'.
    source: str = 'global'


def language_instruction(language: Optional[str]) -> Optional[str]:
    if not language or language == SYSTEM_LANGUAGE:
        return None
    return LANGUAGE_INSTRUCTIONS.get(language)


def prompt_lookup(prompts: Iterable[PromptConfig]) -> Callable[[Optional[str]], Optional[PromptConfig]]:
    table = {prompt.id: prompt for prompt in prompts}

    def lookup(prompt_id: Optional[str]) -> Optional[PromptConfig]:
        if not prompt_id:
            return None
        return table.get(prompt_id)

    return lookup


def resolve_prompt(
    chat_prompt_id: Optional[str],
    endpoint_prompt_id: Optional[str],
    global_system_prompt: str,
    global_user_prompt: str,
    preferred_language: Optional[str],
    find_prompt: Callable[[Optional[str]], Optional[PromptConfig]],
) -> ResolvedPromptContext:
    """Pick the prompt pair by precedence: chat selection, then endpoint default, then global."""
    system_prompt = global_system_prompt
    user_prompt = global_user_prompt
    source = 'global'
    chat_prompt = find_prompt(chat_prompt_id)
    if chat_prompt is not None:
        system_prompt, user_prompt, source = chat_prompt.systemPrompt, chat_prompt.userPrompt, 'chat'
    else:
        endpoint_prompt = find_prompt(endpoint_prompt_id)
        if endpoint_prompt is not None:
            system_prompt, user_prompt, source = endpoint_prompt.systemPrompt, endpoint_prompt.userPrompt, 'endpoint'

    instruction = language_instruction(preferred_language)
    if instruction:
        system_prompt = f'{system_prompt}\n\n{instruction}'
    return ResolvedPromptContext(system_prompt=system_prompt, user_prompt=user_prompt, source=source)


def compose_user_message(template: str, message: str) -> str:
    """Fill the user prompt template with the typed text."""
    if not template.strip():
        return message
    if any(placeholder in template for placeholder in _PLACEHOLDERS):
        filled = template
        for placeholder in _PLACEHOLDERS:
            filled = filled.replace(placeholder, message)
        return filled
    if not message:
        return template
    return f'{template}\n\n{message}'
