# File: llmchat/services/storage.py
# Project: LLM Chat
# Description: The storage interface the dispatch controller reads and writes, and the application
# implementation backed by SettingsManager and ConversationStore.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from ..core.settings import EndpointConfig, PromptConfig
from ..schemas.chat import ChatMessage
from .conversation_store import ConversationStore
from .settings_manager import SettingsManager


class ChatStorage(Protocol):
    @property
    def saved_endpoints(self) -> List[EndpointConfig]: ...

    @property
    def saved_prompts(self) -> List[PromptConfig]: ...

    @property
    def default_endpoint_id(self) -> Optional[str]: ...

    @property
    def system_prompt(self) -> str: ...

    @property
    def user_prompt(self) -> str: ...

    @property
    def preferred_language(self) -> str: ...

    @property
    def generate_titles(self) -> bool: ...

    def get_token(self, endpoint_id: Optional[str]) -> Optional[str]: ...

    def save_conversation(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        language: str,
        endpoint_id: Optional[str],
        messages: Sequence[ChatMessage],
        *,
        conversation_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> object: ...


class AppStorage:
    """Live view over settings and the conversation archive; every read reflects the latest settings."""

    def __init__(self, settings_manager: SettingsManager, conversations: ConversationStore) -> None:
        self.settings_manager = settings_manager
        self.conversations = conversations

    @property
    def saved_endpoints(self) -> List[EndpointConfig]:
        return self.settings_manager.list_endpoints()

    @property
    def saved_prompts(self) -> List[PromptConfig]:
        return self.settings_manager.list_prompts()

    @property
    def default_endpoint_id(self) -> Optional[str]:
        return self.settings_manager.get_settings().defaultEndpointID

    @property
    def system_prompt(self) -> str:
        return self.settings_manager.get_settings().systemPrompt

    @property
    def user_prompt(self) -> str:
        return self.settings_manager.get_settings().userPrompt

    @property
    def preferred_language(self) -> str:
        return self.settings_manager.get_settings().preferredLanguage

    @property
    def generate_titles(self) -> bool:
        return self.settings_manager.get_settings().generateTitles

    def get_token(self, endpoint_id: Optional[str]) -> Optional[str]:
        return self.settings_manager.get_token(endpoint_id)

    def save_conversation(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        language: str,
        endpoint_id: Optional[str],
        messages: Sequence[ChatMessage],
        *,
        conversation_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> object:
        return self.conversations.save_conversation(
            model,
            system_prompt,
            user_prompt,
            language,
            endpoint_id,
            messages,
            conversation_id=conversation_id,
            title=title,
        )
