# File: llmchat/schemas/settings.py
# Project: LLM Chat
# Description: Pydantic schemas for settings, endpoint, prompt and token updates.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from ..core.settings import EndpointConfig, EndpointType, PromptConfig, Settings


class SettingsResponse(Settings):
    """Public-facing settings payload returned by the API layer."""
    pass


class SettingsUpdate(BaseModel):
    """Partial update of the global prompt text, language and title switch."""
    systemPrompt: Optional[str] = None
    userPrompt: Optional[str] = None
    preferredLanguage: Optional[str] = None
    generateTitles: Optional[bool] = None


class EndpointCreate(BaseModel):
    id: Optional[str] = None
    name: str = ''
    url: str = ''
    endpointType: EndpointType = 'remoteAPI'
    requiresAuth: bool = True
    defaultModel: str = 'gpt-3.5-turbo'
    availableModels: List[str] = []
    defaultPromptID: Optional[str] = None
    organizationID: Optional[str] = None
    maxTokens: Optional[int] = None
    temperature: float = 1.0
    isChatEndpoint: bool = True
    apiToken: Optional[str] = None


class EndpointUpdate(BaseModel):
    """Patch payload; unspecified fields keep their stored values."""
    name: Optional[str] = None
    url: Optional[str] = None
    endpointType: Optional[EndpointType] = None
    requiresAuth: Optional[bool] = None
    defaultModel: Optional[str] = None
    availableModels: Optional[List[str]] = None
    defaultPromptID: Optional[str] = None
    organizationID: Optional[str] = None
    maxTokens: Optional[int] = None
    temperature: Optional[float] = None
    isChatEndpoint: Optional[bool] = None


class TokenUpdate(BaseModel):
    token: Optional[str] = None


class PromptCreate(BaseModel):
    id: Optional[str] = None
    name: str
    systemPrompt: str = ''
    userPrompt: str = ''


class PromptUpdate(BaseModel):
    name: Optional[str] = None
    systemPrompt: Optional[str] = None
    userPrompt: Optional[str] = None


class LanguageUpdate(BaseModel):
    language: str


__all__ = [
    'EndpointConfig',
    'EndpointCreate',
    'EndpointUpdate',
    'LanguageUpdate',
    'PromptConfig',
    'PromptCreate',
    'PromptUpdate',
    'SettingsResponse',
    'SettingsUpdate',
    'TokenUpdate',
]
