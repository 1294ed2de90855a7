# File: llmchat/core/settings.py
# Project: LLM Chat
# Description: Settings models for saved endpoints and prompts, plus the first-run defaults
# used when no settings file exists yet.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import uuid
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EndpointType = Literal['remoteAPI', 'localModel', 'customAPI']

REMOTE_API: EndpointType = 'remoteAPI'
LOCAL_MODEL: EndpointType = 'localModel'
CUSTOM_API: EndpointType = 'customAPI'

DEFAULT_SYSTEM_PROMPT = 'You are a helpful AI assistant.'
SYSTEM_LANGUAGE = 'System'


def _new_id() -> str:
    return uuid.uuid4().hex


class EndpointConfig(BaseModel):
    """A configured chat backend: remote API, custom OpenAI-compatible API, or local model file."""
    id: str = Field(default_factory=_new_id)
    name: str = ''
    # API base URL for remote types; filesystem path of the model file for localModel.
    url: str = ''
    endpointType: EndpointType = Field(default=REMOTE_API, alias='endpointType')
    requiresAuth: bool = Field(default=True, alias='requiresAuth')
    defaultModel: str = Field(default='gpt-3.5-turbo', alias='defaultModel')
    availableModels: List[str] = Field(default_factory=list, alias='availableModels')
    defaultPromptID: Optional[str] = Field(default=None, alias='defaultPromptID')
    organizationID: Optional[str] = Field(default=None, alias='organizationID')
    maxTokens: Optional[int] = Field(default=None, alias='maxTokens')
    temperature: float = 1.0
    isChatEndpoint: bool = Field(default=True, alias='isChatEndpoint')

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_local_model(self) -> bool:
        return self.endpointType == LOCAL_MODEL


class PromptConfig(BaseModel):
    """A named system/user prompt pair."""
    id: str = Field(default_factory=_new_id)
    name: str = ''
    systemPrompt: str = Field(default='', alias='systemPrompt')
    userPrompt: str = Field(default='', alias='userPrompt')

    model_config = ConfigDict(populate_by_name=True)


class Settings(BaseModel):
    """Top-level settings container persisted on disk."""
    savedEndpoints: List[EndpointConfig] = Field(default_factory=list, alias='savedEndpoints')
    savedPrompts: List[PromptConfig] = Field(default_factory=list, alias='savedPrompts')
    defaultEndpointID: Optional[str] = Field(default=None, alias='defaultEndpointID')
    defaultPromptID: Optional[str] = Field(default=None, alias='defaultPromptID')
    systemPrompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, alias='systemPrompt')
    userPrompt: str = Field(default='', alias='userPrompt')
    preferredLanguage: str = Field(default=SYSTEM_LANGUAGE, alias='preferredLanguage')
    generateTitles: bool = Field(default=False, alias='generateTitles')

    model_config = ConfigDict(populate_by_name=True)

    def find_endpoint(self, endpoint_id: Optional[str]) -> Optional[EndpointConfig]:
        if not endpoint_id:
            return None
        for endpoint in self.savedEndpoints:
            if endpoint.id == endpoint_id:
                return endpoint
        return None

    def find_prompt(self, prompt_id: Optional[str]) -> Optional[PromptConfig]:
        if not prompt_id:
            return None
        for prompt in self.savedPrompts:
            if prompt.id == prompt_id:
                return prompt
        return None

    @classmethod
    def from_file(cls, path: Path) -> 'Settings':
        """Load settings from JSON text file with UTF-8 encoding."""
        data = path.read_text(encoding='utf-8')
        return cls.model_validate_json(data)


def default_openai_endpoint() -> EndpointConfig:
    return EndpointConfig(
        name='OpenAI',
        url='https://api.openai.com',
        endpointType=REMOTE_API,
        requiresAuth=True,
        defaultModel='gpt-3.5-turbo',
        temperature=1.0,
    )


def default_settings() -> Settings:
    """First-run settings: one OpenAI endpoint and the two stock prompts."""
    endpoint = default_openai_endpoint()
    prompts = [
        PromptConfig(name='Default Assistant', systemPrompt=DEFAULT_SYSTEM_PROMPT, userPrompt=''),
        PromptConfig(
            name='Code Expert',
            systemPrompt='You are a coding expert who provides clear, efficient solutions with explanations.',
            userPrompt='Please help me solve the following coding problem:',
        ),
    ]
    return Settings(
        savedEndpoints=[endpoint],
        savedPrompts=prompts,
        defaultEndpointID=endpoint.id,
        defaultPromptID=prompts[0].id,
    )
