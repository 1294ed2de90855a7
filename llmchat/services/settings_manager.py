# File: llmchat/services/settings_manager.py
# Project: LLM Chat
# Description: Thread-safe settings loader/writer managing endpoint and prompt CRUD, API tokens,
# and the change notifications the dispatch controller listens to.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import json
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError

from ..core.config import SETTINGS_FILE, TOKENS_FILE
from ..core.settings import EndpointConfig, PromptConfig, Settings, default_settings
from .notifications import (
    DEFAULT_ENDPOINT_CHANGED,
    DEFAULT_PROMPT_CHANGED,
    ENDPOINT_UPDATED,
    LANGUAGE_CHANGED,
    NotificationCenter,
)
from .prompt_resolver import SUPPORTED_LANGUAGES

logger = structlog.get_logger(__name__)


class SettingsManager:
    def __init__(
        self,
        settings_path: Path | None = None,
        tokens_path: Path | None = None,
        notifications: NotificationCenter | None = None,
    ) -> None:
        self._settings_path = settings_path or SETTINGS_FILE
        self._tokens_path = tokens_path or TOKENS_FILE
        self.notifications = notifications or NotificationCenter()
        # Shared by API handlers and the controller's background tasks.
        self._lock = RLock()
        self._settings = self._load_settings()
        self._tokens = self._load_tokens()

    def _load_settings(self) -> Settings:
        if self._settings_path.exists():
            try:
                return Settings.from_file(self._settings_path)
            except (ValidationError, ValueError, OSError) as exc:
                logger.warning(
                    'settings.load.user_failed',
                    error=str(exc),
                    path=str(self._settings_path),
                )
        settings = default_settings()
        self._write_settings_file(settings)
        return settings

    def _load_tokens(self) -> Dict[str, str]:
        if not self._tokens_path.exists():
            return {}
        try:
            data = json.loads(self._tokens_path.read_text(encoding='utf-8'))
        except (ValueError, OSError) as exc:
            logger.warning('settings.tokens_load_failed', error=str(exc), path=str(self._tokens_path))
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(key): str(value) for key, value in data.items() if value}

    def get_settings(self) -> Settings:
        # Copies keep callers from mutating internal state.
        with self._lock:
            return self._settings.model_copy(deep=True)

    def save_settings(self, payload: Dict[str, Any]) -> Settings:
        with self._lock:
            data = self._settings.model_dump(mode='python')
            data.update(payload)
            previous = self._settings
            self._settings = Settings.model_validate(data)
            self._write_settings_file(self._settings)
            updated = self._settings.model_copy(deep=True)
        if previous.preferredLanguage != updated.preferredLanguage:
            self.notifications.post(LANGUAGE_CHANGED, updated.preferredLanguage)
        if previous.defaultEndpointID != updated.defaultEndpointID:
            self.notifications.post(DEFAULT_ENDPOINT_CHANGED, updated.defaultEndpointID)
        if previous.defaultPromptID != updated.defaultPromptID:
            self.notifications.post(DEFAULT_PROMPT_CHANGED, updated.defaultPromptID)
        return updated

    def reset_to_default(self) -> Settings:
        with self._lock:
            self._settings = default_settings()
            self._write_settings_file(self._settings)
            settings = self._settings.model_copy(deep=True)
        self.notifications.post(DEFAULT_ENDPOINT_CHANGED, settings.defaultEndpointID)
        self.notifications.post(ENDPOINT_UPDATED, None)
        return settings

    def list_endpoints(self) -> list[EndpointConfig]:
        with self._lock:
            return [endpoint.model_copy(deep=True) for endpoint in self._settings.savedEndpoints]

    def add_endpoint(self, payload: Dict[str, Any] | EndpointConfig) -> EndpointConfig:
        endpoint = payload if isinstance(payload, EndpointConfig) else EndpointConfig.model_validate(payload)
        with self._lock:
            if any(item.id == endpoint.id for item in self._settings.savedEndpoints):
                raise ValueError(f'endpoint id already exists: {endpoint.id}')
            if not endpoint.name:
                endpoint = endpoint.model_copy(update={'name': endpoint.url or endpoint.id})
            endpoints = list(self._settings.savedEndpoints) + [endpoint]
            update: Dict[str, Any] = {'savedEndpoints': endpoints}
            became_default = not self._settings.defaultEndpointID
            if became_default:
                update['defaultEndpointID'] = endpoint.id
            self._settings = self._settings.model_copy(update=update)
            self._write_settings_file(self._settings)
        self.notifications.post(ENDPOINT_UPDATED, endpoint.model_copy(deep=True))
        if became_default:
            self.notifications.post(DEFAULT_ENDPOINT_CHANGED, endpoint.id)
        return endpoint.model_copy(deep=True)

    def update_endpoint(self, endpoint_id: str, patch: Dict[str, Any]) -> EndpointConfig:
        with self._lock:
            endpoints = list(self._settings.savedEndpoints)
            for idx, endpoint in enumerate(endpoints):
                if endpoint.id != endpoint_id:
                    continue
                data = endpoint.model_dump(mode='python')
                data.update(patch)
                data['id'] = endpoint_id
                updated = EndpointConfig.model_validate(data)
                endpoints[idx] = updated
                self._settings = self._settings.model_copy(update={'savedEndpoints': endpoints})
                self._write_settings_file(self._settings)
                break
            else:
                raise KeyError(endpoint_id)
        self.notifications.post(ENDPOINT_UPDATED, updated.model_copy(deep=True))
        return updated.model_copy(deep=True)

    def delete_endpoint(self, endpoint_id: str) -> None:
        with self._lock:
            endpoints = [item for item in self._settings.savedEndpoints if item.id != endpoint_id]
            if len(endpoints) == len(self._settings.savedEndpoints):
                raise KeyError(endpoint_id)
            default_id = self._settings.defaultEndpointID
            default_changed = default_id == endpoint_id
            if default_changed:
                # Never leave the default pointing at a removed endpoint.
                default_id = endpoints[0].id if endpoints else None
            self._settings = self._settings.model_copy(
                update={'savedEndpoints': endpoints, 'defaultEndpointID': default_id}
            )
            self._write_settings_file(self._settings)
            self._tokens.pop(endpoint_id, None)
            self._write_tokens_file()
        self.notifications.post(ENDPOINT_UPDATED, endpoint_id)
        if default_changed:
            self.notifications.post(DEFAULT_ENDPOINT_CHANGED, default_id)

    def set_default_endpoint(self, endpoint_id: str) -> EndpointConfig:
        with self._lock:
            endpoint = self._settings.find_endpoint(endpoint_id)
            if endpoint is None:
                raise KeyError(endpoint_id)
            self._settings = self._settings.model_copy(update={'defaultEndpointID': endpoint_id})
            self._write_settings_file(self._settings)
        self.notifications.post(DEFAULT_ENDPOINT_CHANGED, endpoint_id)
        return endpoint.model_copy(deep=True)

    def list_prompts(self) -> list[PromptConfig]:
        with self._lock:
            return [prompt.model_copy(deep=True) for prompt in self._settings.savedPrompts]

    def add_prompt(self, payload: Dict[str, Any] | PromptConfig) -> PromptConfig:
        prompt = payload if isinstance(payload, PromptConfig) else PromptConfig.model_validate(payload)
        with self._lock:
            if any(item.id == prompt.id for item in self._settings.savedPrompts):
                raise ValueError(f'prompt id already exists: {prompt.id}')
            prompts = list(self._settings.savedPrompts) + [prompt]
            self._settings = self._settings.model_copy(update={'savedPrompts': prompts})
            self._write_settings_file(self._settings)
        return prompt.model_copy(deep=True)

    def update_prompt(self, prompt_id: str, patch: Dict[str, Any]) -> PromptConfig:
        with self._lock:
            prompts = list(self._settings.savedPrompts)
            for idx, prompt in enumerate(prompts):
                if prompt.id != prompt_id:
                    continue
                data = prompt.model_dump(mode='python')
                data.update(patch)
                data['id'] = prompt_id
                updated = PromptConfig.model_validate(data)
                prompts[idx] = updated
                update: Dict[str, Any] = {'savedPrompts': prompts}
                is_default = self._settings.defaultPromptID == prompt_id
                if is_default:
                    update['systemPrompt'] = updated.systemPrompt
                    update['userPrompt'] = updated.userPrompt
                self._settings = self._settings.model_copy(update=update)
                self._write_settings_file(self._settings)
                break
            else:
                raise KeyError(prompt_id)
        if is_default:
            self.notifications.post(DEFAULT_PROMPT_CHANGED, prompt_id)
        return updated.model_copy(deep=True)

    def delete_prompt(self, prompt_id: str) -> None:
        with self._lock:
            prompts = [item for item in self._settings.savedPrompts if item.id != prompt_id]
            if len(prompts) == len(self._settings.savedPrompts):
                raise KeyError(prompt_id)
            endpoints = [
                item.model_copy(update={'defaultPromptID': None}) if item.defaultPromptID == prompt_id else item
                for item in self._settings.savedEndpoints
            ]
            default_id = self._settings.defaultPromptID
            default_changed = default_id == prompt_id
            if default_changed:
                default_id = None
            self._settings = self._settings.model_copy(
                update={'savedPrompts': prompts, 'savedEndpoints': endpoints, 'defaultPromptID': default_id}
            )
            self._write_settings_file(self._settings)
        if default_changed:
            self.notifications.post(DEFAULT_PROMPT_CHANGED, None)

    def set_default_prompt(self, prompt_id: str) -> PromptConfig:
        """Make a saved prompt the global default; its text becomes the global system/user prompt."""
        with self._lock:
            prompt = self._settings.find_prompt(prompt_id)
            if prompt is None:
                raise KeyError(prompt_id)
            self._settings = self._settings.model_copy(
                update={
                    'defaultPromptID': prompt_id,
                    'systemPrompt': prompt.systemPrompt,
                    'userPrompt': prompt.userPrompt,
                }
            )
            self._write_settings_file(self._settings)
        self.notifications.post(DEFAULT_PROMPT_CHANGED, prompt_id)
        return prompt.model_copy(deep=True)

    def set_language(self, language: str) -> str:
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f'unsupported language: {language}')
        with self._lock:
            changed = self._settings.preferredLanguage != language
            self._settings = self._settings.model_copy(update={'preferredLanguage': language})
            self._write_settings_file(self._settings)
        if changed:
            self.notifications.post(LANGUAGE_CHANGED, language)
        return language

    def get_token(self, endpoint_id: Optional[str]) -> Optional[str]:
        if not endpoint_id:
            return None
        with self._lock:
            return self._tokens.get(endpoint_id) or None

    def set_token(self, endpoint_id: str, token: Optional[str]) -> None:
        with self._lock:
            if self._settings.find_endpoint(endpoint_id) is None:
                raise KeyError(endpoint_id)
            value = (token or '').strip()
            if value:
                self._tokens[endpoint_id] = value
            else:
                self._tokens.pop(endpoint_id, None)
            self._write_tokens_file()
        self.notifications.post(ENDPOINT_UPDATED, endpoint_id)

    def _write_settings_file(self, settings: Settings) -> None:
        try:
            self._settings_path.parent.mkdir(parents=True, exist_ok=True)
            self._settings_path.write_text(settings.model_dump_json(indent=2), encoding='utf-8')
        except OSError as exc:  # pragma: no cover - best effort
            # Write failures are logged only; in-memory settings stay authoritative.
            logger.warning('settings.write_failed', error=str(exc), path=str(self._settings_path))

    def _write_tokens_file(self) -> None:
        try:
            self._tokens_path.parent.mkdir(parents=True, exist_ok=True)
            self._tokens_path.write_text(json.dumps(self._tokens, indent=2), encoding='utf-8')
            self._tokens_path.chmod(0o600)
        except OSError as exc:  # pragma: no cover - best effort
            logger.warning('settings.tokens_write_failed', error=str(exc), path=str(self._tokens_path))
