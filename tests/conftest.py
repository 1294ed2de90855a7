"""Pytest configuration and shared fixtures."""
from typing import Any, Dict, List

import pytest

from llmchat.core.settings import CUSTOM_API, LOCAL_MODEL, REMOTE_API, EndpointConfig

from fakes import InMemoryStorage, ScriptedChatService


@pytest.fixture
def make_endpoint():
    """Return a factory for endpoint configurations."""

    def factory(endpoint_type: str = REMOTE_API, **overrides: Any) -> EndpointConfig:
        defaults: Dict[str, Any] = {
            REMOTE_API: {'name': 'OpenAI', 'url': 'https://api.openai.com', 'defaultModel': 'gpt-4'},
            CUSTOM_API: {
                'name': 'Gateway',
                'url': 'https://gateway.example.com',
                'defaultModel': 'llama-3',
                'requiresAuth': False,
            },
            LOCAL_MODEL: {
                'name': 'Local',
                'url': '/models/llama.gguf',
                'defaultModel': 'llama',
                'requiresAuth': False,
            },
        }[endpoint_type]
        defaults.update(overrides)
        return EndpointConfig(endpointType=endpoint_type, **defaults)

    return factory


@pytest.fixture
def make_service():
    """Return a factory for scripted chat services."""

    def factory(endpoint: EndpointConfig, *scripts: List[Any], **kwargs: Any) -> ScriptedChatService:
        return ScriptedChatService(endpoint, list(scripts) or None, **kwargs)

    return factory


@pytest.fixture
def make_storage():
    """Return a factory for in-memory chat storage."""

    def factory(*endpoints: EndpointConfig, **kwargs: Any) -> InMemoryStorage:
        return InMemoryStorage(list(endpoints), **kwargs)

    return factory


@pytest.fixture
def settings_paths(tmp_path):
    """Return isolated settings and token file paths."""
    return tmp_path / 'settings.json', tmp_path / 'tokens.json'
