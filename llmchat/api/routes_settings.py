# File: llmchat/api/routes_settings.py
# Project: LLM Chat
# Description: Settings endpoints for global prompt/language settings, saved endpoints, saved
# prompts, and per-endpoint API tokens.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from fastapi import APIRouter, Depends, HTTPException

from ..core.deps import get_settings_manager
from ..schemas.settings import (
    EndpointConfig,
    EndpointCreate,
    EndpointUpdate,
    LanguageUpdate,
    PromptConfig,
    PromptCreate,
    PromptUpdate,
    SettingsResponse,
    SettingsUpdate,
    TokenUpdate,
)
from ..services.settings_manager import SettingsManager

router = APIRouter(prefix='/settings', tags=['settings'])


@router.get('', response_model=SettingsResponse)
def read_settings(manager: SettingsManager = Depends(get_settings_manager)) -> SettingsResponse:
    """Return the current settings payload."""
    return manager.get_settings()


@router.put('', response_model=SettingsResponse)
def update_settings(
    payload: SettingsUpdate,
    manager: SettingsManager = Depends(get_settings_manager),
) -> SettingsResponse:
    """Persist partial settings update and return latest snapshot."""
    data = payload.model_dump(exclude_unset=True)
    try:
        if 'preferredLanguage' in data:
            manager.set_language(data.pop('preferredLanguage'))
        return manager.save_settings(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post('/reset', response_model=SettingsResponse)
def reset_settings(manager: SettingsManager = Depends(get_settings_manager)) -> SettingsResponse:
    """Restore first-run settings; stored tokens are kept."""
    return manager.reset_to_default()


@router.put('/language', response_model=SettingsResponse)
def update_language(
    payload: LanguageUpdate,
    manager: SettingsManager = Depends(get_settings_manager),
) -> SettingsResponse:
    try:
        manager.set_language(payload.language)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return manager.get_settings()


@router.get('/endpoints', response_model=list[EndpointConfig])
def list_endpoints(manager: SettingsManager = Depends(get_settings_manager)) -> list[EndpointConfig]:
    return manager.list_endpoints()


@router.post('/endpoints', response_model=EndpointConfig)
def create_endpoint(
    payload: EndpointCreate,
    manager: SettingsManager = Depends(get_settings_manager),
) -> EndpointConfig:
    """Create an endpoint; an apiToken in the payload is stored separately from the settings file."""
    data = payload.model_dump(exclude_unset=True)
    token = data.pop('apiToken', None)
    if not data.get('id'):
        data.pop('id', None)
    try:
        endpoint = manager.add_endpoint(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if token:
        manager.set_token(endpoint.id, token)
    return endpoint


@router.put('/endpoints/{endpoint_id}', response_model=EndpointConfig)
def update_endpoint(
    endpoint_id: str,
    payload: EndpointUpdate,
    manager: SettingsManager = Depends(get_settings_manager),
) -> EndpointConfig:
    try:
        return manager.update_endpoint(endpoint_id, payload.model_dump(exclude_unset=True))
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Endpoint not found') from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete('/endpoints/{endpoint_id}')
def delete_endpoint(
    endpoint_id: str,
    manager: SettingsManager = Depends(get_settings_manager),
) -> dict[str, str]:
    try:
        manager.delete_endpoint(endpoint_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Endpoint not found') from exc
    return {'status': 'deleted'}


@router.put('/endpoints/{endpoint_id}/default', response_model=EndpointConfig)
def set_default_endpoint(
    endpoint_id: str,
    manager: SettingsManager = Depends(get_settings_manager),
) -> EndpointConfig:
    try:
        return manager.set_default_endpoint(endpoint_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Endpoint not found') from exc


@router.put('/endpoints/{endpoint_id}/token')
def set_endpoint_token(
    endpoint_id: str,
    payload: TokenUpdate,
    manager: SettingsManager = Depends(get_settings_manager),
) -> dict[str, bool]:
    """Store or clear the API token; the token itself is never returned."""
    try:
        manager.set_token(endpoint_id, payload.token)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Endpoint not found') from exc
    return {'hasToken': manager.get_token(endpoint_id) is not None}


@router.get('/prompts', response_model=list[PromptConfig])
def list_prompts(manager: SettingsManager = Depends(get_settings_manager)) -> list[PromptConfig]:
    return manager.list_prompts()


@router.post('/prompts', response_model=PromptConfig)
def create_prompt(
    payload: PromptCreate,
    manager: SettingsManager = Depends(get_settings_manager),
) -> PromptConfig:
    data = payload.model_dump(exclude_unset=True)
    if not data.get('id'):
        data.pop('id', None)
    try:
        return manager.add_prompt(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.put('/prompts/{prompt_id}', response_model=PromptConfig)
def update_prompt(
    prompt_id: str,
    payload: PromptUpdate,
    manager: SettingsManager = Depends(get_settings_manager),
) -> PromptConfig:
    try:
        return manager.update_prompt(prompt_id, payload.model_dump(exclude_unset=True))
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Prompt not found') from exc


@router.delete('/prompts/{prompt_id}')
def delete_prompt(
    prompt_id: str,
    manager: SettingsManager = Depends(get_settings_manager),
) -> dict[str, str]:
    try:
        manager.delete_prompt(prompt_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Prompt not found') from exc
    return {'status': 'deleted'}


@router.put('/prompts/{prompt_id}/default', response_model=PromptConfig)
def set_default_prompt(
    prompt_id: str,
    manager: SettingsManager = Depends(get_settings_manager),
) -> PromptConfig:
    try:
        return manager.set_default_prompt(prompt_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Prompt not found') from exc
