# File: llmchat/api/routes_endpoints.py
# Project: LLM Chat
# Description: Endpoint status, endpoint/model/prompt selection, and transcript control for the
# dispatch controller.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..core.deps import get_dispatch_controller
from ..schemas.dispatch import DispatchStatusResponse, ModelListResponse, TranscriptResponse
from ..services.dispatch import DispatchController

router = APIRouter(tags=['dispatch'])


def _status(controller: DispatchController) -> DispatchStatusResponse:
    return DispatchStatusResponse(
        selectedEndpointID=controller.selected_endpoint_id,
        hasServiceError=controller.has_service_error,
        errorMessage=controller.error_message,
        availableModels=list(controller.available_models),
        selectedModel=controller.selected_model,
        isSending=controller.is_sending,
        isLoadingModels=controller.is_loading_models,
    )


@router.get('/endpoints/status', response_model=DispatchStatusResponse)
async def read_endpoint_status(
    controller: DispatchController = Depends(get_dispatch_controller),
) -> DispatchStatusResponse:
    return _status(controller)


@router.put('/endpoints/selected/{endpoint_id}', response_model=DispatchStatusResponse)
async def select_endpoint(
    endpoint_id: str,
    controller: DispatchController = Depends(get_dispatch_controller),
) -> DispatchStatusResponse:
    """Switch the chat to another saved endpoint."""
    try:
        controller.select_endpoint(endpoint_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Endpoint not found') from exc
    return _status(controller)


@router.post('/models/refresh', response_model=ModelListResponse)
async def refresh_models(
    controller: DispatchController = Depends(get_dispatch_controller),
) -> ModelListResponse:
    models = await controller.update_available_models()
    return ModelListResponse(models=models, selectedModel=controller.selected_model)


@router.put('/models/selected/{model}', response_model=ModelListResponse)
async def select_model(
    model: str,
    controller: DispatchController = Depends(get_dispatch_controller),
) -> ModelListResponse:
    try:
        controller.select_model(model)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ModelListResponse(models=list(controller.available_models), selectedModel=controller.selected_model)


@router.put('/prompts/selected', response_model=DispatchStatusResponse)
async def select_prompt(
    prompt_id: Optional[str] = None,
    controller: DispatchController = Depends(get_dispatch_controller),
) -> DispatchStatusResponse:
    """Pin a saved prompt to this chat; omit prompt_id to fall back to the endpoint/global prompt."""
    try:
        controller.select_prompt(prompt_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Prompt not found') from exc
    return _status(controller)


@router.get('/transcript', response_model=TranscriptResponse)
async def read_transcript(
    controller: DispatchController = Depends(get_dispatch_controller),
) -> TranscriptResponse:
    return TranscriptResponse(
        conversationID=controller.conversation_id,
        messages=list(controller.messages),
        isSending=controller.is_sending,
        sendError=controller.send_error,
        showError=controller.show_error,
    )


@router.delete('/transcript/error')
async def dismiss_error(controller: DispatchController = Depends(get_dispatch_controller)) -> dict[str, str]:
    controller.dismiss_error()
    return {'status': 'dismissed'}
