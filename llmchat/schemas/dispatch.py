# File: llmchat/schemas/dispatch.py
# Project: LLM Chat
# Description: Response shapes for the dispatch controller's endpoint, model and transcript state.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from .chat import ChatMessage


class DispatchStatusResponse(BaseModel):
    selectedEndpointID: Optional[str] = None
    hasServiceError: bool = False
    errorMessage: Optional[str] = None
    availableModels: List[str] = []
    selectedModel: str = ''
    isSending: bool = False
    isLoadingModels: bool = False


class ModelListResponse(BaseModel):
    models: List[str]
    selectedModel: str


class TranscriptResponse(BaseModel):
    conversationID: str
    messages: List[ChatMessage]
    isSending: bool = False
    sendError: Optional[str] = None
    showError: bool = False
