# File: llmchat/core/deps.py
# Project: LLM Chat
# Description: FastAPI dependency providers exposing shared services from application state.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from fastapi import Request, WebSocket

from ..services.conversation_store import ConversationStore
from ..services.dispatch import DispatchController
from ..services.settings_manager import SettingsManager


def get_settings_manager(request: Request) -> SettingsManager:
    return request.app.state.settings_manager


def get_conversation_store(request: Request) -> ConversationStore:
    return request.app.state.conversation_store


def get_dispatch_controller(request: Request) -> DispatchController:
    return request.app.state.dispatch_controller


def get_dispatch_controller_ws(websocket: WebSocket) -> DispatchController:
    return websocket.app.state.dispatch_controller
