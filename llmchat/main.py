# File: llmchat/main.py
# Project: LLM Chat
# Description: FastAPI application factory wiring settings, storage, notifications and the dispatch
# controller into app state.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import structlog
from fastapi import FastAPI

from .api import routes_chat, routes_conversations, routes_endpoints, routes_health, routes_settings
from .core.config import CONVERSATIONS_DIR, SETTINGS_FILE, TOKENS_FILE
from .core.logging import setup_logging
from .services.conversation_store import ConversationStore
from .services.dispatch import DispatchController, ServiceBuilder
from .services.notifications import NotificationCenter
from .services.service_factory import create_service
from .services.settings_manager import SettingsManager
from .services.storage import AppStorage
from .version import APP_VERSION

logger = structlog.get_logger(__name__)


def create_app(
    *,
    settings_path: Optional[Path] = None,
    tokens_path: Optional[Path] = None,
    conversations_dir: Optional[Path] = None,
    service_factory: ServiceBuilder = create_service,
    configure_logging: bool = True,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if configure_logging:
            setup_logging()
        notifications = NotificationCenter()
        settings_manager = SettingsManager(
            settings_path or SETTINGS_FILE,
            tokens_path or TOKENS_FILE,
            notifications=notifications,
        )
        conversation_store = ConversationStore(conversations_dir or CONVERSATIONS_DIR)
        storage = AppStorage(settings_manager, conversation_store)
        # Built inside the running loop so the controller binds to it.
        controller = DispatchController(storage, notifications, service_factory)
        app.state.notifications = notifications
        app.state.settings_manager = settings_manager
        app.state.conversation_store = conversation_store
        app.state.dispatch_controller = controller
        logger.info('app.started', version=APP_VERSION, endpoint_id=controller.selected_endpoint_id)
        try:
            yield
        finally:
            await controller.close()
            logger.info('app.stopped')

    app = FastAPI(title='LLM Chat', version=APP_VERSION, lifespan=lifespan)
    app.include_router(routes_health.router)
    app.include_router(routes_settings.router)
    app.include_router(routes_endpoints.router)
    app.include_router(routes_conversations.router)
    app.include_router(routes_chat.router)
    return app


app = create_app()
