# File: llmchat/services/notifications.py
# Project: LLM Chat
# Description: In-process notification center carrying settings change events to the dispatch controller.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from threading import RLock
from typing import Any, Callable, Dict, List

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_ENDPOINT_CHANGED = 'default-endpoint-changed'
ENDPOINT_UPDATED = 'endpoint-updated'
DEFAULT_PROMPT_CHANGED = 'default-prompt-changed'
LANGUAGE_CHANGED = 'language-changed'

SETTINGS_EVENTS = (
    DEFAULT_ENDPOINT_CHANGED,
    ENDPOINT_UPDATED,
    DEFAULT_PROMPT_CHANGED,
    LANGUAGE_CHANGED,
)

Handler = Callable[[str, Any], None]


class NotificationCenter:
    def __init__(self) -> None:
        self._lock = RLock()
        self._handlers: Dict[str, List[Handler]] = {}

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def post(self, event: str, payload: Any = None) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event, []))
        logger.debug('notifications.post', notification=event, handlers=len(handlers))
        for handler in handlers:
            try:
                handler(event, payload)
            except Exception as exc:
                logger.warning('notifications.handler_failed', notification=event, error=str(exc))
