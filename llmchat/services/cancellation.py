# File: llmchat/services/cancellation.py
# Project: LLM Chat
# Description: Explicit cancellation token shared by a chat service request and the controller loop
# that applies its deltas.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from typing import Callable, List

import structlog

logger = structlog.get_logger(__name__)


class CancellationToken:
    """One-way flag: once cancelled it stays cancelled, and callbacks fire exactly once."""

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:
                logger.warning('cancellation.callback_failed', error=str(exc))

    def add_callback(self, callback: Callable[[], None]) -> None:
        # Registering on an already-cancelled token runs the callback immediately.
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)
