# File: llmchat/api/routes_chat.py
# Project: LLM Chat
# Description: Websocket endpoint that drives the dispatch controller and streams the growing
# assistant reply back to the client.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

import asyncio
from typing import Set

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
import structlog

from ..core.deps import get_dispatch_controller_ws
from ..schemas.chat import ChatRequest
from ..services.dispatch import SEND_CANCELLED, SEND_FAILED, DispatchController

router = APIRouter(tags=['chat'])
logger = structlog.get_logger(__name__)


async def _forward_reply(
    websocket: WebSocket,
    controller: DispatchController,
    task: asyncio.Task,
    index: int,
) -> None:
    updates: asyncio.Queue = asyncio.Queue()
    remove = controller.add_listener(lambda _: updates.put_nowait(None))
    sent = ''
    try:
        while True:
            waiter = asyncio.ensure_future(updates.get())
            await asyncio.wait({waiter, task}, return_when=asyncio.FIRST_COMPLETED)
            if not waiter.done():
                waiter.cancel()
            message = controller.messages[index] if index < len(controller.messages) else None
            if message is not None and not message.is_error and message.text_value != sent:
                sent = message.text_value
                # Each chunk carries the whole reply so far.
                await websocket.send_json({'event': 'chunk', 'content': sent})
            if task.done():
                break
    finally:
        remove()

    outcome = SEND_CANCELLED if task.cancelled() else task.result()
    if outcome == SEND_CANCELLED:
        await websocket.send_json({'event': 'cancelled'})
    elif outcome == SEND_FAILED:
        await websocket.send_json({'event': 'error', 'message': controller.send_error or ''})
    else:
        await websocket.send_json({'event': 'done'})


@router.websocket('/chat')
async def chat_socket(websocket: WebSocket, controller: DispatchController = Depends(get_dispatch_controller_ws)):
    await websocket.accept()
    logger.info('chat websocket connected')
    forwarders: Set[asyncio.Task] = set()
    try:
        while True:
            try:
                payload = ChatRequest.model_validate(await websocket.receive_json())
            except ValidationError as exc:
                await websocket.send_json({'event': 'error', 'message': str(exc)})
                continue
            if payload.action == 'cancel':
                controller.cancel_request()
                continue
            if payload.action == 'clear':
                controller.clear_conversation()
                await websocket.send_json({'event': 'cleared'})
                continue
            task = controller.send_message(payload.message, payload.image)
            if task is None:
                continue
            forwarder = asyncio.create_task(
                _forward_reply(websocket, controller, task, len(controller.messages) - 1)
            )
            forwarders.add(forwarder)
            forwarder.add_done_callback(forwarders.discard)
    except WebSocketDisconnect:
        logger.info('chat websocket disconnected')
    finally:
        for forwarder in list(forwarders):
            forwarder.cancel()
