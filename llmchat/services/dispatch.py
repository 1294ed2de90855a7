# File: llmchat/services/dispatch.py
# Project: LLM Chat
# Description: Dispatch controller owning the transcript, the single in-flight streaming request,
# cancellation, endpoint/model selection, and error-to-transcript translation.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Callable, List, Optional, Tuple

import structlog

from ..core.errors import (
    ChatError,
    NoEndpointSelectedError,
    NoEndpointsConfiguredError,
    NoServiceAvailableError,
    describe_error,
)
from ..core.settings import CUSTOM_API, EndpointConfig
from ..schemas.chat import ChatMessage
from .cancellation import CancellationToken
from .chat_service import ChatService
from .endpoint_status import endpoint_status
from .notifications import DEFAULT_ENDPOINT_CHANGED, SETTINGS_EVENTS, NotificationCenter
from .prompt_resolver import ResolvedPromptContext, prompt_lookup, resolve_prompt
from .service_factory import create_service
from .storage import ChatStorage
from .titles import generate_title

logger = structlog.get_logger(__name__)

ServiceBuilder = Callable[[EndpointConfig, Optional[str]], ChatService]
Listener = Callable[['DispatchController'], None]

SEND_COMPLETED = 'completed'
SEND_CANCELLED = 'cancelled'
SEND_FAILED = 'failed'


class DispatchController:
    """Single owner of chat state; every mutation happens on the event loop it was bound to."""

    def __init__(
        self,
        storage: ChatStorage,
        notifications: Optional[NotificationCenter] = None,
        service_factory: ServiceBuilder = create_service,
        *,
        refresh_models_on_change: bool = True,
    ) -> None:
        self._storage = storage
        self._service_factory = service_factory
        self._refresh_models_on_change = refresh_models_on_change
        self._listeners: List[Listener] = []
        try:
            self._loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

        self.messages: List[ChatMessage] = []
        self.input_text = ''
        self.pending_image: Optional[str] = None
        self.is_sending = False
        # Endpoint status (independent of send failures).
        self.error_message: Optional[str] = None
        self.has_service_error = False
        # Last send failure and its one-shot notification flag.
        self.send_error: Optional[str] = None
        self.show_error = False
        self.selected_endpoint_id: Optional[str] = None
        self.selected_prompt_id: Optional[str] = None
        self.selected_model = ''
        self.available_models: List[str] = []
        self.is_loading_models = False
        self.temperature = 1.0
        self.conversation_id = uuid.uuid4().hex
        self._conversation_title: Optional[str] = None

        self._service: Optional[ChatService] = None
        self._service_key: Optional[Tuple[str, Optional[str]]] = None
        self._active_token: Optional[CancellationToken] = None
        self._active_service: Optional[ChatService] = None
        self._active_task: Optional[asyncio.Task] = None
        # Services still generating a title for a finished turn.
        self._finishing: List[ChatService] = []
        self._models_task: Optional[asyncio.Task] = None

        self._unsubscribers: List[Callable[[], None]] = []
        if notifications is not None:
            for event in SETTINGS_EVENTS:
                self._unsubscribers.append(notifications.subscribe(event, self._on_settings_event))

        self.selected_endpoint_id = self._initial_endpoint_id()
        self.refresh('init')

    # ------------------------------------------------------------------ state

    @property
    def service(self) -> Optional[ChatService]:
        return self._service

    @property
    def selected_endpoint(self) -> Optional[EndpointConfig]:
        return self._find_endpoint(self.selected_endpoint_id)

    def _find_endpoint(self, endpoint_id: Optional[str]) -> Optional[EndpointConfig]:
        if not endpoint_id:
            return None
        for endpoint in self._storage.saved_endpoints:
            if endpoint.id == endpoint_id:
                return endpoint
        return None

    def _initial_endpoint_id(self) -> Optional[str]:
        endpoints = self._storage.saved_endpoints
        default_id = self._storage.default_endpoint_id
        if default_id and any(endpoint.id == default_id for endpoint in endpoints):
            return default_id
        return endpoints[0].id if endpoints else None

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as exc:
                logger.warning('dispatch.listener_failed', error=str(exc))

    # ------------------------------------------------------------ resolution

    def _on_settings_event(self, event: str, payload: Any) -> None:
        loop = self._loop
        if loop is not None and not loop.is_closed():
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is not loop:
                loop.call_soon_threadsafe(self._handle_settings_event, event, payload)
                return
        self._handle_settings_event(event, payload)

    def _handle_settings_event(self, event: str, payload: Any) -> None:
        if event == DEFAULT_ENDPOINT_CHANGED and isinstance(payload, str) and self._find_endpoint(payload):
            self.selected_endpoint_id = payload
        self.refresh(event)

    def refresh(self, reason: str = 'manual') -> None:
        """Re-resolve endpoint, service, status and model list from storage.

        Every trigger (initial load, endpoint selection, settings notifications)
        goes through here.
        """
        endpoints = self._storage.saved_endpoints
        selected = self._find_endpoint(self.selected_endpoint_id)
        if selected is None and self.selected_endpoint_id:
            # The selected endpoint was removed.
            self.selected_endpoint_id = self._initial_endpoint_id()
            selected = self._find_endpoint(self.selected_endpoint_id)

        token = self._storage.get_token(selected.id) if selected is not None else None
        token = (token or '').strip() or None
        changed = self._resolve_service(selected, token)
        status = endpoint_status(endpoints, selected, bool(token), self._service is not None)
        self.error_message = status
        self.has_service_error = status is not None

        if selected is None:
            self.available_models = []
            self.selected_model = ''
        elif changed or not self.available_models:
            self.temperature = selected.temperature
            self._apply_models(selected, self._configured_models(selected), authoritative=selected.is_local_model)
        logger.debug(
            'dispatch.refreshed',
            reason=reason,
            endpoint_id=self.selected_endpoint_id,
            service_available=self._service is not None,
            status=status,
        )
        self._notify()
        if selected is not None and changed and self._refresh_models_on_change:
            self._schedule_models_update()

    def _resolve_service(self, endpoint: Optional[EndpointConfig], token: Optional[str]) -> bool:
        """Rebuild the service when the endpoint config or token changed; True if they did."""
        key = (endpoint.model_dump_json(), token) if endpoint is not None else None
        changed = key != self._service_key
        if not changed and (self._service is not None or endpoint is None):
            return False
        if endpoint is None:
            self._replace_service(None, None)
            return changed
        try:
            service = self._service_factory(endpoint, token)
        except Exception as exc:
            # Reported through the endpoint status, never raised to the caller.
            logger.warning(
                'dispatch.service_unavailable',
                endpoint_id=endpoint.id,
                endpoint_type=endpoint.endpointType,
                error=str(exc),
            )
            self._replace_service(None, key)
            return changed
        self._replace_service(service, key)
        return changed

    def _replace_service(self, service: Optional[ChatService], key: Optional[Tuple[str, Optional[str]]]) -> None:
        previous = self._service
        self._service = service
        self._service_key = key
        if previous is None or previous is service or previous is self._active_service:
            return
        if previous not in self._finishing:
            self._retire(previous)

    def _retire(self, service: ChatService) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.create_task(self._close_service(service))

    async def _close_service(self, service: ChatService) -> None:
        try:
            await service.close()
        except Exception as exc:
            logger.debug('dispatch.service_close_failed', error=str(exc))

    def _configured_models(self, endpoint: EndpointConfig) -> List[str]:
        if endpoint.is_local_model:
            return [endpoint.defaultModel]
        return list(endpoint.availableModels) or [endpoint.defaultModel]

    def _apply_models(self, endpoint: EndpointConfig, models: List[str], *, authoritative: bool) -> None:
        self.available_models = models
        if authoritative or self.selected_model not in models:
            self.selected_model = endpoint.defaultModel if endpoint.defaultModel in models else models[0]

    def _schedule_models_update(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        if self._models_task is not None and not self._models_task.done():
            self._models_task.cancel()
        self._models_task = loop.create_task(self.update_available_models())

    async def update_available_models(self) -> List[str]:
        """Three-tier model list: live fetch, then the stored list, then the default model."""
        endpoint = self.selected_endpoint
        if endpoint is None:
            return list(self.available_models)
        if endpoint.is_local_model:
            self._apply_models(endpoint, [endpoint.defaultModel], authoritative=True)
            self._notify()
            return list(self.available_models)
        if endpoint.endpointType == CUSTOM_API and endpoint.availableModels:
            self._apply_models(endpoint, list(endpoint.availableModels), authoritative=False)
            self._notify()
            return list(self.available_models)

        service = self._service
        fetched: List[str] = []
        if service is not None:
            self.is_loading_models = True
            self._notify()
            try:
                fetched = await service.get_available_models()
            except Exception as exc:
                logger.warning('dispatch.models_fetch_failed', endpoint_id=endpoint.id, error=str(exc))
            finally:
                self.is_loading_models = False
        if self.selected_endpoint_id != endpoint.id:
            # Selection moved on while the fetch was in flight.
            return list(self.available_models)
        if fetched:
            self._apply_models(endpoint, list(fetched), authoritative=True)
        else:
            self._apply_models(endpoint, self._configured_models(endpoint), authoritative=False)
        self._notify()
        return list(self.available_models)

    def select_endpoint(self, endpoint_id: Optional[str]) -> None:
        if endpoint_id is not None and self._find_endpoint(endpoint_id) is None:
            raise KeyError(endpoint_id)
        self.selected_endpoint_id = endpoint_id
        self.refresh('endpoint-selected')

    def select_model(self, model: str) -> None:
        if model not in self.available_models:
            raise ValueError(f'model not available: {model}')
        self.selected_model = model
        self._notify()

    def select_prompt(self, prompt_id: Optional[str]) -> None:
        if prompt_id is not None and not any(prompt.id == prompt_id for prompt in self._storage.saved_prompts):
            raise KeyError(prompt_id)
        self.selected_prompt_id = prompt_id
        self._notify()

    def resolve_prompt(self) -> ResolvedPromptContext:
        endpoint = self.selected_endpoint
        return resolve_prompt(
            self.selected_prompt_id,
            endpoint.defaultPromptID if endpoint is not None else None,
            self._storage.system_prompt,
            self._storage.user_prompt,
            self._storage.preferred_language,
            prompt_lookup(self._storage.saved_prompts),
        )

    # ---------------------------------------------------------------- sending

    def send_message(self, text: Optional[str] = None, image: Optional[str] = None) -> Optional[asyncio.Task]:
        """Start a send from the input buffer; returns the task driving the stream, or None if input is empty."""
        if text is not None:
            self.input_text = text
        if image is not None:
            self.pending_image = image
        prompt = self.input_text
        image_data = self.pending_image
        has_text = bool(prompt.strip())
        if not has_text and not image_data:
            return None
        loop = asyncio.get_running_loop()
        self._loop = loop

        if image_data:
            self.messages.append(ChatMessage.image(image_data))
        if has_text:
            self.messages.append(ChatMessage.text(prompt))
        self.input_text = ''
        self.pending_image = None

        self._cancel_active()

        # The typed text is sent as the prompt itself, not as history.
        history = self._history(self.messages[:-1] if has_text else self.messages)
        self.messages.append(ChatMessage.text('', role='assistant'))
        placeholder_index = len(self.messages) - 1
        self.is_sending = True
        self.show_error = False

        token = CancellationToken()
        service = self._service
        task = loop.create_task(
            self._run_send(
                service,
                token,
                placeholder_index,
                prompt if has_text else '',
                self.resolve_prompt(),
                self.selected_model,
                self.temperature,
                history,
            )
        )
        self._active_token = token
        self._active_service = service
        self._active_task = task
        logger.info(
            'dispatch.send_started',
            endpoint_id=self.selected_endpoint_id,
            model=self.selected_model,
            history=len(history),
            has_image=bool(image_data),
        )
        self._notify()
        return task

    def _history(self, messages: List[ChatMessage]) -> List[ChatMessage]:
        history = []
        for message in messages:
            if message.is_error:
                continue
            if not message.is_user and not message.is_image and not message.text_value:
                continue
            history.append(message)
        return history

    def _cancel_active(self) -> None:
        token, service, task = self._active_token, self._active_service, self._active_task
        self._active_token = None
        self._active_service = None
        self._active_task = None
        if token is not None:
            token.cancel()
        if service is not None:
            if service is not self._service:
                self._retire(service)
            else:
                service.cancel_request()
        if task is not None and not task.done():
            task.cancel()

    async def _run_send(
        self,
        service: Optional[ChatService],
        token: CancellationToken,
        placeholder_index: int,
        prompt: str,
        resolved: ResolvedPromptContext,
        model: str,
        temperature: float,
        history: List[ChatMessage],
    ) -> str:
        owned = False
        try:
            if service is None:
                raise self._unavailable_error()
            full_response = ''
            stream = service.stream_message(
                prompt,
                resolved.system_prompt,
                resolved.user_prompt,
                model,
                temperature,
                history,
                cancel_token=token,
            )
            try:
                async for delta in stream:
                    if token.cancelled:
                        break
                    full_response += delta
                    self.messages[placeholder_index] = self.messages[placeholder_index].with_text(full_response)
                    self._notify()
            finally:
                await stream.aclose()
            if token.cancelled:
                logger.info('dispatch.send_cancelled', received=len(full_response))
                return SEND_CANCELLED
            logger.info('dispatch.send_completed', received=len(full_response))
            transcript = list(self.messages)
            conversation_id = self.conversation_id
            # A finished turn is no longer the active request.
            owned = self._release(token)
            await self._persist(service, resolved, model, transcript, conversation_id)
            return SEND_COMPLETED
        except asyncio.CancelledError:
            if token.cancelled:
                logger.info('dispatch.send_cancelled')
                return SEND_CANCELLED
            raise
        except Exception as exc:
            if token.cancelled:
                logger.info('dispatch.send_cancelled', error=str(exc))
                return SEND_CANCELLED
            self._fail(placeholder_index, exc)
            return SEND_FAILED
        finally:
            owned = self._release(token) or owned
            if owned and service is not None and service is not self._service and service is not self._active_service:
                await self._close_service(service)

    def _release(self, token: CancellationToken) -> bool:
        if self._active_token is not token:
            return False
        self._active_token = None
        self._active_service = None
        self._active_task = None
        self.is_sending = False
        self._notify()
        return True

    def _unavailable_error(self) -> ChatError:
        if not self._storage.saved_endpoints:
            return NoEndpointsConfiguredError()
        if self.selected_endpoint is None:
            return NoEndpointSelectedError()
        return NoServiceAvailableError()

    def _fail(self, placeholder_index: int, exc: Exception) -> None:
        message = describe_error(exc)
        logger.warning('dispatch.send_failed', error=message, error_type=exc.__class__.__name__)
        failed = ChatMessage.text(f'Error: {message}', role='assistant', is_error=True)
        if placeholder_index < len(self.messages):
            self.messages[placeholder_index] = failed
        else:
            self.messages.append(failed)
        self.send_error = message
        self.show_error = True
        self.is_sending = False

    async def _persist(
        self,
        service: ChatService,
        resolved: ResolvedPromptContext,
        model: str,
        transcript: List[ChatMessage],
        conversation_id: str,
    ) -> None:
        endpoint_id = self.selected_endpoint_id
        language = self._storage.preferred_language
        title = self._conversation_title if conversation_id == self.conversation_id else None
        if title is None and self._storage.generate_titles:
            self._finishing.append(service)
            try:
                title = await generate_title(service, model, transcript)
            finally:
                self._finishing.remove(service)
            if conversation_id == self.conversation_id and self._conversation_title is None:
                self._conversation_title = title
        try:
            await asyncio.to_thread(
                self._storage.save_conversation,
                model,
                resolved.system_prompt,
                resolved.user_prompt,
                language,
                endpoint_id,
                transcript,
                conversation_id=conversation_id,
                title=title,
            )
        except Exception as exc:
            # A failed save never turns a completed reply into an error.
            logger.warning('dispatch.persist_failed', conversation_id=conversation_id, error=str(exc))

    def cancel_request(self) -> None:
        had_active = self._active_token is not None
        self._cancel_active()
        self.is_sending = False
        if had_active:
            logger.info('dispatch.cancel_requested')
            self._notify()

    def clear_conversation(self) -> None:
        self._cancel_active()
        self.is_sending = False
        self.messages.clear()
        self.conversation_id = uuid.uuid4().hex
        self._conversation_title = None
        self.show_error = False
        self._notify()

    def dismiss_error(self) -> None:
        self.show_error = False
        self._notify()

    async def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._cancel_active()
        if self._models_task is not None and not self._models_task.done():
            self._models_task.cancel()
        service, self._service = self._service, None
        self._service_key = None
        if service is not None:
            await self._close_service(service)
