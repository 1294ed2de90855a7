# File: llmchat/services/service_factory.py
# Project: LLM Chat
# Description: Builds the ChatService for an endpoint configuration; validation only, no network I/O.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from typing import Optional

import httpx

from ..core.errors import InvalidEndpointError, MissingTokenError
from ..core.settings import CUSTOM_API, LOCAL_MODEL, REMOTE_API, EndpointConfig
from .chat_service import ChatService
from .custom_service import CustomAPIService
from .local_service import LlmFactory, LocalModelService
from .remote_service import RemoteAPIService


class ServiceFactory:
    """Holds construction options shared by every service (test transports, local loaders)."""

    def __init__(
        self,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        llm_factory: Optional[LlmFactory] = None,
    ) -> None:
        self._http_client = http_client
        self._llm_factory = llm_factory

    def create_service(self, endpoint: EndpointConfig, api_token: Optional[str]) -> ChatService:
        token = (api_token or '').strip() or None
        if endpoint.endpointType == LOCAL_MODEL:
            if not endpoint.url.strip():
                raise InvalidEndpointError('no model file selected')
            return LocalModelService(endpoint, llm_factory=self._llm_factory)
        if endpoint.requiresAuth and not token:
            raise MissingTokenError()
        if endpoint.endpointType == CUSTOM_API:
            return CustomAPIService(endpoint, token, http_client=self._http_client)
        if endpoint.endpointType == REMOTE_API:
            return RemoteAPIService(endpoint, token, http_client=self._http_client)
        raise InvalidEndpointError(f'unsupported endpoint type {endpoint.endpointType!r}')


_default_factory = ServiceFactory()


def create_service(endpoint: EndpointConfig, api_token: Optional[str]) -> ChatService:
    return _default_factory.create_service(endpoint, api_token)
