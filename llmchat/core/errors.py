# File: llmchat/core/errors.py
# Project: LLM Chat
# Description: Error taxonomy shared by the service factory, chat services, and dispatch controller,
# plus the single mapping from exceptions to user-facing display strings.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import json
from typing import Optional

import httpx


class ChatError(RuntimeError):
    """Base class for every failure the chat pipeline reports to the user."""

    default_message = 'Chat request failed.'

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail
        super().__init__(self._format(detail))

    def _format(self, detail: Optional[str]) -> str:
        return self.default_message


class NoServiceAvailableError(ChatError):
    default_message = 'No chat service is available. Please configure an endpoint in settings.'


class NoEndpointsConfiguredError(ChatError):
    default_message = 'No endpoints configured.'


class NoEndpointSelectedError(ChatError):
    default_message = 'No endpoint selected.'


class InvalidEndpointError(ChatError):
    default_message = 'Invalid API endpoint.'

    def _format(self, detail: Optional[str]) -> str:
        if detail:
            return f'Invalid API endpoint: {detail}'
        return self.default_message


class MissingTokenError(InvalidEndpointError):
    default_message = 'API token is required for this endpoint.'

    def _format(self, detail: Optional[str]) -> str:
        return self.default_message


class ModelFileNotFoundError(InvalidEndpointError):
    default_message = 'Model file not found.'

    def _format(self, detail: Optional[str]) -> str:
        if detail:
            return f'Model file not found: {detail}'
        return self.default_message


class InvalidEndpointURLError(InvalidEndpointError):
    default_message = 'Invalid endpoint URL.'

    def _format(self, detail: Optional[str]) -> str:
        if detail:
            return f'Invalid endpoint URL: {detail}'
        return self.default_message


class ApiError(ChatError):
    default_message = 'API error.'

    def __init__(self, detail: Optional[str] = None, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(detail)

    def _format(self, detail: Optional[str]) -> str:
        return f'API error: {detail or "unknown error"}'


class UnauthorizedError(ChatError):
    default_message = 'Unauthorized. Please check your API token.'


class InvalidResponseError(ChatError):
    default_message = 'Invalid response from the server.'


class InvalidModelError(ChatError):
    default_message = 'The selected model is not available.'


class TransportError(ChatError):
    """Network-layer failure (connect, read, timeout) raised by the HTTP stack."""

    default_message = 'Network error.'

    def _format(self, detail: Optional[str]) -> str:
        if detail:
            return f'Network error: {detail}'
        return self.default_message


class DecodingError(ChatError):
    default_message = 'Failed to decode response.'

    def _format(self, detail: Optional[str]) -> str:
        if detail:
            return f'Failed to decode response: {detail}'
        return self.default_message


class PersistenceError(ChatError):
    default_message = 'Failed to save conversation.'

    def _format(self, detail: Optional[str]) -> str:
        if detail:
            return f'Failed to save conversation: {detail}'
        return self.default_message


def describe_error(exc: BaseException) -> str:
    """Map any exception raised during a send to the text shown in the transcript."""
    if isinstance(exc, ChatError):
        return str(exc)
    if isinstance(exc, httpx.TimeoutException):
        return f'Network error: request timed out ({exc.__class__.__name__})'
    if isinstance(exc, httpx.TransportError):
        return f'Network error: {exc}'
    if isinstance(exc, json.JSONDecodeError):
        return f'Failed to decode response: {exc.msg}'
    text = str(exc).strip()
    return text or exc.__class__.__name__
