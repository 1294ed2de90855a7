# File: llmchat/schemas/chat.py
# Project: LLM Chat
# Description: Transcript message models (text or image content) and the websocket chat payloads.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Annotated

ChatRole = Literal['user', 'assistant']


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal['text'] = 'text'
    text: str


class ImageContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal['image'] = 'image'
    # Base64 payload without the data URL prefix.
    data: str


MessageContent = Annotated[Union[TextContent, ImageContent], Field(discriminator='type')]


class ChatMessage(BaseModel):
    """One transcript entry. Frozen: streaming replaces the last entry instead of editing it."""

    model_config = ConfigDict(frozen=True)

    content: MessageContent
    role: ChatRole = 'user'
    is_error: bool = False
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def text(cls, text: str, role: ChatRole = 'user', *, is_error: bool = False) -> 'ChatMessage':
        return cls(content=TextContent(text=text), role=role, is_error=is_error)

    @classmethod
    def image(cls, data: str, role: ChatRole = 'user') -> 'ChatMessage':
        return cls(content=ImageContent(data=data), role=role)

    @property
    def is_user(self) -> bool:
        return self.role == 'user'

    @property
    def is_image(self) -> bool:
        return isinstance(self.content, ImageContent)

    @property
    def text_value(self) -> str:
        """Plain-text rendering; images collapse to a marker so storage stays small."""
        if isinstance(self.content, TextContent):
            return self.content.text
        return '[Image]'

    def with_text(self, text: str, *, is_error: bool = False) -> 'ChatMessage':
        return self.model_copy(update={'content': TextContent(text=text), 'is_error': is_error})


class ChatRequest(BaseModel):
    message: str = ''
    image: Optional[str] = None
    action: Optional[Literal['send', 'cancel', 'clear']] = None
