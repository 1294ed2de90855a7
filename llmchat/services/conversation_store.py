# File: llmchat/services/conversation_store.py
# Project: LLM Chat
# Description: JSON-file conversation archive: one document per conversation, listed newest first.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field, ValidationError

from ..core.config import CONVERSATIONS_DIR
from ..core.errors import PersistenceError
from ..schemas.chat import ChatMessage, ChatRole
from .titles import fallback_title

logger = structlog.get_logger(__name__)


class StoredMessage(BaseModel):
    role: ChatRole
    content: str
    isImage: bool = False
    isError: bool = False
    timestamp: datetime


class StoredConversation(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str = ''
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    model: str = ''
    systemPrompt: str = ''
    userPrompt: str = ''
    language: str = ''
    endpointID: Optional[str] = None
    messages: List[StoredMessage] = Field(default_factory=list)


def _to_stored(message: ChatMessage) -> StoredMessage:
    return StoredMessage(
        role=message.role,
        # Image payloads are not archived.
        content=message.text_value,
        isImage=message.is_image,
        isError=message.is_error,
        timestamp=message.timestamp,
    )


class ConversationStore:
    def __init__(self, root: Path | None = None) -> None:
        self._root = root or CONVERSATIONS_DIR
        self._lock = RLock()

    def _path_for(self, conversation_id: str) -> Path:
        return self._root / f'{conversation_id}.json'

    def save_conversation(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        language: str,
        endpoint_id: Optional[str],
        messages: Sequence[ChatMessage],
        *,
        conversation_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> StoredConversation:
        conversation = StoredConversation(
            title=title or fallback_title(messages),
            model=model,
            systemPrompt=system_prompt,
            userPrompt=user_prompt,
            language=language,
            endpointID=endpoint_id,
            messages=[_to_stored(message) for message in messages],
        )
        if conversation_id:
            conversation.id = conversation_id
        path = self._path_for(conversation.id)
        with self._lock:
            try:
                self._root.mkdir(parents=True, exist_ok=True)
                tmp_path = path.with_suffix('.json.tmp')
                tmp_path.write_text(conversation.model_dump_json(indent=2), encoding='utf-8')
                tmp_path.replace(path)
            except OSError as exc:
                raise PersistenceError(str(exc)) from exc
        logger.info('conversations.saved', conversation_id=conversation.id, messages=len(conversation.messages))
        return conversation

    def load_conversation(self, conversation_id: str) -> StoredConversation:
        path = self._path_for(conversation_id)
        if not path.exists():
            raise KeyError(conversation_id)
        try:
            return StoredConversation.model_validate_json(path.read_text(encoding='utf-8'))
        except (OSError, ValidationError) as exc:
            raise PersistenceError(str(exc)) from exc

    def list_conversations(self) -> List[StoredConversation]:
        if not self._root.exists():
            return []
        conversations: List[StoredConversation] = []
        for path in self._root.glob('*.json'):
            try:
                conversations.append(StoredConversation.model_validate_json(path.read_text(encoding='utf-8')))
            except (OSError, ValidationError) as exc:
                logger.warning('conversations.load_failed', path=str(path), error=str(exc))
        conversations.sort(key=lambda item: item.timestamp, reverse=True)
        return conversations

    def delete_conversation(self, conversation_id: str) -> None:
        path = self._path_for(conversation_id)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError as exc:
                raise KeyError(conversation_id) from exc
            except OSError as exc:
                raise PersistenceError(str(exc)) from exc
