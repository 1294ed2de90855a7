# File: llmchat/api/routes_conversations.py
# Project: LLM Chat
# Description: Read access to archived conversations.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from fastapi import APIRouter, Depends, HTTPException

from ..core.deps import get_conversation_store
from ..core.errors import PersistenceError
from ..services.conversation_store import ConversationStore, StoredConversation

router = APIRouter(prefix='/conversations', tags=['conversations'])


@router.get('', response_model=list[StoredConversation])
def list_conversations(store: ConversationStore = Depends(get_conversation_store)) -> list[StoredConversation]:
    """Newest first."""
    return store.list_conversations()


@router.get('/{conversation_id}', response_model=StoredConversation)
def read_conversation(
    conversation_id: str,
    store: ConversationStore = Depends(get_conversation_store),
) -> StoredConversation:
    try:
        return store.load_conversation(conversation_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Conversation not found') from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.delete('/{conversation_id}')
def delete_conversation(
    conversation_id: str,
    store: ConversationStore = Depends(get_conversation_store),
) -> dict[str, str]:
    try:
        store.delete_conversation(conversation_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail='Conversation not found') from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {'status': 'deleted'}
