# File: llmchat/api/routes_health.py
# Project: LLM Chat
# Description: Health endpoint exposing status, version, and supported endpoint types.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from fastapi import APIRouter

from ..core.settings import CUSTOM_API, LOCAL_MODEL, REMOTE_API
from ..version import APP_VERSION

router = APIRouter(prefix='/health', tags=['health'])

ENDPOINT_TYPES = (REMOTE_API, CUSTOM_API, LOCAL_MODEL)


@router.get('', summary='Health check')
async def health_check():
    return {'status': 'ok', 'version': APP_VERSION, 'endpointTypes': list(ENDPOINT_TYPES)}
