# File: llmchat/services/endpoint_status.py
# Project: LLM Chat
# Description: Endpoint status message derived from the current selection; a pure function, never raised.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

from typing import Optional, Sequence

from ..core.settings import EndpointConfig

NO_ENDPOINTS_CONFIGURED = 'No endpoints configured.'
LOCAL_MODEL_NOT_SELECTED = 'Local model file not selected.'
API_TOKEN_REQUIRED = 'API token required for this endpoint.'
SERVICE_INIT_FAILED = 'Could not initialize chat service.'


def endpoint_status(
    endpoints: Sequence[EndpointConfig],
    selected: Optional[EndpointConfig],
    has_token: bool,
    service_available: bool,
) -> Optional[str]:
    """First matching rule wins; None means nothing to report."""
    if not endpoints:
        return NO_ENDPOINTS_CONFIGURED
    if selected is None:
        return None
    if selected.is_local_model and not selected.url.strip():
        return LOCAL_MODEL_NOT_SELECTED
    if selected.requiresAuth and not selected.is_local_model and not has_token:
        return API_TOKEN_REQUIRED
    if not service_available:
        return SERVICE_INIT_FAILED
    return None
