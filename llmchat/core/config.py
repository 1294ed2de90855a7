# File: llmchat/core/config.py
# Project: LLM Chat
# Description: Filesystem layout and environment-driven switches shared by the storage,
# logging, and transport layers.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import os
from pathlib import Path


def get_env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _resolve_home() -> Path:
    # LLMCHAT_HOME lets tests and portable installs relocate every file at once.
    env_value = os.environ.get('LLMCHAT_HOME', '').strip()
    if env_value:
        return Path(env_value).expanduser()
    return Path.home() / '.llmchat'


APP_HOME = _resolve_home()
SETTINGS_FILE = APP_HOME / 'settings.json'
TOKENS_FILE = APP_HOME / 'tokens.json'
CONVERSATIONS_DIR = APP_HOME / 'conversations'
LOG_DIR = APP_HOME / 'logs'

# Transport timeout in seconds; the dispatch core never times out on its own.
REQUEST_TIMEOUT = get_env_float('LLMCHAT_REQUEST_TIMEOUT', 60.0)
