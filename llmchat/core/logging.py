# File: llmchat/core/logging.py
# Project: LLM Chat
# Description: Logging setup using structlog and rotating file handlers with env-controlled level.

# Copyright (C) 2025 Tencent. All rights reserved.
# License: Licensed under the License Terms of Youtu-Tip (see license at repository root).
# Warranty: Provided on an "AS IS" basis, without warranties or conditions of any kind.
# Modifications must retain this notice.

from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

import structlog

from .config import LOG_DIR

_NOISY_LOGGERS = ('httpx', 'httpcore', 'openai')


def _resolve_log_level() -> int:
    level_name = os.environ.get('LLMCHAT_LOG_LEVEL', 'INFO').upper()
    return getattr(logging, level_name, logging.INFO)


def setup_logging(log_dir: Optional[Path] = None) -> None:
    target_dir = log_dir or LOG_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    log_level = _resolve_log_level()
    file_handler = TimedRotatingFileHandler(
        target_dir / 'llmchat.log',
        when='midnight',
        backupCount=7,
        encoding='utf-8',
    )
    stream_handler = logging.StreamHandler()
    file_handler.setLevel(log_level)
    stream_handler.setLevel(log_level)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[file_handler, stream_handler],
    )
    # Transport libraries log every request line at INFO, including endpoint URLs.
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt='iso'),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
