"""Retry helpers for store access."""

from __future__ import annotations

import functools
import logging
import os
import random
import time
from collections.abc import Callable

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

RETRY_EXCEPTIONS = (OperationalError,)
RETRY_ATTEMPTS = int(os.environ.get("STORE_RETRY_ATTEMPTS", 3))
RETRY_BASE_DELAY = float(os.environ.get("STORE_RETRY_DELAY", 0.5))


def retry(func: Callable):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        delay = RETRY_BASE_DELAY
        for attempt in range(RETRY_ATTEMPTS):
            try:
                return func(*args, **kwargs)
            except RETRY_EXCEPTIONS as exc:
                if attempt == RETRY_ATTEMPTS - 1:
                    raise
                logger.info("Retrying %s after %s", func.__name__, exc.__class__.__name__)
                time.sleep(delay + random.random() * delay)
                delay *= 2
    return wrapper
