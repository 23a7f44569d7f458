"""
Listing endpoints that fall back to an empty result when the database is unreachable.
Writes never go through here; they fail with 500.
"""
from typing import Callable, TypeVar

import structlog
from sqlalchemy.exc import OperationalError


logger = structlog.get_logger(__name__)

T = TypeVar("T")


def read_or_default(read: Callable[[], T], default: T, name: str) -> T:
    try:
        return read()
    except OperationalError as e:
        logger.warning("storage_unavailable_read_degraded", read=name, error=str(e.orig))
        return default
