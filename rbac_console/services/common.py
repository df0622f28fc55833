"""Helpers shared by the admin services: error handling, id parsing, paging."""

import logging
import math
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rbac_console.core.config import settings
from rbac_console.core.exceptions import RBACConsoleError, ValidationError

logger = logging.getLogger("rbac_console")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_uuid(value: Optional[str]) -> Optional[str]:
    """Return the canonical string form of ``value`` or None if it is not a UUID."""
    if value is None:
        return None
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return None


class ErrorCollector:
    """Accumulates violated rules so a request fails with all of them at once."""

    def __init__(self):
        self.errors: List[str] = []

    def add(self, message: str) -> None:
        self.errors.append(message)

    def check(self, condition: bool, message: str) -> bool:
        if not condition:
            self.errors.append(message)
        return condition

    def __bool__(self) -> bool:
        return bool(self.errors)

    def raise_if_any(self, message: str = "Validation failed") -> None:
        if self.errors:
            raise ValidationError(self.errors, message)


@contextmanager
def handler_context(db: Session, operation: str, entity_id: Optional[object] = None) -> Iterator[None]:
    """Log failures of a service operation with its context and re-raise them.

    Domain errors are logged as warnings. Any other failure rolls the
    session back and is logged with its traceback.
    """
    try:
        yield
    except RBACConsoleError as e:
        logger.warning("%s failed for %s: %s %s", operation, entity_id, e.message, e.errors)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("%s failed for %s with a database error", operation, entity_id)
        raise
    except Exception:
        db.rollback()
        logger.exception("%s failed for %s with an unexpected error", operation, entity_id)
        raise


def clamp_page(page: int, page_size: Optional[int]) -> tuple:
    page = max(page, 1)
    page_size = page_size or settings.DEFAULT_PAGE_SIZE
    page_size = min(max(page_size, 1), settings.MAX_PAGE_SIZE)
    return page, page_size


def page_info(total: int, page: int, page_size: int) -> dict:
    total_pages = math.ceil(total / page_size) if page_size else 0
    return {
        "total_count": total,
        "page_number": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next_page": page < total_pages,
        "has_previous_page": page > 1,
    }
