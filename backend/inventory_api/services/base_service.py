"""
Base Service Class.

Architecture:
    Router (thin) -> Service (business logic) -> Repository (data access) -> Model

Services own the transaction: a public operation runs inside ``atomic()``,
which commits on success and rolls back on any error.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from inventory_shared.config.logging import get_logger
from inventory_shared.infrastructure.correlation import get_request_id
from inventory_shared.infrastructure.db import safe_commit
from inventory_shared.utils.exceptions import InternalError

logger = get_logger(__name__)


class BaseService:
    """Common infrastructure for domain services."""

    def __init__(self, db: Session):
        self._db = db

    @property
    def db(self) -> Session:
        """Database session."""
        return self._db

    @contextmanager
    def atomic(self, operation: str, **log_context: Any) -> Generator[None, None, None]:
        """
        Run a block as one transaction.

        HTTP errors raised inside the block roll back and propagate unchanged.
        Anything else rolls back and surfaces as a generic InternalError that
        carries the request id; the original error is only logged.
        """
        try:
            yield
            safe_commit(self._db)
        except HTTPException:
            self._db.rollback()
            raise
        except Exception as exc:
            self._db.rollback()
            request_id = get_request_id() or None
            logger.error(
                f"Failed to {operation}",
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
                **log_context,
            )
            raise InternalError(f"Failed to {operation}", request_id=request_id, **log_context) from exc
