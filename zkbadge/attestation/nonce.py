"""
Single-use session nonces.

Values are random field elements, never zero, unique across all scopes.
``consume`` deletes the record inside the caller's transaction; the DELETE
row count decides the winner when several transactions race for one value.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import FIELD_MODULUS, NONCE_RANDOM_BYTES, NONCE_SCOPES
from .store import NonceRecord, Store, utcnow

logger = logging.getLogger(__name__)

MAX_ISSUE_ATTEMPTS = 8


def random_field_element() -> int:
    """Uniform-ish non-zero field element from 256 random bits."""
    while True:
        value = int.from_bytes(secrets.token_bytes(NONCE_RANDOM_BYTES), "big") % FIELD_MODULUS
        if value != 0:
            return value


def _check_scope(scope: str) -> None:
    if scope not in NONCE_SCOPES:
        raise ValueError(
            f"Invalid nonce scope: {scope!r}. Valid options: {', '.join(sorted(NONCE_SCOPES))}"
        )


class NonceLedger:
    def __init__(self, store: Store) -> None:
        self._store = store

    def issue(self, scope: str) -> int:
        """
        Issue a fresh nonce for ``scope``.

        Raises:
            ValueError: Unknown scope
            RuntimeError: Repeated value collisions
        """
        _check_scope(scope)
        for _ in range(MAX_ISSUE_ATTEMPTS):
            value = random_field_element()
            try:
                with self._store.session() as session:
                    session.add(NonceRecord(value=str(value), scope=scope, issued_at=utcnow()))
            except IntegrityError:
                logger.warning("Nonce collision in scope %s, redrawing", scope)
                continue
            logger.debug("Issued %s nonce", scope)
            return value
        raise RuntimeError("unable to issue a unique nonce")

    @staticmethod
    def consume(session: Session, scope: str, value: int) -> bool:
        """
        Delete ``(scope, value)`` within ``session``'s transaction.

        Returns:
            True if the nonce existed in this scope
        """
        _check_scope(scope)
        result = session.execute(
            delete(NonceRecord).where(
                NonceRecord.value == str(value),
                NonceRecord.scope == scope,
            )
        )
        return result.rowcount == 1

    def peek(self, scope: str, value: int) -> bool:
        _check_scope(scope)
        with self._store.session() as session:
            record: Optional[NonceRecord] = session.scalars(
                select(NonceRecord).where(NonceRecord.value == str(value))
            ).first()
            return record is not None and record.scope == scope
