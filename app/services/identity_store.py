"""
Persist wallet identities: the current nonce and the active session signature.

table: identities
columns:
    address: str (checksummed, primary key)
    nonce: str (current single-use nonce)
    session_signature: str (optional, signature accepted at last login)
    last_authenticated_at: datetime (optional)
    created_at: datetime
    updated_at: datetime

The store is built per request around an injected SQLAlchemy session.
`rotate()` is the only code path that changes `nonce` or `session_signature`.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import IdentityStoreError, NotRegisteredError, StoreErrorKind
from app.core.wallet_auth import NONCE_NUM_BYTES, generate_nonce
from app.models.auth import Identity

logger = logging.getLogger(__name__)


class IdentityStore:
    """SQL-backed session store keyed by checksummed wallet address."""

    def __init__(self, db: Session, nonce_num_bytes: int = NONCE_NUM_BYTES):
        self.db = db
        self.nonce_num_bytes = nonce_num_bytes

    def get(self, address: str) -> Optional[Identity]:
        """Return the identity for an already-normalized address, or None."""
        try:
            return self.db.execute(
                select(Identity).where(Identity.address == address)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._unavailable(e) from e

    def get_or_create(self, address: str) -> Identity:
        """
        Return the identity for `address`, creating it with a fresh nonce on
        first sight. An existing nonce is never touched here.

        Two concurrent first requests race on the primary key; the loser
        rolls back and reads the winner's row so both see the same nonce.
        """
        identity = self.get(address)
        if identity is not None:
            return identity

        identity = Identity(address=address, nonce=generate_nonce(self.nonce_num_bytes))
        try:
            self.db.add(identity)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            existing = self.get(address)
            if existing is None:
                raise IdentityStoreError(
                    StoreErrorKind.DUPLICATE, "Identity could not be created."
                ) from e
            return existing
        except SQLAlchemyError as e:
            self.db.rollback()
            raise self._unavailable(e) from e

        self.db.refresh(identity)
        logger.info("new identity registered: %s", address)
        return identity

    def rotate(self, address: str, new_signature: str) -> Identity:
        """
        Record a successful login: fresh nonce, new session signature and
        login timestamp, written as one single-row UPDATE.

        Concurrent rotations for the same address are last-write-wins.

        Raises:
            NotRegisteredError: If no identity exists for the address
        """
        current = self.get(address)
        if current is None:
            raise NotRegisteredError()

        nonce = generate_nonce(self.nonce_num_bytes)
        while nonce == current.nonce:
            nonce = generate_nonce(self.nonce_num_bytes)

        stmt = (
            update(Identity)
            .where(Identity.address == address)
            .values(
                nonce=nonce,
                session_signature=new_signature,
                last_authenticated_at=datetime.now(timezone.utc),
            )
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise self._unavailable(e) from e

        if result.rowcount == 0:
            raise NotRegisteredError()

        rotated = self.get(address)
        if rotated is None:
            raise NotRegisteredError()
        return rotated

    @staticmethod
    def _unavailable(error: SQLAlchemyError) -> IdentityStoreError:
        logger.error("identity store failure: %s", error)
        return IdentityStoreError(
            StoreErrorKind.UNAVAILABLE, "Identity store is temporarily unavailable."
        )
