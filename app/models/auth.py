from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from app.db.base import Base


class Identity(Base):
    """One wallet identity per checksummed address.

    Example:
    {
        "address": "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
        "nonce": "9f2c...64 hex chars",
        "session_signature": "0x3c1f...",
        "last_authenticated_at": "2024-01-01T12:00:00",
        "created_at": "2024-01-01T11:59:30",
        "updated_at": "2024-01-01T12:00:00"
    }
    """

    __tablename__ = "identities"

    address = Column(String(42), primary_key=True)
    nonce = Column(String(128), nullable=False)
    session_signature = Column(Text, nullable=True)  # null until first login
    last_authenticated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
