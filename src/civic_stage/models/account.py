# src/civic_stage/models/account.py
"""SQLAlchemy model for accounts held by the local identity provider."""

from sqlalchemy import BigInteger, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from civic_stage.db.session import Base


class Account(Base):
    """Email/password credential record.

    Profiles live in the document store; this table only holds what the
    identity provider needs to authenticate a person.
    """

    __tablename__ = "account"

    uid: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    # PBKDF2-HMAC-SHA256 digest and its per-account salt, both hex encoded.
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    password_salt: Mapped[str] = mapped_column(String(64), nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
