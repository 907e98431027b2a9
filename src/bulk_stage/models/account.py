# src/bulk_stage/models/account.py
"""SQLAlchemy models for accounts and their premium unlocks."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from bulk_stage.db.session import Base
from bulk_stage.db.time import created_at_column


class AccountKind(str, enum.Enum):
    """Global account tier.

    ``ELEVATED`` accounts may publish premium content anywhere they can post and
    may open the creator dashboard. Older clients call these tiers ``OG`` and
    ``CREW``; see :data:`LEGACY_KIND_LABELS`.
    """

    ELEVATED = "elevated"
    STANDARD = "standard"

    @classmethod
    def from_label(cls, label: str) -> AccountKind:
        """Accept either the stable value or a legacy label."""
        normalized = label.strip()
        legacy = LEGACY_LABEL_TO_KIND.get(normalized.upper())
        if legacy is not None:
            return legacy
        return cls(normalized.lower())

    @property
    def legacy_label(self) -> str:
        """Return the label older clients expect."""
        return LEGACY_KIND_LABELS[self]


LEGACY_KIND_LABELS: dict[AccountKind, str] = {
    AccountKind.ELEVATED: "OG",
    AccountKind.STANDARD: "CREW",
}
LEGACY_LABEL_TO_KIND: dict[str, AccountKind] = {
    label: kind for kind, label in LEGACY_KIND_LABELS.items()
}


class Account(Base):
    """Registered identity with a global kind and public profile fields."""

    __tablename__ = "account"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    handle: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[AccountKind] = mapped_column(
        Enum(AccountKind, name="account_kind", native_enum=False),
        nullable=False,
        default=AccountKind.STANDARD,
    )
    # Public URL plus the media store reference used to delete it later.
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = created_at_column()


class PremiumUnlock(Base):
    """Marks that an account has unlocked premium content in a community."""

    __tablename__ = "premium_unlock"

    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    community_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("community.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = created_at_column()
