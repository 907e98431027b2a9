"""SQLAlchemy models for communities and their memberships."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from bulk_stage.db.session import Base
from bulk_stage.db.time import created_at_column


class MembershipRole(str, enum.Enum):
    """Role an account holds inside one community."""

    CREATOR = "creator"
    MODERATOR = "moderator"
    MEMBER = "member"


class Community(Base):
    """Named content space owned by exactly one creator."""

    __tablename__ = "community"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    primary_language: Mapped[str | None] = mapped_column(Text, nullable=True)
    secondary_language: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Permanent attribute; never reassigned after creation.
    creator_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("account.id"),
        nullable=False,
        index=True,
    )
    logo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    banner_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    banner_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = created_at_column()


class Membership(Base):
    """Relation of an account to a community with its role."""

    __tablename__ = "membership"
    __table_args__ = (
        UniqueConstraint("account_id", "community_id", name="uq_membership_account_community"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("account.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    community_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("community.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[MembershipRole] = mapped_column(
        Enum(MembershipRole, name="membership_role", native_enum=False),
        nullable=False,
        default=MembershipRole.MEMBER,
    )
    # Only honoured while role == MODERATOR.
    can_publish_premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    joined_at: Mapped[datetime] = created_at_column()
