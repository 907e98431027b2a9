"""Registration, login and profile helpers for accounts."""
from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from bulk_stage.core import security
from bulk_stage.core.errors import ConflictError, NotFoundError
from bulk_stage.db.session import atomic
from bulk_stage.models import Account, Community, Membership, Post
from bulk_stage.schemas.account import AccountRegister, ProfileUpdate
from bulk_stage.services.media import StoredMedia

__all__ = [
    "authenticate",
    "get_account",
    "profile_counters",
    "register_account",
    "set_avatar",
    "update_profile",
]

logger = logging.getLogger(__name__)


def get_account(db: Session, account_id: int) -> Account:
    """Return an account by primary key.

    Raises:
        NotFoundError: If no such account exists.
    """
    account = db.get(Account, account_id)
    if account is None:
        raise NotFoundError("account", account_id)
    return account


def _ensure_unique(
    db: Session,
    *,
    email: str | None = None,
    handle: str | None = None,
    exclude_id: int | None = None,
) -> None:
    checks = []
    if email is not None:
        checks.append(("email", func.lower(Account.email) == email.lower()))
    if handle is not None:
        checks.append(("handle", func.lower(Account.handle) == handle.lower()))
    for field_name, clause in checks:
        stmt = select(Account.id).where(clause)
        if exclude_id is not None:
            stmt = stmt.where(Account.id != exclude_id)
        if db.scalars(stmt).first() is not None:
            raise ConflictError(f"The {field_name} is already in use")


def register_account(db: Session, data: AccountRegister) -> Account:
    """Persist a new account with a hashed password.

    Raises:
        ConflictError: If the email or handle is taken.
    """
    _ensure_unique(db, email=data.email, handle=data.handle)
    account = Account(
        email=data.email.lower(),
        handle=data.handle,
        display_name=data.display_name,
        password_hash=security.hash_password(data.password),
        kind=data.kind,
    )
    with atomic(
        db, operation="account registration", conflict="The email or handle is already in use"
    ):
        db.add(account)
    db.refresh(account)
    logger.info("Registered account %s (%s)", account.id, account.kind.value)
    return account


def authenticate(db: Session, identifier: str, password: str) -> Account | None:
    """Return the account matching ``identifier`` (email or handle) and password."""
    needle = identifier.strip().lower()
    account = db.scalars(
        select(Account).where(
            or_(func.lower(Account.email) == needle, func.lower(Account.handle) == needle)
        )
    ).first()
    if account is None or not security.verify_password(password, account.password_hash):
        return None
    return account


def update_profile(db: Session, account: Account, update_data: ProfileUpdate) -> Account:
    """Apply partial updates to the profile fields.

    Raises:
        ConflictError: If the new handle is taken.
    """
    update_dict = update_data.model_dump(exclude_unset=True)
    if update_dict.get("handle"):
        _ensure_unique(db, handle=update_dict["handle"], exclude_id=account.id)
    with atomic(db, operation="profile update", conflict="The handle is already in use"):
        for key, value in update_dict.items():
            if key in ("handle", "display_name") and value is None:
                continue
            setattr(account, key, value)
    db.refresh(account)
    return account


def set_avatar(db: Session, account: Account, stored: StoredMedia | None) -> str | None:
    """Point the avatar at ``stored`` (or clear it) and return the replaced reference.

    The caller removes the returned reference from the media store once this
    commit has succeeded.
    """
    previous = account.avatar_ref
    with atomic(db, operation="avatar update"):
        account.avatar_url = stored.url if stored else None
        account.avatar_ref = stored.reference if stored else None
    db.refresh(account)
    return previous if previous != account.avatar_ref else None


def profile_counters(db: Session, account_id: int) -> dict[str, int]:
    """Counts shown on a public profile."""
    created = db.scalar(
        select(func.count(Community.id)).where(Community.creator_id == account_id)
    )
    memberships = db.scalar(
        select(func.count(Membership.id)).where(Membership.account_id == account_id)
    )
    posts = db.scalar(select(func.count(Post.id)).where(Post.author_id == account_id))
    return {
        "created_communities": created or 0,
        "memberships": memberships or 0,
        "posts": posts or 0,
    }
