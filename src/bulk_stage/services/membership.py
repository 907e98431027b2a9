# src/bulk_stage/services/membership.py
"""Membership and role state machine.

Per (account, community) the states are ``NON_MEMBER``, ``MEMBER``, ``MODERATOR``
and ``CREATOR``. ``CREATOR`` is assigned only when the community is created and no
transition moves a membership into or out of it.

:func:`evaluate_transition` is pure: it looks at the actor context and the
target's current membership and says what the new state would be.
:func:`apply_membership_transition` re-resolves both inside the write transaction
and persists the result.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from bulk_stage.core.errors import UpstreamFailure
from bulk_stage.models import Membership, MembershipRole
from bulk_stage.services.decisions import (
    Conflict,
    Deny,
    Ok,
    forbidden,
    not_found,
    unauthorized,
)
from bulk_stage.services.identity import (
    IdentityContext,
    IdentityContextResolver,
    MembershipFacts,
)

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = frozenset({MembershipRole.MEMBER, MembershipRole.MODERATOR})


class TransitionKind(str, enum.Enum):
    JOIN = "join"
    LEAVE = "leave"
    SET_ROLE = "set_role"
    REMOVE = "remove"
    SET_PREMIUM_PUBLISH = "set_premium_publish"


@dataclass(frozen=True)
class Transition:
    """A requested membership change."""

    kind: TransitionKind
    role: MembershipRole | None = None
    flag: bool | None = None

    @property
    def self_service(self) -> bool:
        """Join and leave always act on the requester's own membership."""
        return self.kind in (TransitionKind.JOIN, TransitionKind.LEAVE)

    @classmethod
    def join(cls) -> Transition:
        return cls(TransitionKind.JOIN)

    @classmethod
    def leave(cls) -> Transition:
        return cls(TransitionKind.LEAVE)

    @classmethod
    def set_role(cls, role: MembershipRole) -> Transition:
        return cls(TransitionKind.SET_ROLE, role=role)

    @classmethod
    def remove(cls) -> Transition:
        return cls(TransitionKind.REMOVE)

    @classmethod
    def set_premium_publish(cls, flag: bool) -> Transition:
        return cls(TransitionKind.SET_PREMIUM_PUBLISH, flag=flag)


@dataclass(frozen=True)
class MembershipState:
    """State of one (account, community) pair; ``role is None`` means non-member."""

    account_id: int
    community_id: int
    role: MembershipRole | None
    can_publish_premium: bool = False

    @property
    def is_member(self) -> bool:
        return self.role is not None


TransitionResult = Ok | Deny | Conflict


def evaluate_transition(
    transition: Transition,
    actor: IdentityContext,
    target_account_id: int,
    target: MembershipFacts | None,
) -> TransitionResult:
    """Decide the outcome of ``transition`` without touching the database.

    Args:
        transition: Requested change.
        actor: Requester context for the community.
        target_account_id: Account whose membership changes. Equals the actor for
            join and leave.
        target: The target's current membership, or ``None`` for non-members.

    Returns:
        ``Ok`` with the resulting :class:`MembershipState` (``changed=False`` for
        no-ops), ``Conflict`` when joining is redundant, or ``Deny``.
    """
    if not actor.authenticated:
        return unauthorized()
    community_id = actor.community_id
    if community_id is None:
        raise ValueError("membership transitions need a community-scoped context")

    def state(role: MembershipRole | None, flag: bool = False) -> MembershipState:
        return MembershipState(target_account_id, community_id, role, flag)

    kind = transition.kind
    if transition.self_service and target_account_id != actor.account_id:
        return forbidden("Accounts can only join or leave on their own behalf")

    if kind is TransitionKind.JOIN:
        if actor.is_community_creator:
            return Conflict("The creator is already part of this community")
        if target is not None:
            return Conflict("Already a member of this community")
        return Ok(state(MembershipRole.MEMBER))

    if kind is TransitionKind.LEAVE:
        if actor.is_community_creator or (
            target is not None and target.role is MembershipRole.CREATOR
        ):
            return forbidden("The creator cannot leave; delete the community instead")
        if target is None:
            return not_found("Not a member of this community")
        return Ok(state(None))

    # Remaining transitions are creator-only and act on somebody else.
    if not actor.is_community_creator:
        return forbidden("Only the community creator can manage members")
    if target_account_id == actor.account_id:
        return forbidden("The creator cannot change their own membership")
    if target is None:
        return not_found("Target account is not a member of this community")
    if target.role is MembershipRole.CREATOR:
        return forbidden("The creator membership cannot be changed")

    if kind is TransitionKind.SET_ROLE:
        new_role = transition.role
        if new_role not in ASSIGNABLE_ROLES:
            return forbidden("Only the member and moderator roles can be assigned")
        if new_role is target.role:
            return Ok(state(target.role, target.can_publish_premium), changed=False)
        # Demotion drops the premium publishing permission.
        keep_flag = new_role is MembershipRole.MODERATOR and target.can_publish_premium
        return Ok(state(new_role, keep_flag))

    if kind is TransitionKind.REMOVE:
        return Ok(state(None))

    if kind is TransitionKind.SET_PREMIUM_PUBLISH:
        if target.role is not MembershipRole.MODERATOR:
            return forbidden("Premium publishing can only be granted to moderators")
        flag = bool(transition.flag)
        if flag == target.can_publish_premium:
            return Ok(state(target.role, flag), changed=False)
        return Ok(state(target.role, flag))

    raise ValueError(f"unknown transition {kind!r}")


def _facts(row: Membership | None) -> MembershipFacts | None:
    if row is None:
        return None
    return MembershipFacts(role=row.role, can_publish_premium=row.can_publish_premium)


def load_membership(
    db: Session,
    account_id: int,
    community_id: int,
    *,
    lock: bool = False,
) -> Membership | None:
    """Return the membership row for the pair, if any."""
    stmt = select(Membership).where(
        Membership.account_id == account_id,
        Membership.community_id == community_id,
    )
    if lock:
        stmt = stmt.with_for_update()
    return db.scalars(stmt).first()


def _persist(db: Session, row: Membership | None, new_state: MembershipState) -> None:
    if new_state.role is None:
        if row is not None:
            db.delete(row)
    elif row is None:
        db.add(
            Membership(
                account_id=new_state.account_id,
                community_id=new_state.community_id,
                role=new_state.role,
                can_publish_premium=new_state.can_publish_premium,
            )
        )
    else:
        row.role = new_state.role
        row.can_publish_premium = new_state.can_publish_premium
    db.flush()


def apply_membership_transition(
    db: Session,
    transition: Transition,
    actor: IdentityContext,
    target_account_id: int | None = None,
) -> TransitionResult:
    """Check and apply ``transition`` in one transaction.

    The actor context and the target row are re-read (and locked where the
    backend supports it) inside the transaction that writes, so a role change
    racing with this call cannot slip between check and write. A duplicate join
    that loses the uniqueness race is reported as ``Conflict``.

    Args:
        db: Session for the write transaction.
        transition: Requested change.
        actor: Requester context; only its account and community ids are reused.
        target_account_id: Account to act on. Ignored for join and leave.

    Returns:
        The decision, with the persisted state on success.

    Raises:
        NotFoundError: If the community no longer exists.
        UpstreamFailure: If the database rejects the write.
    """
    if actor.community_id is None:
        raise ValueError("membership transitions need a community-scoped context")
    _, fresh = IdentityContextResolver(db, lock=True).for_community(
        actor.account_id, actor.community_id
    )
    if not fresh.authenticated:
        return unauthorized()

    target_id = fresh.account_id if transition.self_service else target_account_id
    if target_id is None:
        raise ValueError(f"{transition.kind.value} needs a target account")
    row = load_membership(db, target_id, actor.community_id, lock=True)

    decision = evaluate_transition(transition, fresh, target_id, _facts(row))
    if not isinstance(decision, Ok) or not decision.changed:
        return decision

    try:
        _persist(db, row, decision.state)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if transition.kind is TransitionKind.JOIN:
            logger.info(
                "Concurrent join for account %s in community %s lost the race",
                target_id,
                actor.community_id,
            )
            return Conflict("Already a member of this community")
        raise UpstreamFailure(f"membership {transition.kind.value} failed") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Membership %s failed", transition.kind.value, exc_info=True)
        raise UpstreamFailure(f"membership {transition.kind.value} failed") from exc

    logger.info(
        "Membership %s: account=%s community=%s role=%s",
        transition.kind.value,
        target_id,
        actor.community_id,
        decision.state.role.value if decision.state.role else None,
    )
    return decision
