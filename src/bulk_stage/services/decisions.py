"""Typed results returned by the authorization, visibility and membership engines.

Decisions are values, not exceptions. The API layer turns a :class:`Deny` or a
:class:`Conflict` into the matching HTTP status.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class DenyReason(str, enum.Enum):
    """Why a request was refused."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class Allow:
    """The actor may proceed."""

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Deny:
    """The actor may not proceed."""

    reason: DenyReason
    detail: str = ""

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class Conflict:
    """The requested state already holds (e.g. already a member)."""

    detail: str = ""

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class Ok:
    """A transition succeeded; ``changed`` is False for no-op transitions."""

    state: Any = None
    changed: bool = True

    def __bool__(self) -> bool:
        return True


ALLOW = Allow()


def not_found(detail: str) -> Deny:
    return Deny(DenyReason.NOT_FOUND, detail)


def forbidden(detail: str) -> Deny:
    return Deny(DenyReason.FORBIDDEN, detail)


def unauthorized(detail: str = "Authentication required") -> Deny:
    return Deny(DenyReason.UNAUTHORIZED, detail)
