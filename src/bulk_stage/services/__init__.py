# src/bulk_stage/services/__init__.py
"""Business logic services for the Bulk Stage application."""

from .authorization import Action, TargetContext, authorize
from .communities import CommunityService
from .content import ContentService
from .identity import IdentityContext, IdentityContextResolver
from .membership import Transition, apply_membership_transition, evaluate_transition
from .premium import PremiumLedger
from .visibility import ViewMode, resolve_visibility

__all__ = [
    "Action",
    "TargetContext",
    "authorize",
    "CommunityService",
    "ContentService",
    "IdentityContext",
    "IdentityContextResolver",
    "Transition",
    "apply_membership_transition",
    "evaluate_transition",
    "PremiumLedger",
    "ViewMode",
    "resolve_visibility",
]
