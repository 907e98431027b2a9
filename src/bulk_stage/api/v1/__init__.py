# src/bulk_stage/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    auth_router,
    comments_router,
    communities_router,
    posts_router,
    search_router,
    users_router,
)

__all__ = [
    "auth_router",
    "comments_router",
    "communities_router",
    "posts_router",
    "search_router",
    "users_router",
]
