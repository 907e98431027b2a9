# src/bulk_stage/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .comments import router as comments_router
from .communities import router as communities_router
from .posts import router as posts_router
from .search import router as search_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "comments_router",
    "communities_router",
    "posts_router",
    "search_router",
    "users_router",
]
