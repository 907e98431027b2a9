# src/bulk_stage/schemas/post.py
"""Post, comment and reaction schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PostCreate(BaseModel):
    """Schema for creating a new post."""

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=20000)
    premium: bool = Field(False, description="Restrict the body to premium subscribers")


class PostUpdate(BaseModel):
    """Title and content are the only editable fields."""

    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1, max_length=20000)


class PostResponse(BaseModel):
    """Schema for post information returned by the API.

    When ``redacted`` is true the requester lacks premium access and ``content``
    holds the placeholder text.
    """

    id: int
    community_id: int
    author_id: int
    title: str
    content: str
    premium: bool
    redacted: bool = False
    image_url: str | None = None
    like_count: int = 0
    comment_count: int = 0
    viewer_has_liked: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommentCreate(BaseModel):
    """Schema for creating a comment."""

    content: str = Field(..., min_length=1, max_length=5000)


class CommentUpdate(BaseModel):
    """Schema for editing a comment."""

    content: str = Field(..., min_length=1, max_length=5000)


class CommentResponse(BaseModel):
    """Schema for comment information returned by the API."""

    id: int
    post_id: int
    author_id: int
    content: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReactionResponse(BaseModel):
    """State of the requester's like after a toggle."""

    post_id: int
    reacted: bool
    like_count: int
