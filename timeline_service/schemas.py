"""
Pydantic schemas for Timeline Service
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from .domain.models import AuthorSummary, Comment, MediaAsset, Post, PostKind, TrendingTag


# User schema (resolved from the auth token)
class User(BaseModel):
    """Authenticated caller"""
    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    is_practitioner: bool = False


# Post request schemas
class MediaInput(BaseModel):
    """Media reference attached to a new post"""
    url: str = Field(..., min_length=1, max_length=2048)
    type: Optional[str] = Field(None, description="image | video | audio, or a MIME type")


class PostCreate(BaseModel):
    """Post creation request"""
    text: Optional[str] = Field(None, max_length=10000)
    kind: PostKind = PostKind.THREAD
    title: Optional[str] = Field(None, max_length=300)
    media: List[MediaInput] = Field(default_factory=list, max_length=10)
    group_id: Optional[str] = None
    # Single-URL fields sent by the web client
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    audio_url: Optional[str] = None

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    def all_media(self) -> List[MediaInput]:
        """Explicit media followed by the single-URL fields"""
        items = list(self.media)
        for url, media_type in (
            (self.image_url, "image"),
            (self.video_url, "video"),
            (self.audio_url, "audio"),
        ):
            if url:
                items.append(MediaInput(url=url, type=media_type))
        return items


# Post response schemas
class AuthorResponse(BaseModel):
    """Author summary"""
    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    is_practitioner: bool = False

    @classmethod
    def from_model(cls, author: AuthorSummary) -> "AuthorResponse":
        return cls(
            id=author.id,
            name=author.name,
            username=author.username,
            avatar_url=author.avatar_url,
            is_practitioner=author.is_practitioner,
        )


class MediaAssetResponse(BaseModel):
    """Media attached to a post"""
    id: str
    type: str
    url: str
    position: int

    @classmethod
    def from_model(cls, asset: MediaAsset) -> "MediaAssetResponse":
        return cls(
            id=asset.id,
            type=asset.media_type.value,
            url=asset.url,
            position=asset.position,
        )


class PostResponse(BaseModel):
    """Fully hydrated post"""
    id: str
    author: Optional[AuthorResponse] = None
    text: str
    kind: PostKind
    title: Optional[str] = None
    group_id: Optional[str] = None
    media: List[MediaAssetResponse] = []
    hashtags: List[str] = []
    like_count: int = 0
    comment_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None
    liked_by_current_user: bool = False

    @classmethod
    def from_model(cls, post: Post, liked: bool = False) -> "PostResponse":
        return cls(
            id=post.id,
            author=AuthorResponse.from_model(post.author) if post.author else None,
            text=post.text,
            kind=post.kind,
            title=post.title,
            group_id=post.group_id,
            media=[MediaAssetResponse.from_model(m) for m in post.media],
            hashtags=post.hashtags,
            like_count=post.like_count,
            comment_count=post.comment_count,
            created_at=post.created_at,
            updated_at=post.updated_at,
            liked_by_current_user=liked,
        )


class PostCreatedResponse(BaseModel):
    """Post creation response"""
    post: PostResponse


class FeedResponse(BaseModel):
    """One feed page"""
    posts: List[PostResponse]
    has_more: bool
    page: int
    page_size: int


class FeedRefreshResponse(BaseModel):
    """Timeline rebuild result"""
    message: str
    total_items: int


# Trending
class TrendingTagResponse(BaseModel):
    """Hashtag with cumulative score"""
    tag: str
    score: float

    @classmethod
    def from_model(cls, tag: TrendingTag) -> "TrendingTagResponse":
        return cls(tag=tag.tag, score=tag.score)


class TrendingResponse(BaseModel):
    """Trending hashtags"""
    tags: List[TrendingTagResponse]


# Social
class FollowToggleResponse(BaseModel):
    """Follow toggle result"""
    is_following: bool
    follower_count: int


class LikeToggleResponse(BaseModel):
    """Like toggle result"""
    post_id: str
    liked: bool
    like_count: int


# Comments
class CommentCreate(BaseModel):
    """Comment creation request"""
    text: Optional[str] = Field(None, max_length=5000)
    parent_id: Optional[str] = None


class CommentResponse(BaseModel):
    """Comment with its author"""
    id: str
    post_id: str
    author: Optional[AuthorResponse] = None
    text: str
    parent_id: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_model(cls, comment: Comment) -> "CommentResponse":
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            author=AuthorResponse.from_model(comment.author) if comment.author else None,
            text=comment.text,
            parent_id=comment.parent_id,
            created_at=comment.created_at,
        )


class CommentCreatedResponse(BaseModel):
    """Comment creation response"""
    comment: CommentResponse
    comment_count: int
