"""
Domain models - Core business entities
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional


class PostKind(str, Enum):
    """Post kind enumeration"""
    THREAD = "THREAD"  # short-form
    DEEP = "DEEP"  # long-form with title


class MediaType(str, Enum):
    """Media type enumeration"""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"

    @classmethod
    def infer(cls, declared: Optional[str], url: str = "") -> "MediaType":
        """
        Infer the media kind from a caller-supplied type

        Accepts plain kinds ("image"), upper-case kinds ("VIDEO") and MIME
        types ("audio/mpeg"). Falls back to the URL extension, then to image.
        """
        if declared:
            major = declared.strip().lower().split("/", 1)[0]
            for member in cls:
                if member.value == major:
                    return member

        extension = url.rsplit(".", 1)[-1].lower() if "." in url else ""
        if extension in _VIDEO_EXTENSIONS:
            return cls.VIDEO
        if extension in _AUDIO_EXTENSIONS:
            return cls.AUDIO
        return cls.IMAGE


_VIDEO_EXTENSIONS = {"mp4", "mov", "webm", "m4v", "avi"}
_AUDIO_EXTENSIONS = {"mp3", "wav", "m4a", "ogg", "aac"}


@dataclass
class AuthorSummary:
    """Public author fields embedded in a post"""
    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    is_practitioner: bool = False


@dataclass
class MediaAsset:
    """Media attached to a post"""
    id: str
    post_id: str
    media_type: MediaType
    url: str
    position: int = 0


@dataclass
class Post:
    """Post domain model"""
    id: str
    author_id: str
    text: str
    kind: PostKind
    created_at: datetime
    title: Optional[str] = None
    group_id: Optional[str] = None
    like_count: int = 0
    comment_count: int = 0
    updated_at: Optional[datetime] = None
    author: Optional[AuthorSummary] = None
    media: List[MediaAsset] = field(default_factory=list)
    hashtags: List[str] = field(default_factory=list)

    @property
    def score(self) -> float:
        """Timeline score: creation instant in epoch microseconds"""
        return timeline_score(self.created_at)


@dataclass
class NewMedia:
    """Media reference supplied with a post submission"""
    url: str
    media_type: MediaType


@dataclass
class FanOutResult:
    """Outcome of one fan-out"""
    post_id: str
    recipients: int
    written: int


@dataclass
class FeedPage:
    """One page of a user's timeline"""
    posts: List[Post]
    has_more: bool
    liked_post_ids: List[str] = field(default_factory=list)


@dataclass
class TrendingTag:
    """Hashtag with its cumulative score"""
    tag: str
    score: float


@dataclass
class Comment:
    """Comment on a post, optionally replying to another comment"""
    id: str
    post_id: str
    author_id: str
    text: str
    created_at: datetime
    parent_id: Optional[str] = None
    author: Optional[AuthorSummary] = None


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def timeline_score(created_at: datetime) -> float:
    """
    Epoch microseconds used as the sorted-set score

    Matches the precision of TIMESTAMPTZ and stays below 2**53, so the float
    is exact and distinct instants never tie.
    """
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return float((created_at - _EPOCH) // timedelta(microseconds=1))
