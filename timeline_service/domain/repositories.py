"""
Repository interfaces - Define contracts for the external collaborators
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import AuthorSummary, Comment, NewMedia, Post, PostKind


class IPostRepository(ABC):
    """Persisted-post store"""

    @abstractmethod
    async def create_post(
        self,
        author_id: str,
        text: str,
        kind: PostKind,
        title: Optional[str],
        group_id: Optional[str],
        media: Sequence[NewMedia],
        hashtags: Sequence[str] = (),
    ) -> Post:
        """Create a post and its media rows in one transaction"""
        pass

    @abstractmethod
    async def find_by_ids(self, post_ids: Sequence[str]) -> List[Post]:
        """Find posts (with author and media) by ID; order is not guaranteed"""
        pass

    @abstractmethod
    async def find_recent_by_authors(
        self, author_ids: Sequence[str], limit: int
    ) -> List[Tuple[str, datetime]]:
        """Find (post_id, created_at) of the newest posts by any of the authors"""
        pass

    @abstractmethod
    async def exists(self, post_id: str) -> bool:
        """Check whether a post exists"""
        pass

    @abstractmethod
    async def increment_like_count(self, post_id: str, delta: int = 1) -> int:
        """Adjust the like counter and return the new value"""
        pass

    @abstractmethod
    async def increment_comment_count(self, post_id: str, delta: int = 1) -> int:
        """Adjust the comment counter and return the new value"""
        pass


class IFollowRepository(ABC):
    """Follower-graph store"""

    @abstractmethod
    async def find_follower_ids(self, user_id: str) -> List[str]:
        """IDs of users following user_id"""
        pass

    @abstractmethod
    async def find_following_ids(self, user_id: str) -> List[str]:
        """IDs of users that user_id follows"""
        pass

    @abstractmethod
    async def toggle(self, follower_id: str, followed_id: str) -> bool:
        """Create the edge if missing, delete it otherwise; return new state"""
        pass

    @abstractmethod
    async def count_followers(self, user_id: str) -> int:
        """Number of followers of user_id"""
        pass


class ILikeRepository(ABC):
    """Like-edge store"""

    @abstractmethod
    async def find_liked_post_ids(
        self, user_id: str, post_ids: Sequence[str]
    ) -> List[str]:
        """Subset of post_ids liked by user_id"""
        pass

    @abstractmethod
    async def toggle(self, user_id: str, post_id: str) -> Tuple[bool, int]:
        """
        Create the like if missing, delete it otherwise

        The edge write and the post's like_count change commit together.
        Returns (liked, like_count).
        """
        pass


class ICommentRepository(ABC):
    """Comment store"""

    @abstractmethod
    async def find_by_id(self, comment_id: str) -> Optional[Comment]:
        """Find a comment by ID"""
        pass

    @abstractmethod
    async def create_comment(
        self,
        post_id: str,
        author_id: str,
        text: str,
        parent_id: Optional[str] = None,
    ) -> Tuple[Comment, int]:
        """
        Create a comment and increment the post's comment_count together

        Returns (comment, comment_count).
        """
        pass


class IUserRepository(ABC):
    """Read-only user lookup used by the auth context"""

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[AuthorSummary]:
        """Find a user's public summary by ID"""
        pass


class IOrderedSetStore(ABC):
    """Ordered reference store (sorted sets keyed by string)"""

    @abstractmethod
    async def zadd_batch(
        self,
        entries: Sequence[Tuple[str, float, str]],
        trim_to: int = 0,
    ) -> int:
        """
        Insert (key, score, member) entries in one pipelined round trip

        When trim_to > 0 every touched key keeps only its trim_to highest
        scores. Returns the number of entries written.
        """
        pass

    @abstractmethod
    async def zrevrange(self, key: str, start: int, end: int) -> List[str]:
        """Members by descending score, inclusive rank range"""
        pass

    @abstractmethod
    async def zrevrange_with_scores(
        self, key: str, start: int, end: int
    ) -> List[Tuple[str, float]]:
        """(member, score) pairs by descending score, inclusive rank range"""
        pass

    @abstractmethod
    async def zcard(self, key: str) -> int:
        """Cardinality of the set"""
        pass

    @abstractmethod
    async def zincrby(self, key: str, amount: float, member: str) -> float:
        """Increment a member's score and return the new score"""
        pass

    @abstractmethod
    async def replace(
        self, key: str, mapping: Dict[str, float], ttl: Optional[int] = None
    ) -> None:
        """Atomically replace the whole set, optionally with an expiry"""
        pass


class ISearchIndex(ABC):
    """External search index"""

    @abstractmethod
    async def index_document(self, index: str, doc_id: str, body: Dict[str, Any]) -> bool:
        """Index a document; returns False when indexing is disabled"""
        pass


class IEventPublisher(ABC):
    """Realtime notifier"""

    @abstractmethod
    async def publish(self, event_name: str, payload: Dict[str, Any]) -> bool:
        """Publish an event; returns False when publishing is disabled"""
        pass
