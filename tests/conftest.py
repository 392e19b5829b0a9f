from __future__ import annotations

import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from timeline_service.application import (
    FanOutWriter,
    PostIngestService,
    SocialGraphService,
    TimelineReader,
    TrendingAggregator,
)
from timeline_service.domain.models import AuthorSummary, Comment, MediaAsset, NewMedia, Post, PostKind
from timeline_service.domain.repositories import (
    ICommentRepository,
    IEventPublisher,
    IFollowRepository,
    ILikeRepository,
    IOrderedSetStore,
    IPostRepository,
    ISearchIndex,
    IUserRepository,
)
from timeline_service.errors import DependencyError

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InMemoryOrderedSetStore(IOrderedSetStore):
    """Sorted sets with Redis ordering rules (score desc, then member desc)."""

    def __init__(self) -> None:
        self.sets: Dict[str, Dict[str, float]] = {}
        self.ttls: Dict[str, int] = {}
        self.batch_calls = 0
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise DependencyError("redis", "connection refused")

    def _ordered(self, key: str) -> List[Tuple[str, float]]:
        items = self.sets.get(key, {}).items()
        return sorted(items, key=lambda kv: (kv[1], kv[0]), reverse=True)

    @staticmethod
    def _slice(items: list, start: int, end: int) -> list:
        if end < 0:
            end = len(items) + end
        return items[start:end + 1]

    async def zadd_batch(self, entries: Sequence[Tuple[str, float, str]], trim_to: int = 0) -> int:
        self._check()
        self.batch_calls += 1
        for key, score, member in entries:
            self.sets.setdefault(key, {})[member] = score
        if trim_to > 0:
            for key in {key for key, _, _ in entries}:
                kept = self._ordered(key)[:trim_to]
                self.sets[key] = dict(kept)
        return len(entries)

    async def zrevrange(self, key: str, start: int, end: int) -> List[str]:
        self._check()
        return [member for member, _ in self._slice(self._ordered(key), start, end)]

    async def zrevrange_with_scores(self, key: str, start: int, end: int) -> List[Tuple[str, float]]:
        self._check()
        return self._slice(self._ordered(key), start, end)

    async def zcard(self, key: str) -> int:
        self._check()
        return len(self.sets.get(key, {}))

    async def zincrby(self, key: str, amount: float, member: str) -> float:
        self._check()
        scores = self.sets.setdefault(key, {})
        scores[member] = scores.get(member, 0.0) + amount
        return scores[member]

    async def replace(self, key: str, mapping: Dict[str, float], ttl: Optional[int] = None) -> None:
        self._check()
        self.sets.pop(key, None)
        if mapping:
            self.sets[key] = dict(mapping)
            if ttl:
                self.ttls[key] = ttl


class InMemoryUserRepository(IUserRepository):
    def __init__(self) -> None:
        self.users: Dict[str, AuthorSummary] = {}

    def add(self, name: str) -> AuthorSummary:
        user = AuthorSummary(id=uuid.uuid4().hex, name=name, username=name.lower())
        self.users[user.id] = user
        return user

    async def find_by_id(self, user_id: str) -> Optional[AuthorSummary]:
        return self.users.get(user_id)


class InMemoryPostRepository(IPostRepository):
    """Each created post is one second newer than the previous one."""

    def __init__(self, users: InMemoryUserRepository) -> None:
        self.users = users
        self.posts: Dict[str, Post] = {}
        self.clock = itertools.count(1)
        self.reverse_fetch_order = False
        self.fail_create = False

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
        if self.fail_create:
            raise DependencyError("database", "timeout")
        post_id = uuid.uuid4().hex
        created_at = EPOCH + timedelta(seconds=next(self.clock))
        post = Post(
            id=post_id,
            author_id=author_id,
            text=text,
            kind=kind,
            title=title,
            group_id=group_id,
            created_at=created_at,
            updated_at=created_at,
            author=self.users.users.get(author_id),
            media=[
                MediaAsset(id=uuid.uuid4().hex, post_id=post_id, media_type=m.media_type, url=m.url, position=i)
                for i, m in enumerate(media)
            ],
            hashtags=list(hashtags),
        )
        self.posts[post_id] = post
        return post

    async def find_by_ids(self, post_ids: Sequence[str]) -> List[Post]:
        # Storage order: insertion order, never the requested order
        found = [post for post_id, post in self.posts.items() if post_id in set(post_ids)]
        if self.reverse_fetch_order:
            found = [self.posts[pid] for pid in reversed(list(post_ids)) if pid in self.posts]
        return found

    async def find_recent_by_authors(self, author_ids: Sequence[str], limit: int) -> List[Tuple[str, datetime]]:
        matching = [p for p in self.posts.values() if p.author_id in set(author_ids)]
        matching.sort(key=lambda p: p.created_at, reverse=True)
        return [(p.id, p.created_at) for p in matching[:limit]]

    async def exists(self, post_id: str) -> bool:
        return post_id in self.posts

    async def increment_like_count(self, post_id: str, delta: int = 1) -> int:
        post = self.posts[post_id]
        post.like_count = max(post.like_count + delta, 0)
        return post.like_count

    async def increment_comment_count(self, post_id: str, delta: int = 1) -> int:
        post = self.posts[post_id]
        post.comment_count = max(post.comment_count + delta, 0)
        return post.comment_count


class InMemoryFollowRepository(IFollowRepository):
    def __init__(self) -> None:
        self.edges: set = set()
        self.fail_lookup = False

    async def find_follower_ids(self, user_id: str) -> List[str]:
        if self.fail_lookup:
            raise DependencyError("database", "connection reset")
        return sorted(follower for follower, followed in self.edges if followed == user_id)

    async def find_following_ids(self, user_id: str) -> List[str]:
        return sorted(followed for follower, followed in self.edges if follower == user_id)

    async def toggle(self, follower_id: str, followed_id: str) -> bool:
        edge = (follower_id, followed_id)
        if edge in self.edges:
            self.edges.remove(edge)
            return False
        self.edges.add(edge)
        return True

    async def count_followers(self, user_id: str) -> int:
        return len(await self.find_follower_ids(user_id))


class InMemoryLikeRepository(ILikeRepository):
    def __init__(self, posts: InMemoryPostRepository) -> None:
        self.posts = posts
        self.edges: set = set()

    async def find_liked_post_ids(self, user_id: str, post_ids: Sequence[str]) -> List[str]:
        return [pid for pid in post_ids if (user_id, pid) in self.edges]

    async def toggle(self, user_id: str, post_id: str) -> Tuple[bool, int]:
        edge = (user_id, post_id)
        liked = edge not in self.edges
        if liked:
            self.edges.add(edge)
        else:
            self.edges.remove(edge)
        like_count = await self.posts.increment_like_count(post_id, 1 if liked else -1)
        return liked, like_count


class InMemoryCommentRepository(ICommentRepository):
    def __init__(self, posts: InMemoryPostRepository) -> None:
        self.posts = posts
        self.comments: Dict[str, Comment] = {}

    async def find_by_id(self, comment_id: str) -> Optional[Comment]:
        return self.comments.get(comment_id)

    async def create_comment(
        self,
        post_id: str,
        author_id: str,
        text: str,
        parent_id: Optional[str] = None,
    ) -> Tuple[Comment, int]:
        comment = Comment(
            id=uuid.uuid4().hex,
            post_id=post_id,
            author_id=author_id,
            text=text,
            created_at=EPOCH,
            parent_id=parent_id,
            author=self.posts.users.users.get(author_id),
        )
        self.comments[comment.id] = comment
        comment_count = await self.posts.increment_comment_count(post_id, 1)
        return comment, comment_count


class RecordingSearchIndex(ISearchIndex):
    def __init__(self) -> None:
        self.documents: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.fail = False

    async def index_document(self, index: str, doc_id: str, body: Dict[str, Any]) -> bool:
        if self.fail:
            raise DependencyError("search", "HTTP error 503")
        self.documents[(index, doc_id)] = body
        return True


class RecordingPublisher(IEventPublisher):
    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self.fail = False

    async def publish(self, event_name: str, payload: Dict[str, Any]) -> bool:
        if self.fail:
            raise DependencyError("kafka", "broker not available")
        self.events.append((event_name, payload))
        return True


class Backend:
    """All collaborators wired the way the dependency functions wire them."""

    def __init__(self, max_timeline_length: int = 0) -> None:
        self.store = InMemoryOrderedSetStore()
        self.users = InMemoryUserRepository()
        self.posts = InMemoryPostRepository(self.users)
        self.follows = InMemoryFollowRepository()
        self.likes = InMemoryLikeRepository(self.posts)
        self.comments = InMemoryCommentRepository(self.posts)
        self.search = RecordingSearchIndex()
        self.publisher = RecordingPublisher()

        self.fanout = FanOutWriter(self.follows, self.store, max_timeline_length=max_timeline_length)
        self.trending = TrendingAggregator(self.store)
        self.ingest = PostIngestService(
            self.posts, self.fanout, self.trending, self.search, self.publisher, search_index="posts"
        )
        self.reader = TimelineReader(
            self.store, self.posts, self.likes, self.follows, max_timeline_length=max_timeline_length
        )
        self.social = SocialGraphService(
            self.follows, self.likes, self.posts, self.users, self.comments
        )

    async def follow(self, follower: AuthorSummary, followed: AuthorSummary) -> None:
        await self.follows.toggle(follower.id, followed.id)


@pytest.fixture()
def backend() -> Backend:
    return Backend()


@pytest.fixture()
def make_backend():
    return Backend
