"""
Timeline Reader - paginated, newest-first slices of a user's timeline
"""
from typing import Optional
import logging

from ..cache import timeline_key
from ..domain.models import FeedPage, timeline_score
from ..domain.repositories import (
    IFollowRepository,
    ILikeRepository,
    IOrderedSetStore,
    IPostRepository,
)
from ..errors import ValidationError

logger = logging.getLogger(__name__)


class TimelineReader:
    """Reads timelines written by the fan-out, hydrated from the post store"""

    def __init__(
        self,
        store: IOrderedSetStore,
        posts: IPostRepository,
        likes: ILikeRepository,
        follows: IFollowRepository,
        max_timeline_length: int = 0,
    ):
        self.store = store
        self.posts = posts
        self.likes = likes
        self.follows = follows
        self.max_timeline_length = max_timeline_length

    async def read_page(
        self,
        user_id: str,
        page: int,
        page_size: int,
        viewer_id: Optional[str] = None,
    ) -> FeedPage:
        """
        Get one page of user_id's timeline

        Args:
            user_id: Timeline owner
            page: Page number (0-indexed)
            page_size: Items per page
            viewer_id: When given, posts are annotated with the viewer's likes

        Returns:
            FeedPage with posts in rank order and has_more

        Raises:
            ValidationError: on a negative page or non-positive page size
            DependencyError: on any store failure
        """
        if page < 0:
            raise ValidationError("page must be >= 0")
        if page_size < 1:
            raise ValidationError("page size must be >= 1")

        key = timeline_key(user_id)
        start = page * page_size
        end = start + page_size - 1

        post_ids = await self.store.zrevrange(key, start, end)
        if not post_ids:
            return FeedPage(posts=[], has_more=False)

        fetched = await self.posts.find_by_ids(post_ids)

        # The bulk fetch returns storage order; restore rank order
        rank = {post_id: index for index, post_id in enumerate(post_ids)}
        posts = sorted(
            (post for post in fetched if post.id in rank),
            key=lambda post: rank[post.id],
        )
        if len(posts) < len(post_ids):
            logger.warning(
                f"Timeline {key} references {len(post_ids) - len(posts)} missing posts"
            )

        total = await self.store.zcard(key)
        has_more = (page + 1) * page_size < total

        liked = []
        if viewer_id and posts:
            liked = await self.likes.find_liked_post_ids(viewer_id, [p.id for p in posts])

        return FeedPage(posts=posts, has_more=has_more, liked_post_ids=liked)

    async def rebuild(self, user_id: str, limit: int, ttl: Optional[int] = None) -> int:
        """
        Rebuild user_id's timeline from the post store

        Replaces the sorted set with the newest `limit` posts by the user and
        everyone they currently follow, never more than the fan-out keeps.
        Returns the number of entries written.
        """
        if self.max_timeline_length > 0:
            limit = min(limit, self.max_timeline_length)

        following_ids = await self.follows.find_following_ids(user_id)
        author_ids = [user_id] + [uid for uid in following_ids if uid != user_id]

        recent = await self.posts.find_recent_by_authors(author_ids, limit)
        mapping = {post_id: timeline_score(created_at) for post_id, created_at in recent}

        await self.store.replace(timeline_key(user_id), mapping, ttl)
        logger.info(f"Rebuilt timeline for user {user_id} with {len(mapping)} items")
        return len(mapping)
