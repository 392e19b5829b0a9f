"""
Post Ingest - validate, persist, then propagate a new post
"""
from typing import Any, Dict, List, Optional
import logging

from ..config import settings
from ..domain.models import AuthorSummary, MediaType, NewMedia, Post, PostKind
from ..domain.repositories import IEventPublisher, IPostRepository, ISearchIndex
from ..errors import AuthError, ValidationError
from ..schemas import PostCreate, PostResponse
from .fanout import FanOutWriter
from .trending import TrendingAggregator, extract_hashtags

logger = logging.getLogger(__name__)

POST_CREATED_EVENT = "post.created"


def validate_post(payload: PostCreate) -> None:
    """
    Enforce the post content rules

    Raises:
        ValidationError: DEEP without title or text, THREAD without text and media
    """
    text = (payload.text or "").strip()

    if payload.kind == PostKind.DEEP:
        if not (payload.title or "").strip():
            raise ValidationError("Deep posts require a title")
        if not text:
            raise ValidationError("Deep posts require text")
    elif not text and not payload.all_media():
        raise ValidationError("Thread posts require text or media")


def search_document(post: Post) -> Dict[str, Any]:
    """Denormalized summary stored in the search index"""
    return {
        "id": post.id,
        "text": post.text,
        "title": post.title,
        "author_name": post.author.name if post.author else None,
        "created_at": post.created_at.isoformat(),
        "hashtags": post.hashtags,
        "kind": post.kind.value,
    }


class PostIngestService:
    """Creates posts; the database write is the only critical step"""

    def __init__(
        self,
        posts: IPostRepository,
        fanout: FanOutWriter,
        trending: TrendingAggregator,
        search: ISearchIndex,
        publisher: IEventPublisher,
        search_index: Optional[str] = None,
    ):
        self.posts = posts
        self.fanout = fanout
        self.trending = trending
        self.search = search
        self.publisher = publisher
        self.search_index = search_index or settings.SEARCH_POSTS_INDEX

    async def create_post(
        self, author: Optional[AuthorSummary], payload: PostCreate
    ) -> Post:
        """
        Create a post and propagate it

        Args:
            author: Resolved caller, None when unauthenticated
            payload: Post submission

        Returns:
            The hydrated post

        Raises:
            AuthError: no author
            ValidationError: payload breaks the post content rules
            DependencyError: persisting the post or its media failed
        """
        if author is None:
            raise AuthError()

        validate_post(payload)

        text = (payload.text or "").strip()
        title = (payload.title or "").strip() if payload.kind == PostKind.DEEP else None
        media = [
            NewMedia(url=item.url, media_type=MediaType.infer(item.type, item.url))
            for item in payload.all_media()
        ]
        hashtags = extract_hashtags(text)

        # Critical path: errors propagate to the caller
        post = await self.posts.create_post(
            author_id=author.id,
            text=text,
            kind=payload.kind,
            title=title,
            group_id=payload.group_id,
            media=media,
            hashtags=hashtags,
        )
        if post.author is None:
            post.author = author
        logger.info(f"Created post {post.id} by user {author.id} with {len(media)} media")

        await self._fan_out(post)
        await self._bump_hashtags(post, hashtags)
        await self._index(post)
        await self._publish(post)

        return post

    async def _fan_out(self, post: Post) -> None:
        try:
            await self.fanout.fan_out(post.id, post.author_id, post.score)
        except Exception as e:
            logger.error(f"Fan-out failed for post {post.id}: {e}")

    async def _bump_hashtags(self, post: Post, hashtags: List[str]) -> None:
        for tag in hashtags:
            try:
                await self.trending.bump(tag)
            except Exception as e:
                logger.error(f"Trending bump of #{tag} failed for post {post.id}: {e}")

    async def _index(self, post: Post) -> None:
        try:
            await self.search.index_document(self.search_index, post.id, search_document(post))
        except Exception as e:
            logger.error(f"Search indexing failed for post {post.id}: {e}")

    async def _publish(self, post: Post) -> None:
        try:
            payload = PostResponse.from_model(post).model_dump(mode="json")
            await self.publisher.publish(POST_CREATED_EVENT, payload)
        except Exception as e:
            logger.error(f"Realtime publish failed for post {post.id}: {e}")
