"""
Follow, like and comment operations
"""
from typing import Optional, Tuple
import logging

from ..domain.models import Comment
from ..domain.repositories import (
    ICommentRepository,
    IFollowRepository,
    ILikeRepository,
    IPostRepository,
    IUserRepository,
)
from ..errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class SocialGraphService:
    """Business logic for follow, like and comment edges"""

    def __init__(
        self,
        follows: IFollowRepository,
        likes: ILikeRepository,
        posts: IPostRepository,
        users: IUserRepository,
        comments: ICommentRepository,
    ):
        self.follows = follows
        self.likes = likes
        self.posts = posts
        self.users = users
        self.comments = comments

    async def toggle_follow(self, follower_id: str, followed_id: str) -> Tuple[bool, int]:
        """
        Follow followed_id, or unfollow if already following

        Existing timeline entries are left untouched in both directions.

        Returns:
            Tuple of (is_following, follower_count of followed_id)
        """
        if follower_id == followed_id:
            raise ValidationError("You cannot follow yourself")

        if await self.users.find_by_id(followed_id) is None:
            raise NotFoundError("User not found")

        is_following = await self.follows.toggle(follower_id, followed_id)
        follower_count = await self.follows.count_followers(followed_id)

        logger.info(
            f"User {follower_id} {'followed' if is_following else 'unfollowed'} {followed_id}"
        )
        return is_following, follower_count

    async def toggle_like(self, user_id: str, post_id: str) -> Tuple[bool, int]:
        """
        Like post_id, or remove the like if present

        Returns:
            Tuple of (liked, like_count)
        """
        if not await self.posts.exists(post_id):
            raise NotFoundError("Post not found")

        return await self.likes.toggle(user_id, post_id)

    async def add_comment(
        self,
        user_id: str,
        post_id: str,
        text: Optional[str],
        parent_id: Optional[str] = None,
    ) -> Tuple[Comment, int]:
        """
        Comment on post_id, or reply to parent_id on the same post

        Returns:
            Tuple of (comment, comment_count)

        Raises:
            NotFoundError: unknown post
            ValidationError: empty text, or a parent from another post
        """
        if not await self.posts.exists(post_id):
            raise NotFoundError("Post not found")

        text = (text or "").strip()
        if not text:
            raise ValidationError("Text is required")

        if parent_id:
            parent = await self.comments.find_by_id(parent_id)
            if parent is None or parent.post_id != post_id:
                raise ValidationError("Invalid parent comment")

        comment, comment_count = await self.comments.create_comment(
            post_id, user_id, text, parent_id
        )
        logger.info(f"User {user_id} commented on post {post_id}")
        return comment, comment_count
