"""
Repository implementations - Data access layer
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
import uuid

import asyncpg

from ..database import Database
from ..domain.models import (
    AuthorSummary,
    Comment,
    MediaAsset,
    MediaType,
    NewMedia,
    Post,
    PostKind,
)
from ..domain.repositories import (
    ICommentRepository,
    IFollowRepository,
    ILikeRepository,
    IPostRepository,
    IUserRepository,
)

POST_COLUMNS = """
    p.id, p.author_id, p.text_content, p.kind, p.title, p.group_id, p.hashtags,
    p.like_count, p.comment_count, p.created_at, p.updated_at,
    u.name AS author_name, u.username AS author_username,
    u.avatar_url AS author_avatar_url, u.is_practitioner AS author_is_practitioner
"""

COMMENT_COLUMNS = """
    c.id, c.post_id, c.author_id, c.text_content, c.parent_id, c.created_at,
    u.name AS author_name, u.username AS author_username,
    u.avatar_url AS author_avatar_url, u.is_practitioner AS author_is_practitioner
"""


def _row_to_author(row: Dict[str, Any], prefix: str = "author_") -> AuthorSummary:
    """Convert the author columns of a row to AuthorSummary"""
    return AuthorSummary(
        id=row.get("author_id") if prefix else row["id"],
        name=row.get(f"{prefix}name"),
        username=row.get(f"{prefix}username"),
        avatar_url=row.get(f"{prefix}avatar_url"),
        is_practitioner=bool(row.get(f"{prefix}is_practitioner")),
    )


def _row_to_media(row: Dict[str, Any]) -> MediaAsset:
    """Convert database row to MediaAsset model"""
    return MediaAsset(
        id=row["id"],
        post_id=row["post_id"],
        media_type=MediaType(row["media_type"]),
        url=row["url"],
        position=row["position"],
    )


def _row_to_post(row: Dict[str, Any], media: List[MediaAsset]) -> Post:
    """Convert database row to Post model"""
    return Post(
        id=row["id"],
        author_id=row["author_id"],
        text=row["text_content"],
        kind=PostKind(row["kind"]),
        title=row["title"],
        group_id=row["group_id"],
        like_count=row["like_count"],
        comment_count=row["comment_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        author=_row_to_author(row),
        media=media,
        hashtags=list(row["hashtags"] or []),
    )


def _row_to_comment(row: Dict[str, Any]) -> Comment:
    """Convert database row to Comment model"""
    return Comment(
        id=row["id"],
        post_id=row["post_id"],
        author_id=row["author_id"],
        text=row["text_content"],
        parent_id=row["parent_id"],
        created_at=row["created_at"],
        author=_row_to_author(row),
    )


class PostRepository(IPostRepository):
    """Post repository implementation using PostgreSQL"""

    def __init__(self, db: Database):
        self.db = db

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
        post_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)

        async with self.db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO posts (id, author_id, text_content, kind, title, group_id,
                                   hashtags, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $8)
                """,
                post_id, author_id, text, kind.value, title, group_id, list(hashtags), now
            )

            assets = []
            for position, item in enumerate(media):
                asset = MediaAsset(
                    id=uuid.uuid4().hex,
                    post_id=post_id,
                    media_type=item.media_type,
                    url=item.url,
                    position=position,
                )
                await conn.execute(
                    """
                    INSERT INTO media_assets (id, post_id, media_type, url, position)
                    VALUES ($1, $2, $3, $4, $5)
                    """,
                    asset.id, asset.post_id, asset.media_type.value, asset.url, asset.position
                )
                assets.append(asset)

            row = await conn.fetchrow(
                f"""
                SELECT {POST_COLUMNS}
                FROM posts p
                JOIN users u ON u.id = p.author_id
                WHERE p.id = $1
                """,
                post_id
            )

        return _row_to_post(dict(row), assets)

    async def find_by_ids(self, post_ids: Sequence[str]) -> List[Post]:
        """Find posts by ID; rows come back in storage order"""
        if not post_ids:
            return []

        rows = await self.db.fetch_all(
            f"""
            SELECT {POST_COLUMNS}
            FROM posts p
            JOIN users u ON u.id = p.author_id
            WHERE p.id = ANY($1::varchar[])
            """,
            list(post_ids)
        )
        media_rows = await self.db.fetch_all(
            """
            SELECT id, post_id, media_type, url, position
            FROM media_assets
            WHERE post_id = ANY($1::varchar[])
            ORDER BY post_id, position ASC
            """,
            list(post_ids)
        )

        media_by_post: Dict[str, List[MediaAsset]] = {}
        for media_row in media_rows:
            media_by_post.setdefault(media_row["post_id"], []).append(_row_to_media(media_row))

        return [_row_to_post(row, media_by_post.get(row["id"], [])) for row in rows]

    async def find_recent_by_authors(
        self, author_ids: Sequence[str], limit: int
    ) -> List[Tuple[str, datetime]]:
        """Find (post_id, created_at) of the newest posts by any of the authors"""
        if not author_ids:
            return []

        rows = await self.db.fetch_all(
            """
            SELECT id, created_at
            FROM posts
            WHERE author_id = ANY($1::varchar[])
            ORDER BY created_at DESC
            LIMIT $2
            """,
            list(author_ids), limit
        )
        return [(row["id"], row["created_at"]) for row in rows]

    async def exists(self, post_id: str) -> bool:
        """Check whether a post exists"""
        row = await self.db.fetch_one("SELECT 1 AS found FROM posts WHERE id = $1", post_id)
        return row is not None

    async def increment_like_count(
        self, post_id: str, delta: int = 1, conn: Optional[asyncpg.Connection] = None
    ) -> int:
        """Adjust the like counter; pass conn to join an open transaction"""
        return await self._adjust_counter("like_count", post_id, delta, conn)

    async def increment_comment_count(
        self, post_id: str, delta: int = 1, conn: Optional[asyncpg.Connection] = None
    ) -> int:
        """Adjust the comment counter; pass conn to join an open transaction"""
        return await self._adjust_counter("comment_count", post_id, delta, conn)

    async def _adjust_counter(
        self, column: str, post_id: str, delta: int, conn: Optional[asyncpg.Connection]
    ) -> int:
        query = f"""
            UPDATE posts
            SET {column} = GREATEST({column} + $2, 0)
            WHERE id = $1
            RETURNING {column}
        """
        if conn is not None:
            row = await conn.fetchrow(query, post_id, delta)
        else:
            row = await self.db.fetch_one(query, post_id, delta)
        return row[column] if row else 0


class FollowRepository(IFollowRepository):
    """Follow-edge repository implementation using PostgreSQL"""

    def __init__(self, db: Database):
        self.db = db

    async def find_follower_ids(self, user_id: str) -> List[str]:
        rows = await self.db.fetch_all(
            "SELECT follower_id FROM follows WHERE followed_id = $1",
            user_id
        )
        return [row["follower_id"] for row in rows]

    async def find_following_ids(self, user_id: str) -> List[str]:
        rows = await self.db.fetch_all(
            "SELECT followed_id FROM follows WHERE follower_id = $1",
            user_id
        )
        return [row["followed_id"] for row in rows]

    async def toggle(self, follower_id: str, followed_id: str) -> bool:
        """Create the edge if missing, delete it otherwise; return new state"""
        deleted = await self.db.fetch_one(
            """
            DELETE FROM follows
            WHERE follower_id = $1 AND followed_id = $2
            RETURNING follower_id
            """,
            follower_id, followed_id
        )
        if deleted:
            return False

        await self.db.execute(
            """
            INSERT INTO follows (follower_id, followed_id)
            VALUES ($1, $2)
            ON CONFLICT (follower_id, followed_id) DO NOTHING
            """,
            follower_id, followed_id
        )
        return True

    async def count_followers(self, user_id: str) -> int:
        row = await self.db.fetch_one(
            "SELECT COUNT(*) AS count FROM follows WHERE followed_id = $1",
            user_id
        )
        return row["count"] if row else 0


class LikeRepository(ILikeRepository):
    """Like-edge repository implementation using PostgreSQL"""

    def __init__(self, db: Database, posts: Optional[PostRepository] = None):
        self.db = db
        self.posts = posts or PostRepository(db)

    async def find_liked_post_ids(
        self, user_id: str, post_ids: Sequence[str]
    ) -> List[str]:
        if not post_ids:
            return []

        rows = await self.db.fetch_all(
            """
            SELECT post_id
            FROM likes
            WHERE user_id = $1 AND post_id = ANY($2::varchar[])
            """,
            user_id, list(post_ids)
        )
        return [row["post_id"] for row in rows]

    async def toggle(self, user_id: str, post_id: str) -> Tuple[bool, int]:
        """Flip the like edge and adjust like_count in one transaction"""
        async with self.db.transaction() as conn:
            deleted = await conn.fetchrow(
                """
                DELETE FROM likes
                WHERE user_id = $1 AND post_id = $2
                RETURNING post_id
                """,
                user_id, post_id
            )
            if deleted:
                liked, delta = False, -1
            else:
                inserted = await conn.fetchrow(
                    """
                    INSERT INTO likes (user_id, post_id)
                    VALUES ($1, $2)
                    ON CONFLICT (user_id, post_id) DO NOTHING
                    RETURNING post_id
                    """,
                    user_id, post_id
                )
                # A concurrent like already counted itself
                liked, delta = True, 1 if inserted else 0

            like_count = await self.posts.increment_like_count(post_id, delta, conn=conn)

        return liked, like_count


class CommentRepository(ICommentRepository):
    """Comment repository implementation using PostgreSQL"""

    def __init__(self, db: Database, posts: Optional[PostRepository] = None):
        self.db = db
        self.posts = posts or PostRepository(db)

    async def find_by_id(self, comment_id: str) -> Optional[Comment]:
        row = await self.db.fetch_one(
            f"""
            SELECT {COMMENT_COLUMNS}
            FROM comments c
            JOIN users u ON u.id = c.author_id
            WHERE c.id = $1
            """,
            comment_id
        )
        return _row_to_comment(row) if row else None

    async def create_comment(
        self,
        post_id: str,
        author_id: str,
        text: str,
        parent_id: Optional[str] = None,
    ) -> Tuple[Comment, int]:
        """Insert the comment and bump comment_count in one transaction"""
        comment_id = uuid.uuid4().hex

        async with self.db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO comments (id, post_id, author_id, text_content, parent_id)
                VALUES ($1, $2, $3, $4, $5)
                """,
                comment_id, post_id, author_id, text, parent_id
            )
            comment_count = await self.posts.increment_comment_count(post_id, 1, conn=conn)
            row = await conn.fetchrow(
                f"""
                SELECT {COMMENT_COLUMNS}
                FROM comments c
                JOIN users u ON u.id = c.author_id
                WHERE c.id = $1
                """,
                comment_id
            )

        return _row_to_comment(dict(row)), comment_count


class UserRepository(IUserRepository):
    """User lookup implementation using PostgreSQL"""

    def __init__(self, db: Database):
        self.db = db

    async def find_by_id(self, user_id: str) -> Optional[AuthorSummary]:
        row = await self.db.fetch_one(
            """
            SELECT id, name, username, avatar_url, is_practitioner
            FROM users
            WHERE id = $1
            """,
            user_id
        )
        if not row:
            return None
        return _row_to_author(row, prefix="")
