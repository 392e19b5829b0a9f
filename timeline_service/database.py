"""
Database connection and operations for Timeline Service
"""
import asyncio
import asyncpg
from contextlib import asynccontextmanager
from typing import Optional, List, Dict, Any, AsyncIterator
import logging

from .config import settings
from .errors import DependencyError

logger = logging.getLogger(__name__)

# asyncpg raises OSError subclasses for refused/reset connections
DATABASE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class Database:
    """PostgreSQL database connection manager using asyncpg"""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or settings.DATABASE_URL
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Create database connection pool"""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=1,
                max_size=settings.DB_POOL_SIZE,
                command_timeout=settings.EXTERNAL_CALL_TIMEOUT,
                timeout=settings.EXTERNAL_CALL_TIMEOUT,
            )
            logger.info("Database connection pool created successfully")

            # Initialize schema
            await self._init_schema()
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

    async def disconnect(self):
        """Close database connection pool"""
        if self.pool:
            await self.pool.close()
            logger.info("Database connection pool closed")

    async def _init_schema(self):
        """Initialize database schema"""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id VARCHAR(64) PRIMARY KEY,
                    name VARCHAR(255),
                    username VARCHAR(64) UNIQUE,
                    avatar_url TEXT,
                    is_practitioner BOOLEAN DEFAULT FALSE,
                    created_at TIMESTAMPTZ DEFAULT NOW()
                )
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS posts (
                    id VARCHAR(64) PRIMARY KEY,
                    author_id VARCHAR(64) NOT NULL REFERENCES users (id),
                    text_content TEXT NOT NULL DEFAULT '',
                    kind VARCHAR(16) NOT NULL DEFAULT 'THREAD',
                    title VARCHAR(300),
                    group_id VARCHAR(64),
                    hashtags TEXT[] NOT NULL DEFAULT '{}',
                    like_count INTEGER NOT NULL DEFAULT 0,
                    comment_count INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_posts_author_created
                ON posts (author_id, created_at DESC)
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS media_assets (
                    id VARCHAR(64) PRIMARY KEY,
                    post_id VARCHAR(64) NOT NULL REFERENCES posts (id),
                    media_type VARCHAR(16) NOT NULL,
                    url TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0
                )
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_media_assets_post
                ON media_assets (post_id, position)
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS follows (
                    follower_id VARCHAR(64) NOT NULL,
                    followed_id VARCHAR(64) NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    PRIMARY KEY (follower_id, followed_id),
                    CHECK (follower_id <> followed_id)
                )
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_follows_followed
                ON follows (followed_id)
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS likes (
                    user_id VARCHAR(64) NOT NULL,
                    post_id VARCHAR(64) NOT NULL REFERENCES posts (id),
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    PRIMARY KEY (user_id, post_id)
                )
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS comments (
                    id VARCHAR(64) PRIMARY KEY,
                    post_id VARCHAR(64) NOT NULL REFERENCES posts (id),
                    author_id VARCHAR(64) NOT NULL REFERENCES users (id),
                    text_content TEXT NOT NULL,
                    parent_id VARCHAR(64) REFERENCES comments (id),
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_comments_post
                ON comments (post_id, created_at)
            """)

            logger.info("Database schema initialized successfully")

    async def fetch_one(self, query: str, *args) -> Optional[Dict[str, Any]]:
        """Fetch a single row"""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, *args)
                return dict(row) if row else None
        except DATABASE_ERRORS as e:
            raise DependencyError("database", str(e) or type(e).__name__) from e

    async def fetch_all(self, query: str, *args) -> List[Dict[str, Any]]:
        """Fetch all rows"""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
                return [dict(row) for row in rows]
        except DATABASE_ERRORS as e:
            raise DependencyError("database", str(e) or type(e).__name__) from e

    async def execute(self, query: str, *args) -> str:
        """Execute a query"""
        try:
            async with self.pool.acquire() as conn:
                return await conn.execute(query, *args)
        except DATABASE_ERRORS as e:
            raise DependencyError("database", str(e) or type(e).__name__) from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield a connection inside a transaction"""
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    yield conn
        except DATABASE_ERRORS as e:
            raise DependencyError("database", str(e) or type(e).__name__) from e
