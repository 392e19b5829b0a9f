"""
FastAPI dependencies for Timeline Service

Clients are created once in the application lifespan and kept on app.state;
everything below builds repositories and services from them per request.
"""
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from typing import Optional
import logging

from .application import (
    FanOutWriter,
    PostIngestService,
    SocialGraphService,
    TimelineReader,
    TrendingAggregator,
)
from .config import settings
from .database import Database
from .domain.repositories import (
    ICommentRepository,
    IEventPublisher,
    IFollowRepository,
    ILikeRepository,
    IOrderedSetStore,
    IPostRepository,
    ISearchIndex,
    IUserRepository,
)
from .errors import AuthError
from .infrastructure.repositories import (
    CommentRepository,
    FollowRepository,
    LikeRepository,
    PostRepository,
    UserRepository,
)
from .schemas import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


# Clients
def get_db(request: Request) -> Database:
    """Dependency for getting database instance"""
    return request.app.state.db


def get_store(request: Request) -> IOrderedSetStore:
    """Dependency for getting the Redis sorted-set store"""
    return request.app.state.store


def get_search(request: Request) -> ISearchIndex:
    """Dependency for getting the search client"""
    return request.app.state.search


def get_publisher(request: Request) -> IEventPublisher:
    """Dependency for getting the Kafka producer"""
    return request.app.state.publisher


# Repositories
def get_post_repository(db: Database = Depends(get_db)) -> IPostRepository:
    return PostRepository(db)


def get_follow_repository(db: Database = Depends(get_db)) -> IFollowRepository:
    return FollowRepository(db)


def get_like_repository(db: Database = Depends(get_db)) -> ILikeRepository:
    return LikeRepository(db, PostRepository(db))


def get_comment_repository(db: Database = Depends(get_db)) -> ICommentRepository:
    return CommentRepository(db, PostRepository(db))


def get_user_repository(db: Database = Depends(get_db)) -> IUserRepository:
    return UserRepository(db)


# Services
def get_fanout_writer(
    follows: IFollowRepository = Depends(get_follow_repository),
    store: IOrderedSetStore = Depends(get_store),
) -> FanOutWriter:
    return FanOutWriter(follows, store, max_timeline_length=settings.MAX_TIMELINE_LENGTH)


def get_trending_aggregator(
    store: IOrderedSetStore = Depends(get_store),
) -> TrendingAggregator:
    return TrendingAggregator(store)


def get_ingest_service(
    posts: IPostRepository = Depends(get_post_repository),
    fanout: FanOutWriter = Depends(get_fanout_writer),
    trending: TrendingAggregator = Depends(get_trending_aggregator),
    search: ISearchIndex = Depends(get_search),
    publisher: IEventPublisher = Depends(get_publisher),
) -> PostIngestService:
    return PostIngestService(posts, fanout, trending, search, publisher)


def get_timeline_reader(
    store: IOrderedSetStore = Depends(get_store),
    posts: IPostRepository = Depends(get_post_repository),
    likes: ILikeRepository = Depends(get_like_repository),
    follows: IFollowRepository = Depends(get_follow_repository),
) -> TimelineReader:
    return TimelineReader(
        store, posts, likes, follows, max_timeline_length=settings.MAX_TIMELINE_LENGTH
    )


def get_social_service(
    follows: IFollowRepository = Depends(get_follow_repository),
    likes: ILikeRepository = Depends(get_like_repository),
    posts: IPostRepository = Depends(get_post_repository),
    users: IUserRepository = Depends(get_user_repository),
    comments: ICommentRepository = Depends(get_comment_repository),
) -> SocialGraphService:
    return SocialGraphService(follows, likes, posts, users, comments)


# Auth
def _extract_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    """Bearer header first, then the session cookie"""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    users: IUserRepository = Depends(get_user_repository),
) -> User:
    """
    Validate JWT token and return current user

    Raises:
        AuthError: missing/invalid token or unknown user
    """
    token = _extract_token(request, credentials)
    if not token:
        raise AuthError("Not authenticated")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        logger.debug(f"Rejected token: {e}")
        raise AuthError("Could not validate credentials")

    user_id = payload.get("sub") or payload.get("userId")
    if not user_id:
        raise AuthError("Could not validate credentials")

    author = await users.find_by_id(str(user_id))
    if author is None:
        raise AuthError("Could not validate credentials")

    return User(
        id=author.id,
        name=author.name,
        username=author.username,
        avatar_url=author.avatar_url,
        is_practitioner=author.is_practitioner,
    )
