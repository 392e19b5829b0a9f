"""
FastAPI application for Timeline Service
"""
from fastapi import FastAPI, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from .application import PostIngestService, SocialGraphService, TimelineReader, TrendingAggregator
from .cache import RedisOrderedSetStore
from .config import settings
from .database import Database
from .dependencies import (
    get_current_user,
    get_ingest_service,
    get_social_service,
    get_timeline_reader,
    get_trending_aggregator,
)
from .domain.models import AuthorSummary
from .errors import AuthError, DependencyError, TimelineServiceError
from .kafka_producer import KafkaProducerManager
from .schemas import (
    User,
    PostCreate,
    PostCreatedResponse,
    PostResponse,
    FeedResponse,
    FeedRefreshResponse,
    TrendingResponse,
    TrendingTagResponse,
    FollowToggleResponse,
    LikeToggleResponse,
    CommentCreate,
    CommentCreatedResponse,
    CommentResponse,
)
from .search_client import SearchClient

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Timeline Service...")

    app.state.db = Database()
    await app.state.db.connect()
    logger.info("Database connected")

    app.state.store = RedisOrderedSetStore()
    await app.state.store.connect()
    logger.info("Redis store initialized")

    app.state.search = SearchClient()
    await app.state.search.start()
    logger.info("Search client initialized")

    app.state.publisher = KafkaProducerManager()
    await app.state.publisher.start()
    logger.info("Kafka producer started")

    logger.info(f"Timeline Service started successfully on port {settings.PORT}")

    yield

    # Shutdown
    logger.info("Shutting down Timeline Service...")

    await app.state.publisher.stop()
    await app.state.search.stop()
    await app.state.store.disconnect()
    await app.state.db.disconnect()

    logger.info("Timeline Service shut down successfully")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="HealthThreads Timeline Service - fan-out-on-write feeds and trending hashtags",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TimelineServiceError)
async def service_error_handler(request: Request, exc: TimelineServiceError):
    """Render service errors as {"error": ...}"""
    headers = None
    detail = exc.detail
    if isinstance(exc, AuthError):
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, DependencyError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
        detail = "A backing service is unavailable"
    return JSONResponse(status_code=exc.status_code, content={"error": detail}, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are client errors (400)"""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def _author(user: User) -> AuthorSummary:
    return AuthorSummary(
        id=user.id,
        name=user.name,
        username=user.username,
        avatar_url=user.avatar_url,
        is_practitioner=user.is_practitioner,
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


# Post endpoints
@app.post(
    "/api/v1/posts",
    response_model=PostCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Posts"],
    summary="Create a post and fan it out",
)
async def create_post(
    payload: PostCreate,
    current_user: User = Depends(get_current_user),
    service: PostIngestService = Depends(get_ingest_service),
):
    """
    Create a new post

    - **kind**: THREAD (text or media required) or DEEP (title and text required)
    - **media**: list of {url, type}; image_url/video_url/audio_url are also accepted
    - Followers' timelines, trending hashtags, search and realtime listeners
      are updated best-effort after the post is stored
    """
    post = await service.create_post(_author(current_user), payload)
    return PostCreatedResponse(post=PostResponse.from_model(post))


@app.post(
    "/api/v1/posts/{post_id}/like",
    response_model=LikeToggleResponse,
    tags=["Posts"],
    summary="Toggle like",
)
async def toggle_like(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: SocialGraphService = Depends(get_social_service),
):
    liked, like_count = await service.toggle_like(current_user.id, post_id)
    return LikeToggleResponse(post_id=post_id, liked=liked, like_count=like_count)


@app.post(
    "/api/v1/posts/{post_id}/comments",
    response_model=CommentCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Posts"],
    summary="Comment on a post",
)
async def create_comment(
    post_id: str,
    payload: CommentCreate,
    current_user: User = Depends(get_current_user),
    service: SocialGraphService = Depends(get_social_service),
):
    """
    Add a comment, or a reply when parent_id names a comment on the same post

    The post's comment_count is incremented with the insert.
    """
    comment, comment_count = await service.add_comment(
        current_user.id, post_id, payload.text, payload.parent_id
    )
    return CommentCreatedResponse(
        comment=CommentResponse.from_model(comment),
        comment_count=comment_count,
    )


# Feed endpoints
@app.get(
    "/api/v1/feed",
    response_model=FeedResponse,
    tags=["Feed"],
    summary="Get home timeline",
)
async def get_feed(
    page: int = Query(0, ge=0, description="Page number (0-indexed)"),
    limit: int = Query(
        settings.DEFAULT_PAGE_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="Items per page"
    ),
    current_user: User = Depends(get_current_user),
    reader: TimelineReader = Depends(get_timeline_reader),
):
    """
    Get the current user's timeline, newest first

    Posts carry liked_by_current_user for the caller.
    """
    feed = await reader.read_page(current_user.id, page, limit, viewer_id=current_user.id)
    liked = set(feed.liked_post_ids)

    return FeedResponse(
        posts=[PostResponse.from_model(p, liked=p.id in liked) for p in feed.posts],
        has_more=feed.has_more,
        page=page,
        page_size=limit,
    )


@app.post(
    "/api/v1/feed/refresh",
    response_model=FeedRefreshResponse,
    tags=["Feed"],
    summary="Rebuild timeline",
)
async def refresh_feed(
    current_user: User = Depends(get_current_user),
    reader: TimelineReader = Depends(get_timeline_reader),
):
    """
    Rebuild the current user's timeline from their own and followed users' posts

    Useful after following new users; expires after TIMELINE_TTL.
    """
    total = await reader.rebuild(
        current_user.id,
        limit=settings.TIMELINE_REBUILD_LIMIT,
        ttl=settings.TIMELINE_TTL,
    )
    return FeedRefreshResponse(message="Feed refreshed successfully", total_items=total)


# Trending endpoints
@app.get(
    "/api/v1/trending",
    response_model=TrendingResponse,
    tags=["Trending"],
    summary="Top hashtags",
)
async def get_trending(
    limit: int = Query(
        settings.TRENDING_DEFAULT_LIMIT,
        ge=1,
        le=settings.TRENDING_MAX_LIMIT,
        description="Number of hashtags"
    ),
    trending: TrendingAggregator = Depends(get_trending_aggregator),
):
    tags = await trending.top(limit)
    return TrendingResponse(tags=[TrendingTagResponse.from_model(t) for t in tags])


# Social endpoints
@app.post(
    "/api/v1/follow/{user_id}",
    response_model=FollowToggleResponse,
    tags=["Social"],
    summary="Toggle follow",
)
async def toggle_follow(
    user_id: str,
    current_user: User = Depends(get_current_user),
    service: SocialGraphService = Depends(get_social_service),
):
    """
    Follow or unfollow a user

    Timelines are not backfilled or pruned; use /api/v1/feed/refresh.
    """
    is_following, follower_count = await service.toggle_follow(current_user.id, user_id)
    return FollowToggleResponse(is_following=is_following, follower_count=follower_count)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "timeline_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
