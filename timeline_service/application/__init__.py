"""
Application services - Business logic layer
"""
from .fanout import FanOutWriter
from .ingest import PostIngestService
from .social import SocialGraphService
from .timeline import TimelineReader
from .trending import TrendingAggregator, extract_hashtags


__all__ = [
    "FanOutWriter",
    "PostIngestService",
    "SocialGraphService",
    "TimelineReader",
    "TrendingAggregator",
    "extract_hashtags",
]
