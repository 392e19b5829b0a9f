"""
Trending hashtags: all-time counters, no decay
"""
from typing import List
import re

from ..cache import TRENDING_KEY
from ..domain.models import TrendingTag
from ..domain.repositories import IOrderedSetStore

HASHTAG_PATTERN = re.compile(r"#(\w+)")


def extract_hashtags(text: str) -> List[str]:
    """Unique hashtags in first-seen order, lower-cased"""
    if not text:
        return []

    tags = []
    for match in HASHTAG_PATTERN.findall(text):
        tag = match.lower()
        if tag not in tags:
            tags.append(tag)
    return tags


class TrendingAggregator:
    """Hashtag popularity ranking"""

    def __init__(self, store: IOrderedSetStore, key: str = TRENDING_KEY):
        self.store = store
        self.key = key

    async def bump(self, tag: str) -> float:
        """Increment a tag's score by 1 and return the new score"""
        return await self.store.zincrby(self.key, 1, tag.lower())

    async def top(self, n: int) -> List[TrendingTag]:
        """The n highest-scoring tags, descending"""
        if n < 1:
            return []
        pairs = await self.store.zrevrange_with_scores(self.key, 0, n - 1)
        return [TrendingTag(tag=tag, score=score) for tag, score in pairs]
