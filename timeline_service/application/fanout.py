"""
Fan-out on write: push a new post reference into every audience timeline
"""
from typing import List
import logging

from ..cache import timeline_key
from ..domain.models import FanOutResult
from ..domain.repositories import IFollowRepository, IOrderedSetStore
from ..errors import DependencyError

logger = logging.getLogger(__name__)


class FanOutWriter:
    """Writes one timeline entry per recipient (author + followers)"""

    def __init__(
        self,
        follows: IFollowRepository,
        store: IOrderedSetStore,
        max_timeline_length: int = 0,
    ):
        self.follows = follows
        self.store = store
        self.max_timeline_length = max_timeline_length

    async def audience(self, author_id: str) -> List[str]:
        """Author first, then current followers, without duplicates"""
        follower_ids = await self.follows.find_follower_ids(author_id)
        recipients = [author_id]
        seen = {author_id}
        for follower_id in follower_ids:
            if follower_id not in seen:
                seen.add(follower_id)
                recipients.append(follower_id)
        return recipients

    async def fan_out(self, post_id: str, author_id: str, score: float) -> FanOutResult:
        """
        Add post_id with the same score to every recipient's timeline

        All writes go out as one pipelined batch. Re-running with the same
        arguments only rewrites identical members.

        Raises:
            DependencyError: if the follower lookup or the batch write fails;
                a failed lookup still writes the author's own entry first
        """
        own_entry = (timeline_key(author_id), score, post_id)
        try:
            recipients = await self.audience(author_id)
        except DependencyError as e:
            # The author's own entry needs no follower data
            logger.warning(f"Follower lookup failed for {author_id}, writing own timeline only: {e}")
            await self.store.zadd_batch([own_entry], trim_to=self.max_timeline_length)
            raise

        entries = [(timeline_key(user_id), score, post_id) for user_id in recipients]

        written = await self.store.zadd_batch(entries, trim_to=self.max_timeline_length)

        logger.info(
            f"Fanned out post {post_id} by {author_id} to {written} timelines "
            f"({len(recipients) - 1} followers)"
        )
        return FanOutResult(post_id=post_id, recipients=len(recipients), written=written)
