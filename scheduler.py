"""Dispatcher for locally scheduled social posts.

Each record is attempted at most once: success deletes it, failure marks it
failed with the error message and leaves it for a human to re-trigger or
remove. There is no idempotency key, so a blind retry could duplicate a post.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from errors import (
    InvalidScheduleError, ScheduleInProgressError, ScheduleNotFoundError,
    UnknownPlatformError,
)
from pipeline import PublishResult
from store import STATUS_FAILED, STATUS_PROCESSING, STATUS_SCHEDULED, MemoryStore, Product, ScheduledPost
from utils import PLATFORMS

logger = logging.getLogger(__name__)

Publish = Callable[[Product, str], Awaitable[PublishResult]]


class Dispatcher:
    def __init__(
        self,
        store: MemoryStore,
        publish: Publish,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.publish = publish
        self.clock = clock

    def schedule(self, user_id: str, product_id: str, platform: str, scheduled_at: int) -> ScheduledPost:
        if platform not in PLATFORMS:
            raise UnknownPlatformError(f"Unknown platform: {platform}")
        if scheduled_at <= self.clock():
            raise InvalidScheduleError("Schedule time must be in the future")
        post = self.store.insert_scheduled(user_id, product_id, platform, scheduled_at)
        logger.info("Scheduled %s post %s for product %s at %d", platform, post.id, product_id, scheduled_at)
        return post

    def list_scheduled(self, user_id: str) -> list[ScheduledPost]:
        return self.store.list_scheduled(user_id)

    def remove(self, user_id: str, post_id: str) -> None:
        post = self.store.get_scheduled(post_id)
        if post is None or post.user_id != user_id:
            raise ScheduleNotFoundError("Scheduled post not found")
        if post.status == STATUS_PROCESSING:
            raise ScheduleInProgressError("Post is already being published")
        self.store.delete_scheduled(post_id)

    def retry(self, user_id: str, post_id: str) -> ScheduledPost:
        """Requeue a failed record so the next pass publishes it again."""
        post = self.store.get_scheduled(post_id)
        if post is None or post.user_id != user_id:
            raise ScheduleNotFoundError("Scheduled post not found")
        if post.status == STATUS_PROCESSING:
            raise ScheduleInProgressError("Post is already being published")
        if post.status == STATUS_FAILED:
            self.store.requeue_scheduled(post_id)
            logger.info("Scheduled post %s requeued after failure", post_id)
        return post

    def due(self) -> list[ScheduledPost]:
        now = self.clock()
        return [
            p for p in self.store.list_scheduled()
            if p.status == STATUS_SCHEDULED and p.scheduled_at <= now
        ]

    async def run_due(self) -> int:
        """Publish every record whose time has come. Returns how many were attempted."""
        attempted = 0
        for post in self.due():
            if await self.publish_scheduled(post.id):
                attempted += 1
        return attempted

    async def publish_scheduled(self, post_id: str) -> bool:
        post = self.store.claim_scheduled(post_id, self.clock())
        if post is None:
            return False

        try:
            product = self.store.get_product(post.product_id, user_id=post.user_id)
            if product is None:
                raise ScheduleNotFoundError("Product not found")
            result = await self.publish(product, post.platform)
        except Exception as e:
            logger.exception("Scheduled post %s failed", post.id)
            self.store.mark_failed(post.id, str(e) or "Publishing failed")
        else:
            logger.info("Scheduled post %s published as %s", post.id, result.id)
            self.store.delete_scheduled(post.id)
        return True

    async def run_forever(self, interval: float) -> None:
        """Trigger due posts every ``interval`` seconds until cancelled."""
        while True:
            try:
                await self.run_due()
            except Exception:
                logger.exception("Scheduler pass failed")
            await asyncio.sleep(interval)
