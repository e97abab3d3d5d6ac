"""Product → Facebook / Instagram publish pipeline."""

import asyncio
import logging
from dataclasses import dataclass

from errors import NoImagesError, UnknownPlatformError
from graph import GraphClient, resolve_page_access
from images import select_images, social_images
from publisher import MetaPublisher, Sleep
from store import Product
from utils import PLATFORMS

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    platform: str
    id: str

    def to_dict(self) -> dict:
        return {"ok": True, "platform": self.platform, "id": self.id}


async def publish_product(
    product: Product,
    platform: str,
    graph: GraphClient,
    scheduled_at: int | None = None,
    sleep: Sleep = asyncio.sleep,
) -> PublishResult:
    """Order images, resolve page access, then run the platform choreography.

    scheduled_at (unix seconds) hands scheduling to Meta instead of posting now.
    """
    if platform not in PLATFORMS:
        raise UnknownPlatformError(f"Unknown platform: {platform}")

    images = select_images(social_images(product), platform)
    if not images:
        raise NoImagesError("Product has no images available for posting")

    access = await resolve_page_access(graph)
    publisher = MetaPublisher(graph, access, sleep=sleep)

    logger.info("Publishing product %s to %s with %d images", product.id, platform, len(images))
    if platform == "facebook":
        post_id = await publisher.post_facebook(product, images, scheduled_at=scheduled_at)
    else:
        post_id = await publisher.post_instagram(product, images, scheduled_at=scheduled_at)
    return PublishResult(platform=platform, id=post_id)
