"""Meta Graph API publisher for Facebook Pages and Instagram Business accounts.

Supports single-image and multi-image posts on both platforms. Uploads are
strictly sequential so attachment and carousel order match image order.
Instagram requires publicly accessible HTTPS image URLs.
"""

import asyncio
import json
import logging
from typing import Awaitable, Callable

from captions import resolve_caption
from errors import ContainerError, MediaNotReadyError, NoImagesError, NotLinkedError
from graph import GraphClient, PageAccess
from images import MAX_IMAGES
from store import Product, ProductImage

logger = logging.getLogger(__name__)

POLL_ATTEMPTS = 10
POLL_DELAY = 0.7

Sleep = Callable[[float], Awaitable[None]]


async def wait_for_container(
    graph: GraphClient,
    container_id: str,
    access_token: str,
    attempts: int = POLL_ATTEMPTS,
    delay: float = POLL_DELAY,
    sleep: Sleep = asyncio.sleep,
) -> None:
    """Poll until an Instagram media container finishes processing."""
    for attempt in range(1, attempts + 1):
        data = await graph.get(
            container_id,
            params={"fields": "status_code,status", "access_token": access_token},
        )
        status = data.get("status_code") or data.get("status")
        if status == "FINISHED":
            return
        if status == "ERROR":
            raise ContainerError(f"Instagram media container {container_id} is in ERROR state")
        logger.debug("Container %s is %s (attempt %d/%d)", container_id, status, attempt, attempts)
        if attempt < attempts:
            await sleep(delay)
    raise MediaNotReadyError(f"Media container {container_id} is not ready for publishing")


class MetaPublisher:
    def __init__(self, graph: GraphClient, access: PageAccess, sleep: Sleep = asyncio.sleep):
        self.graph = graph
        self.access = access
        self.sleep = sleep

    @property
    def token(self) -> str:
        return self.access.page_access_token

    async def post_facebook(
        self,
        product: Product,
        images: list[ProductImage],
        scheduled_at: int | None = None,
    ) -> str:
        """Upload photos unpublished, then attach them all to one feed post."""
        selected = images[:MAX_IMAGES]
        if not selected:
            raise NoImagesError("Product has no images available for posting")
        caption = resolve_caption(product)
        page_id = self.access.page_id

        photo_ids: list[str] = []
        for image in selected:
            result = await self.graph.post(
                f"{page_id}/photos",
                data={"url": image.url, "published": "false", "access_token": self.token},
            )
            photo_ids.append(result["id"])

        data: dict[str, str] = {"message": caption, "access_token": self.token}
        for i, pid in enumerate(photo_ids):
            data[f"attached_media[{i}]"] = json.dumps({"media_fbid": pid})
        if scheduled_at:
            data["published"] = "false"
            data["scheduled_publish_time"] = str(scheduled_at)

        result = await self.graph.post(f"{page_id}/feed", data=data)
        logger.info("Facebook post %s created for product %s with %d photos", result["id"], product.id, len(photo_ids))
        return result["id"]

    async def post_instagram(
        self,
        product: Product,
        images: list[ProductImage],
        scheduled_at: int | None = None,
    ) -> str:
        """Post to Instagram — single image or carousel."""
        ig_user_id = self.access.instagram_business_id
        if not ig_user_id:
            raise NotLinkedError("No Instagram Business account is linked to the Facebook Page")
        selected = images[:MAX_IMAGES]
        if not selected:
            raise NoImagesError("Product has no images available for posting")
        caption = resolve_caption(product)
        is_carousel = len(selected) > 1

        children: list[str] = []
        for image in selected:
            data = {"image_url": image.url, "access_token": self.token}
            if is_carousel:
                data["is_carousel_item"] = "true"
            elif caption:
                data["caption"] = caption
            result = await self.graph.post(f"{ig_user_id}/media", data=data)
            children.append(result["id"])

        creation_id = children[0]
        if is_carousel:
            data = {
                "media_type": "CAROUSEL",
                "children": ",".join(children),
                "access_token": self.token,
            }
            if caption:
                data["caption"] = caption
            result = await self.graph.post(f"{ig_user_id}/media", data=data)
            creation_id = result["id"]

        await wait_for_container(self.graph, creation_id, self.token, sleep=self.sleep)

        data = {"creation_id": creation_id, "access_token": self.token}
        if scheduled_at:
            data["publish_time"] = str(scheduled_at)
        result = await self.graph.post(f"{ig_user_id}/media_publish", data=data)
        logger.info("Instagram media %s published for product %s (%d images)", result["id"], product.id, len(children))
        return result["id"]
