"""Image selection and ordering for social posts.

Picks the product images a post may carry: drops images without a URL or
opted out of the target platform, pins the main image first, and caps the
list at Meta's 10-image limit for multi-photo and carousel posts.
"""

from store import Product, ProductImage

MAX_IMAGES = 10


def social_images(product: Product) -> list[ProductImage]:
    """Product images with the dedicated ad image (if any) prepended as main."""
    images = list(product.images)
    ad = product.ad_image
    if ad is not None and ad.url:
        images.insert(0, ProductImage(
            url=ad.url,
            is_main=True,
            uploaded_at=ad.uploaded_at,
            publish_fb=True,
            publish_ig=True,
        ))
    return images


def _allowed_on(image: ProductImage, platform: str | None) -> bool:
    if platform == "facebook":
        return image.publish_fb
    if platform == "instagram":
        return image.publish_ig
    return True


def select_images(
    images: list[ProductImage],
    platform: str | None = None,
    limit: int = MAX_IMAGES,
) -> list[ProductImage]:
    """Order images for posting: main images first, the rest in original order.

    Only the main flag moves an image; everything else keeps its position
    relative to its neighbours. Upload timestamps are not consulted.
    """
    candidates = [
        (index, img) for index, img in enumerate(images)
        if img.url and _allowed_on(img, platform)
    ]
    candidates.sort(key=lambda pair: (0 if pair[1].is_main else 1, pair[0]))
    return [img for _, img in candidates[:limit]]
