"""Product social publishing CLI.

Pick a product from the store seed → order images → publish to FB or IG.
"""

import asyncio
import logging
import sys


def _validate_env() -> None:
    """Fail fast if any required env vars are missing."""
    from utils import missing_env, STORE_SEED_PATH

    missing = missing_env()
    if not STORE_SEED_PATH:
        missing.append("STORE_SEED_PATH")
    if missing:
        print(f"Missing environment variables: {', '.join(missing)}")
        print("Copy .env.example to .env and fill in your credentials.")
        sys.exit(1)


def _validate_platform(platform: str) -> str:
    from utils import PLATFORMS

    platform = platform.strip().lower()
    if platform not in PLATFORMS:
        print(f"Platform must be one of: {', '.join(PLATFORMS)}")
        sys.exit(1)
    return platform


async def publish_from_store(product_id: str, platform: str) -> dict:
    """Full pipeline: store lookup → images → page access → publish."""
    # Late imports so dotenv loads before any module reads env vars
    from errors import PublishError
    from graph import GraphClient
    from images import select_images, social_images
    from pipeline import publish_product
    from store import load_store
    from utils import STORE_SEED_PATH

    store = load_store(STORE_SEED_PATH)
    product = store.get_product(product_id)
    if product is None:
        print(f"Product {product_id} not found in {STORE_SEED_PATH}.")
        return {}

    images = select_images(social_images(product), platform)
    print(f"  Product: {product.name}")
    print(f"  Images selected: {len(images)}")
    for img in images:
        print(f"    {'*' if img.is_main else '-'} {img.url}")

    async with GraphClient() as graph:
        try:
            print(f"Posting to {platform}...")
            result = await publish_product(product, platform, graph)
        except PublishError as e:
            print(f"Publishing failed: {e}")
            return {}

    print(f"  {platform}: {result.id}")
    return result.to_dict()


def main() -> None:
    from dotenv import load_dotenv
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    _validate_env()

    product_id = input("Product id: ").strip()
    platform = _validate_platform(input("Platform (facebook/instagram): "))

    result = asyncio.run(publish_from_store(product_id, platform))
    if result:
        print("\nDone!")


if __name__ == "__main__":
    main()
