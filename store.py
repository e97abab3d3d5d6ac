"""In-process catalog, session, and scheduled-post store.

Stands in for the shop's external document database. Products and sessions
are seeded from a JSON file (camelCase keys, as exported by the admin panel);
scheduled posts are optionally persisted to a JSON state file so they survive
a restart.
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

STATUS_SCHEDULED = "scheduled"
STATUS_PROCESSING = "processing"
STATUS_FAILED = "failed"


@dataclass
class ProductImage:
    url: str | None = None
    is_main: bool = False
    uploaded_at: int | None = None
    publish_fb: bool = True
    publish_ig: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "ProductImage":
        return cls(
            url=data.get("url"),
            is_main=bool(data.get("isMain", False)),
            uploaded_at=data.get("uploadedAt"),
            publish_fb=data.get("publishFb") is not False,
            publish_ig=data.get("publishIg") is not False,
        )


@dataclass
class Product:
    id: str
    name: str
    opis: str | None = None
    opis_fb_insta: str | None = None
    opis_kp: str | None = None
    user_id: str | None = None
    images: list[ProductImage] = field(default_factory=list)
    ad_image: ProductImage | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        ad = data.get("adImage")
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            opis=data.get("opis"),
            opis_fb_insta=data.get("opisFbInsta"),
            opis_kp=data.get("opisKp"),
            user_id=data.get("userId"),
            images=[ProductImage.from_dict(img) for img in data.get("images") or []],
            ad_image=ProductImage.from_dict(ad) if ad else None,
        )


@dataclass
class Session:
    token: str
    user_id: str
    role: str = "admin"
    expires_at: float | None = None

    def is_admin(self, now: float | None = None) -> bool:
        if self.role != "admin":
            return False
        if self.expires_at is None:
            return True
        return (time.time() if now is None else now) < self.expires_at


@dataclass
class ScheduledPost:
    id: str
    user_id: str
    product_id: str
    platform: str
    scheduled_at: int
    status: str = STATUS_SCHEDULED
    error: str | None = None
    attempts: int = 0
    created_at: float = 0.0
    last_attempt_at: float | None = None


class MemoryStore:
    def __init__(self, state_path: str | Path | None = None):
        self.products: dict[str, Product] = {}
        self.sessions: dict[str, Session] = {}
        self.scheduled: dict[str, ScheduledPost] = {}
        self.state_path = Path(state_path) if state_path else None
        if self.state_path:
            self._load_state()

    # --- Catalog and sessions ---

    def add_product(self, product: Product) -> Product:
        self.products[product.id] = product
        return product

    def get_product(self, product_id: str, user_id: str | None = None) -> Product | None:
        """Look up a product; with user_id, only that owner's products match."""
        product = self.products.get(product_id)
        if product is None:
            return None
        if user_id is not None and product.user_id is not None and product.user_id != user_id:
            return None
        return product

    def add_session(self, session: Session) -> Session:
        self.sessions[session.token] = session
        return session

    def get_session(self, token: str) -> Session | None:
        return self.sessions.get(token)

    # --- Scheduled posts ---

    def insert_scheduled(self, user_id: str, product_id: str, platform: str, scheduled_at: int) -> ScheduledPost:
        post = ScheduledPost(
            id=uuid.uuid4().hex,
            user_id=user_id,
            product_id=product_id,
            platform=platform,
            scheduled_at=scheduled_at,
            created_at=time.time(),
        )
        self.scheduled[post.id] = post
        self._save_state()
        return post

    def get_scheduled(self, post_id: str) -> ScheduledPost | None:
        return self.scheduled.get(post_id)

    def list_scheduled(self, user_id: str | None = None) -> list[ScheduledPost]:
        posts = [p for p in self.scheduled.values() if user_id is None or p.user_id == user_id]
        return sorted(posts, key=lambda p: p.scheduled_at)

    def claim_scheduled(self, post_id: str, now: float) -> ScheduledPost | None:
        """Move a scheduled record to processing; None if it is not claimable.

        Only records still in the scheduled state can be claimed, so a
        record is dispatched at most once per trigger.
        """
        post = self.scheduled.get(post_id)
        if post is None or post.status != STATUS_SCHEDULED:
            return None
        post.status = STATUS_PROCESSING
        post.attempts += 1
        post.last_attempt_at = now
        post.error = None
        self._save_state()
        return post

    def mark_failed(self, post_id: str, error: str) -> None:
        post = self.scheduled.get(post_id)
        if post is None:
            return
        post.status = STATUS_FAILED
        post.error = error
        self._save_state()

    def requeue_scheduled(self, post_id: str) -> ScheduledPost | None:
        """Put a failed record back in the scheduled state; None if it is not failed."""
        post = self.scheduled.get(post_id)
        if post is None or post.status != STATUS_FAILED:
            return None
        post.status = STATUS_SCHEDULED
        post.error = None
        self._save_state()
        return post

    def delete_scheduled(self, post_id: str) -> None:
        if self.scheduled.pop(post_id, None) is not None:
            self._save_state()

    # --- Persistence ---

    def _load_state(self) -> None:
        if not self.state_path.exists():
            return
        with self.state_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        for item in data.get("scheduled", []):
            post = ScheduledPost(**item)
            # A restart mid-publish leaves nothing running for this record.
            if post.status == STATUS_PROCESSING:
                post.status = STATUS_FAILED
                post.error = post.error or "Interrupted while publishing"
            self.scheduled[post.id] = post

    def _save_state(self) -> None:
        if not self.state_path:
            return
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        with self.state_path.open("w", encoding="utf-8") as f:
            json.dump(
                {"scheduled": [asdict(p) for p in self.scheduled.values()]},
                f, ensure_ascii=False, indent=2,
            )


def load_store(seed_path: str | Path | None = None, state_path: str | Path | None = None) -> MemoryStore:
    """Build a store, seeding products and sessions from a JSON file if given."""
    store = MemoryStore(state_path=state_path)
    if not seed_path:
        return store

    path = Path(seed_path)
    if not path.exists():
        logger.warning("Store seed file not found: %s", path)
        return store

    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    for item in data.get("products", []):
        store.add_product(Product.from_dict(item))
    for item in data.get("sessions", []):
        store.add_session(Session(
            token=item["token"],
            user_id=str(item["userId"]),
            role=item.get("role", "admin"),
            expires_at=item.get("expiresAt"),
        ))
    logger.info("Loaded %d products and %d sessions from %s", len(store.products), len(store.sessions), path)
    return store
