"""FastAPI backend for the admin panel's social publishing.

JSON endpoints for immediate / Meta-scheduled publishing and for managing
locally scheduled posts. A background task dispatches due scheduled posts.
"""

import asyncio
import contextlib
import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

# Add project root to path so pipeline modules resolve
PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT))

from errors import (
    InvalidScheduleError, ScheduleInProgressError, ScheduleNotFoundError,
)
from graph import GraphClient
from pipeline import PublishResult, publish_product
from scheduler import Dispatcher
from store import MemoryStore, Product, Session, load_store
from utils import (
    PLATFORMS, SCHEDULER_INTERVAL, STORE_SEED_PATH, STORE_STATE_PATH,
    parse_schedule,
)


logger = logging.getLogger(__name__)


async def _publish_with_fresh_client(product: Product, platform: str) -> PublishResult:
    async with GraphClient() as graph:
        return await publish_product(product, platform, graph)


STORE = load_store(STORE_SEED_PATH, STORE_STATE_PATH)
DISPATCHER = Dispatcher(STORE, _publish_with_fresh_client)


# --- App ---

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    task = None
    if SCHEDULER_INTERVAL > 0:
        task = asyncio.create_task(DISPATCHER.run_forever(SCHEDULER_INTERVAL))
        logger.info("Scheduler started, interval %ss", SCHEDULER_INTERVAL)
    yield
    if task is not None:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_error(request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error(request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


# --- Models ---

class PublishRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    platform: str | None = None
    product_id: str | None = Field(None, alias="productId")
    token: str | None = None
    scheduled_at: str | None = Field(None, alias="scheduledAt")

class DispatchRequest(BaseModel):
    token: str | None = None


# --- Dependencies ---

def get_store() -> MemoryStore:
    return STORE


def get_dispatcher() -> Dispatcher:
    return DISPATCHER


async def get_graph() -> AsyncGenerator[GraphClient, None]:
    async with GraphClient() as graph:
        yield graph


# --- Helpers ---

def _require_admin(store: MemoryStore, token: str | None) -> Session:
    session = store.get_session(token) if token else None
    if session is None or not session.is_admin():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return session


def _require_fields(req: PublishRequest) -> None:
    if not (req.platform and req.product_id and req.token):
        raise HTTPException(status_code=400, detail="platform, productId and token are required")


def _parse_schedule(value: str | None) -> int | None:
    try:
        return parse_schedule(value)
    except InvalidScheduleError as e:
        raise HTTPException(status_code=400, detail=str(e))


# --- Endpoints ---

@app.post("/api/social")
async def publish(
    req: PublishRequest,
    store: MemoryStore = Depends(get_store),
    graph: GraphClient = Depends(get_graph),
) -> dict:
    _require_fields(req)
    session = _require_admin(store, req.token)

    product = store.get_product(req.product_id, user_id=session.user_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    if req.platform not in PLATFORMS:
        raise HTTPException(status_code=400, detail=f"Unknown platform: {req.platform}")
    scheduled_at = _parse_schedule(req.scheduled_at)

    try:
        result = await publish_product(product, req.platform, graph, scheduled_at=scheduled_at)
    except Exception as e:
        logger.exception("Social publish failed for product %s", product.id)
        raise HTTPException(status_code=500, detail=str(e) or "Publishing failed")
    return result.to_dict()


@app.get("/api/social/scheduled")
async def list_scheduled(
    token: str | None = None,
    store: MemoryStore = Depends(get_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> list[dict]:
    session = _require_admin(store, token)
    items = []
    for post in dispatcher.list_scheduled(session.user_id):
        product = store.get_product(post.product_id)
        items.append({
            "id": post.id,
            "productId": post.product_id,
            "productName": product.name if product else "Unknown product",
            "platform": post.platform,
            "scheduledAt": post.scheduled_at,
            "status": post.status,
            "error": post.error,
        })
    return items


@app.post("/api/social/scheduled")
async def create_scheduled(
    req: PublishRequest,
    store: MemoryStore = Depends(get_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict:
    _require_fields(req)
    session = _require_admin(store, req.token)

    if store.get_product(req.product_id, user_id=session.user_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")
    if req.platform not in PLATFORMS:
        raise HTTPException(status_code=400, detail=f"Unknown platform: {req.platform}")
    scheduled_at = _parse_schedule(req.scheduled_at)
    if scheduled_at is None:
        raise HTTPException(status_code=400, detail="scheduledAt is required")

    try:
        post = dispatcher.schedule(session.user_id, req.product_id, req.platform, scheduled_at)
    except InvalidScheduleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": post.id}


@app.delete("/api/social/scheduled/{post_id}")
async def remove_scheduled(
    post_id: str,
    token: str | None = None,
    store: MemoryStore = Depends(get_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict:
    session = _require_admin(store, token)
    try:
        dispatcher.remove(session.user_id, post_id)
    except ScheduleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ScheduleInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ok": True}


@app.post("/api/social/scheduled/{post_id}/retry")
async def retry_scheduled(
    post_id: str,
    req: DispatchRequest,
    store: MemoryStore = Depends(get_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict:
    session = _require_admin(store, req.token)
    try:
        post = dispatcher.retry(session.user_id, post_id)
    except ScheduleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ScheduleInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ok": True, "status": post.status}


@app.post("/api/social/dispatch")
async def dispatch(
    req: DispatchRequest,
    store: MemoryStore = Depends(get_store),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict:
    _require_admin(store, req.token)
    return {"dispatched": await dispatcher.run_due()}
