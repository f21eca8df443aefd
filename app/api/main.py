"""FastAPI application for the catalog editor.

This module provides the HTTP API layer that:
- Enriches a title into a catalog record via /autofill
- Publishes, lists and deletes catalog items via /items
- Reports service health via /health

Environment:
- CATALOG_CONFIG: optional YAML config (`enrichment:` section)
- ITEMS_DB_PATH: SQLite file for published items
- ADMIN_TOKEN: shared secret for item writes (open when unset)
- AUTOFILL_RATE_LIMIT: slowapi limit string for /autofill
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.api.models import (
    AutofillError,
    AutofillRequest,
    CreateItemResponse,
    HealthResponse,
    ItemsResponse,
    OkResponse,
)
from catalog.enrichment.config import EnrichmentConfig
from catalog.enrichment.enrichment_service import EnrichmentService
from catalog.enrichment.exceptions import GenerationFailed
from catalog.enrichment.models import EntityReference
from catalog.items.store import ItemStore, ItemValidationError
from catalog.utils.logger import LoggerManager

# Initialize logger
logger = LoggerManager.get_logger(__name__)

AUTOFILL_RATE_LIMIT = os.getenv("AUTOFILL_RATE_LIMIT", "30/minute")

# Rate limiter keyed by client address
limiter = Limiter(key_func=get_remote_address)

# Initialize FastAPI app
app = FastAPI(
    title="Catalog Enrichment API",
    description="Autofill and publishing backend for the reference catalog editor",
    version="0.1.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "x-admin-token"],
    max_age=86400,
)

# Global state (initialized on startup)
enrichment_service: Optional[EnrichmentService] = None
item_store: Optional[ItemStore] = None


def load_config() -> EnrichmentConfig:
    config_path = os.getenv("CATALOG_CONFIG")
    if config_path:
        return EnrichmentConfig.from_yaml(config_path)
    return EnrichmentConfig.from_env()


def get_enrichment_service() -> EnrichmentService:
    """Get enrichment service instance.

    Raises:
        HTTPException: If the service is not initialized
    """
    if enrichment_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enrichment service not initialized",
        )
    return enrichment_service


def get_item_store() -> ItemStore:
    """Get item store instance.

    Raises:
        HTTPException: If the item store is not initialized
    """
    if item_store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Item store not initialized",
        )
    return item_store


def require_admin(x_admin_token: Optional[str] = Header(None)) -> None:
    """Shared-secret gate for item writes; open when ADMIN_TOKEN is unset."""
    required = os.getenv("ADMIN_TOKEN")
    if required and x_admin_token != required:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@app.on_event("startup")
async def startup_event():
    """Initialize application state on startup."""
    global enrichment_service, item_store

    items_db = Path(os.getenv("ITEMS_DB_PATH", "data/items/items.db"))
    items_db.parent.mkdir(parents=True, exist_ok=True)

    config = load_config()
    enrichment_service = EnrichmentService(config)
    item_store = ItemStore(items_db)

    logger.info(
        "API started",
        extra={"items_db": str(items_db), "model": config.model},
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    if item_store is not None:
        item_store.close()
    if enrichment_service is not None:
        await enrichment_service.aclose()
    logger.info("API shutdown")


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    item_store_ok = item_store is not None
    config = enrichment_service.config if enrichment_service is not None else None
    generation_configured = bool(config and config.openai_api_key)

    if item_store_ok and generation_configured:
        overall_status = "healthy"
    elif item_store_ok or generation_configured:
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    return HealthResponse(
        status=overall_status,
        item_store_ok=item_store_ok,
        generation_configured=generation_configured,
        model=config.model if config else None,
    )


@app.post(
    "/autofill",
    responses={status.HTTP_502_BAD_GATEWAY: {"model": AutofillError}},
)
@limiter.limit(AUTOFILL_RATE_LIMIT)
async def autofill(request: Request, payload: AutofillRequest):
    """Enrich a title into a complete catalog record.

    Rate limited per client address (AUTOFILL_RATE_LIMIT).

    Args:
        request: FastAPI Request object (for rate limiting)
        payload: Title, type and already-known values

    Returns:
        The record with camelCase keys; on generation failure a 502 carrying
        the upstream status and body
    """
    service = get_enrichment_service()
    reference = EntityReference(
        title=payload.title,
        type=payload.type,
        known_fields=payload.current,
    )

    try:
        record = await service.enrich(reference)
    except GenerationFailed as e:
        logger.error(
            "Autofill generation failed",
            extra={"title": reference.title, "upstream_status": e.status_code},
        )
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=e.to_detail())

    return record.to_record()


@app.get("/items", response_model=ItemsResponse)
def list_items():
    """List published items, newest first."""
    store = get_item_store()
    return ItemsResponse(items=store.list_items())


@app.post(
    "/items",
    response_model=CreateItemResponse,
    dependencies=[Depends(require_admin)],
)
def create_item(item: Dict[str, Any] = Body(...)):
    """Publish an item.

    Raises:
        HTTPException: 400 if type, title or href is missing
    """
    store = get_item_store()
    try:
        item_id = store.create(item)
    except ItemValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return CreateItemResponse(id=item_id)


@app.delete(
    "/items",
    response_model=OkResponse,
    dependencies=[Depends(require_admin)],
)
def delete_item(
    key: Optional[str] = Query(None, description="Item key (items/<id>.json)"),
    item_id: Optional[str] = Query(None, alias="id", description="Item id"),
):
    """Delete an item by key (preferred) or id.

    Raises:
        HTTPException: 400 without key/id
    """
    store = get_item_store()
    try:
        deleted = store.delete(key=key, item_id=item_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not deleted:
        # Deleting an absent item is a no-op
        logger.info("Delete matched no item", extra={"key": key, "item_id": item_id})
    return OkResponse()
