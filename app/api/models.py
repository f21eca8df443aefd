"""Request and response models for FastAPI endpoints.

These Pydantic models define the API contract between the catalog editor
and the server.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog.enrichment.models import EntityType


class AutofillRequest(BaseModel):
    """Request to /autofill endpoint.

    Attributes:
        title: Entry title to enrich
        type: Entry type (defaults to topic)
        current: Values the editor already has, used as generation context
    """

    title: str = Field(
        ..., min_length=1, max_length=300, pattern=r"\S", description="Entry title"
    )
    type: EntityType = Field(EntityType.TOPIC, description="Entry type")
    current: Dict[str, Any] = Field(
        default_factory=dict, description="Already-known field values (camelCase keys)"
    )


class AutofillError(BaseModel):
    """502 body when generation fails.

    Attributes:
        error: Human-readable failure description
        upstream_status: Provider HTTP status, if there was one
        upstream_body: Raw provider body, if there was one
    """

    error: str
    upstream_status: Optional[int] = None
    upstream_body: Optional[str] = None


class ItemsResponse(BaseModel):
    """Response from GET /items."""

    ok: bool = True
    items: List[Dict[str, Any]] = Field(default_factory=list)


class CreateItemResponse(BaseModel):
    ok: bool = True
    id: str


class OkResponse(BaseModel):
    ok: bool = True


class HealthResponse(BaseModel):
    """Response from /health endpoint.

    Attributes:
        status: Health status (healthy, degraded, unhealthy)
        item_store_ok: Whether the item store is operational
        generation_configured: Whether a generation API key is set
    """

    model_config = ConfigDict(protected_namespaces=())

    status: str = Field(..., description="Overall health status")
    item_store_ok: bool = Field(..., description="Item store operational status")
    generation_configured: bool = Field(..., description="Generation credentials present")
    model: Optional[str] = Field(None, description="Generation model name")
