"""Pydantic models for the enrichment pipeline.

Defines data structures for:
- Enrichment requests (EntityReference)
- Per-resolver factual results (FactBundle)
- The extracted generator payload (GenerationResult)
- The merged, normalized output (EnrichedRecord) and its trace

Record keys are camelCase on the wire (`birthYear`, `imageUrl`); Python
attributes are snake_case.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# Record invariants
# =============================================================================

MIN_TAGS = 2
MAX_TAGS = 6
MAX_TAG_LENGTH = 32
TAG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"

MIN_SUMMARY_LENGTH = 40
MAX_SUMMARY_LENGTH = 600
SUMMARY_NOT_ESTABLISHED = "Not established: no verified summary is available for this entry."

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "webp")
IMAGE_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*\.(?:jpg|jpeg|png|webp)$"

# href value when no resolver produced a verified URL
NO_REFERENCE_HREF = "#"

_TAG_RE = re.compile(TAG_PATTERN)
_IMAGE_RE = re.compile(IMAGE_PATTERN)


class EntityType(str, Enum):
    """Catalog entry types."""
    PERSON = "person"
    PROJECT = "project"
    ORGANIZATION = "organization"
    TOPIC = "topic"
    BOOK = "book"
    MOVIE = "movie"
    CONCEPT = "concept"


class FactSource(str, Enum):
    """Factual providers consulted by the resolvers."""
    WIKIPEDIA = "wikipedia"       # Page summary endpoint (canonical URL)
    WIKIDATA = "wikidata"         # Entity claims (dates, people, identifiers)
    OPEN_LIBRARY = "openlibrary"  # Library catalog search (books)


# Factual fields owned by the resolvers, per entity type. The generator is
# never asked for these and its values for them are never used.
FACT_FIELDS_BY_TYPE: Dict[EntityType, Tuple[str, ...]] = {
    EntityType.PERSON: ("birth_year", "death_year"),
    EntityType.BOOK: ("authors", "published_year", "publisher", "isbn", "language"),
    EntityType.MOVIE: ("release_year", "directors"),
    EntityType.ORGANIZATION: ("founded_year",),
    EntityType.PROJECT: ("founded_year",),
    EntityType.TOPIC: (),
    EntityType.CONCEPT: (),
}

_ALL_TYPED_FACT_FIELDS: Tuple[str, ...] = tuple(
    sorted({f for fields in FACT_FIELDS_BY_TYPE.values() for f in fields})
)

# Fields every type takes from the resolvers only
COMMON_FACT_FIELDS: Tuple[str, ...] = ("canonical_url", "image_url")

# Source precedence when several bundles define the same field
SOURCE_PRIORITY: Tuple[FactSource, ...] = (
    FactSource.WIKIDATA,
    FactSource.WIKIPEDIA,
    FactSource.OPEN_LIBRARY,
)

# canonical_url precedence differs: the encyclopedia page is the reference link
HREF_SOURCE_PRIORITY: Tuple[FactSource, ...] = (
    FactSource.WIKIPEDIA,
    FactSource.OPEN_LIBRARY,
    FactSource.WIKIDATA,
)


class EntityReference(BaseModel):
    """Request to enrich one catalog entry.

    `known_fields` carries values the editor already has (camelCase keys).
    They are passed to the generator as context only.
    """
    model_config = ConfigDict(extra='forbid', frozen=True)

    title: str = Field(..., min_length=1, max_length=300)
    type: EntityType = EntityType.TOPIC
    known_fields: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v: Any) -> Any:
        if isinstance(v, str):
            return " ".join(v.split())
        return v

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("known_fields", mode="before")
    @classmethod
    def _drop_empty_known(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {
                k: val for k, val in v.items()
                if val is not None and val != "" and val != []
            }
        return v

    @property
    def fact_fields(self) -> Tuple[str, ...]:
        return FACT_FIELDS_BY_TYPE[self.type]


class FactBundle(BaseModel):
    """Facts returned by one Source Resolver.

    `queried` names every field the resolver definitively looked up. A field
    that is queried but None means "looked up, absent" (for a person's
    death year: alive or unknown). A field not in `queried` was never looked
    up and carries no information.
    """
    model_config = ConfigDict(extra='forbid')

    source: FactSource
    found: bool = False
    identifier: Optional[str] = None  # QID, page title or catalog work key

    canonical_url: Optional[str] = None
    image_url: Optional[str] = None

    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    founded_year: Optional[int] = None
    published_year: Optional[int] = None
    release_year: Optional[int] = None

    authors: Optional[List[str]] = None
    directors: Optional[List[str]] = None
    publisher: Optional[str] = None
    isbn: Optional[str] = None
    language: Optional[str] = None

    queried: Set[str] = Field(default_factory=set)

    @model_validator(mode="after")
    def _values_imply_queried(self) -> "FactBundle":
        for name in COMMON_FACT_FIELDS + _ALL_TYPED_FACT_FIELDS:
            if getattr(self, name) is not None:
                self.queried.add(name)
        return self

    @classmethod
    def not_found(cls, source: FactSource) -> "FactBundle":
        return cls(source=source, found=False)

    def defines(self, field: str) -> bool:
        return getattr(self, field, None) is not None

    def has_queried(self, field: str) -> bool:
        return field in self.queried


class GenerationResult(BaseModel):
    """Generator payload after extraction.

    Extra keys are kept in `model_extra` for diagnostics but never merged.
    Field coercion is lenient; the normalizer enforces the invariants.
    """
    model_config = ConfigDict(extra='allow')

    type: Optional[str] = None
    title: Optional[str] = None
    href: Optional[str] = None
    image: Optional[str] = None
    summary: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [t for t in v.split(",")]
        if isinstance(v, (list, tuple)):
            return [str(t) for t in v if t is not None]
        return []

    @field_validator("type", "title", "href", "image", "summary", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Optional[str]:
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (int, float)):
            return str(v)
        return None


class EnrichedRecord(BaseModel):
    """Final merged, normalized catalog record.

    Type-conditional factual fields are only set when the resolvers queried
    them; `to_record()` drops unset fields so "not queried" is an absent key
    and "queried, absent" is an explicit null.
    """
    model_config = ConfigDict(
        extra='forbid',
        populate_by_name=True,
        alias_generator=to_camel,
    )

    type: EntityType
    title: str = Field(..., min_length=1)
    href: str
    image: str
    image_url: Optional[str] = None
    summary: str
    tags: List[str]

    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    founded_year: Optional[int] = None
    published_year: Optional[int] = None
    release_year: Optional[int] = None
    authors: Optional[List[str]] = None
    directors: Optional[List[str]] = None
    publisher: Optional[str] = None
    isbn: Optional[str] = None
    language: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def _check_tags(cls, v: List[str]) -> List[str]:
        if not MIN_TAGS <= len(v) <= MAX_TAGS:
            raise ValueError(f"tags must have {MIN_TAGS}-{MAX_TAGS} entries, got {len(v)}")
        if len(set(v)) != len(v):
            raise ValueError("tags must be unique")
        for tag in v:
            if len(tag) > MAX_TAG_LENGTH or not _TAG_RE.match(tag):
                raise ValueError(f"invalid tag: {tag!r}")
        return v

    @field_validator("summary")
    @classmethod
    def _check_summary(cls, v: str) -> str:
        if len(v) < MIN_SUMMARY_LENGTH:
            raise ValueError("summary below minimum length")
        return v

    @field_validator("href")
    @classmethod
    def _check_href(cls, v: str) -> str:
        if v != NO_REFERENCE_HREF and not v.startswith(("https://", "http://")):
            raise ValueError(f"href must be a URL or {NO_REFERENCE_HREF!r}")
        return v

    @field_validator("image")
    @classmethod
    def _check_image(cls, v: str) -> str:
        if not _IMAGE_RE.match(v):
            raise ValueError(f"invalid image name: {v!r}")
        return v

    def to_record(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, omitting fields never set."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class EnrichmentTrace(BaseModel):
    """Diagnostics for one enrichment call."""
    model_config = ConfigDict(extra='forbid')

    title: str
    entity_type: EntityType
    schema_version: str
    model: Optional[str] = None
    states: List[str] = Field(default_factory=list)
    sources_found: Dict[str, bool] = Field(default_factory=dict)
    repairs: List[str] = Field(default_factory=list)
    ignored_generator_fields: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class CatalogSuggestion(BaseModel):
    """One library-catalog search hit."""
    model_config = ConfigDict(extra='ignore')

    key: str                          # Work key, e.g. "/works/OL45804W"
    title: str
    author_name: List[str] = Field(default_factory=list)
    first_publish_year: Optional[int] = None
    publisher: List[str] = Field(default_factory=list)
    isbn: List[str] = Field(default_factory=list)
    language: List[str] = Field(default_factory=list)
