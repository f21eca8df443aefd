"""Enrichment pipeline for catalog entries.

Turns a title and an entry type into a complete catalog record:
- Constrained generation: summary, tags and image placeholder from one
  structured-output call
- Factual resolvers: canonical URL (Wikipedia), dates, people and
  identifiers (Wikidata), library catalog data for books (Open Library)
- Reconciliation: resolver facts always override generated values
- Normalization: tag, image, summary and href repairs

Architecture:
-----------

    EntityReference
          |
          v
    EnrichmentService ----> ConstrainedGenerator (OpenAI Responses API)
          |          \
          |           +---> wikipedia_client  (summary, pageprops)
          |           +---> wikidata_client   (entity claims)
          |           +---> openlibrary_client (books only)
          v
    merge_fields -> normalize_record -> EnrichedRecord

Modules:
-------
- models: Pydantic models and record invariants
- config: EnrichmentConfig (explicit settings)
- schema: Structured-output JSON Schema and prompts
- generator: Constrained generation call
- extractor: Envelope shape matchers
- wikipedia_client / wikidata_client / openlibrary_client: Source resolvers
- normalizer: Deterministic repairs
- enrichment_service: Concurrent orchestration and merge
"""

from catalog.enrichment.config import EnrichmentConfig
from catalog.enrichment.enrichment_service import EnrichmentService, ReconcilerState
from catalog.enrichment.exceptions import GenerationFailed, UpstreamUnavailable
from catalog.enrichment.models import (
    EnrichedRecord,
    EnrichmentTrace,
    EntityReference,
    EntityType,
    FactBundle,
    FactSource,
)

__all__ = [
    "EnrichmentConfig",
    "EnrichmentService",
    "ReconcilerState",
    "GenerationFailed",
    "UpstreamUnavailable",
    "EnrichedRecord",
    "EnrichmentTrace",
    "EntityReference",
    "EntityType",
    "FactBundle",
    "FactSource",
]
