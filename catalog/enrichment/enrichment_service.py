"""Enrichment Service - reconciles generated and factual fields into one record.

Given an EntityReference, the service:
1. Dispatches the constrained generator and the factual resolvers concurrently
   (the Wikidata facts lookup runs after the cross-reference lookup, inside
   the same task)
2. Awaits all of them
3. Merges by field ownership: resolver values always win for factual fields,
   the generator supplies only summary, tags and the image placeholder
4. Normalizes and repairs the result (tags, image, summary, href)

Resolver failures and deadline misses degrade to "not found". A generator
failure, or a generator response with no extractable JSON, raises
GenerationFailed and no record is returned.

Usage:
------
from catalog.enrichment import EnrichmentConfig, EnrichmentService, EntityReference

async with EnrichmentService(EnrichmentConfig.from_env()) as service:
    record = await service.enrich(EntityReference(title="Ada Lovelace", type="person"))
    record.to_record()
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Tuple

import httpx
from openai import AsyncOpenAI
from pydantic import ValidationError

from catalog.enrichment.config import EnrichmentConfig
from catalog.enrichment.exceptions import GenerationFailed
from catalog.enrichment.extractor import extract_with_shape
from catalog.enrichment.generator import ConstrainedGenerator
from catalog.enrichment.models import (
    HREF_SOURCE_PRIORITY,
    SOURCE_PRIORITY,
    EnrichedRecord,
    EnrichmentTrace,
    EntityReference,
    EntityType,
    FactBundle,
    FactSource,
    GenerationResult,
)
from catalog.enrichment.normalizer import (
    normalize_href,
    normalize_image,
    normalize_summary,
    normalize_tags,
)
from catalog.enrichment.openlibrary_client import resolve_catalog_facts
from catalog.enrichment.schema import SCHEMA_VERSION
from catalog.enrichment.wikidata_client import resolve_structured_facts
from catalog.enrichment.wikipedia_client import (
    resolve_cross_reference_id,
    resolve_summary_facts,
)
from catalog.utils.llm_logger import LLMLogger
from catalog.utils.logger import LoggerManager


class ReconcilerState(str, Enum):
    DISPATCHED = "dispatched"
    AWAITING_ALL = "awaiting_all"
    MERGED = "merged"
    NORMALIZED = "normalized"
    DONE = "done"
    GENERATION_FAILED = "generation_failed"


# Types that get a library-catalog lookup in addition to the encyclopedia
CATALOG_TYPES = (EntityType.BOOK,)


# =============================================================================
# Merge and normalize (pure functions)
# =============================================================================


def pick_fact(
    bundles: Dict[FactSource, FactBundle],
    field: str,
    priority: Iterable[FactSource],
) -> Tuple[Any, bool]:
    """First value for a field in source priority order.

    Returns:
        (value, queried): value is None when no bundle defines the field;
        queried tells whether any bundle looked it up
    """
    queried = False
    for source in priority:
        bundle = bundles.get(source)
        if bundle is None:
            continue
        if bundle.defines(field):
            return getattr(bundle, field), True
        queried = queried or bundle.has_queried(field)
    return None, queried


def merge_fields(
    reference: EntityReference,
    generation: GenerationResult,
    bundles: Iterable[FactBundle],
) -> Tuple[Dict[str, Any], List[str]]:
    """Merge generator and resolver output by field ownership.

    Args:
        reference: The request; `type` and `title` always come from here
        generation: Extracted generator payload
        bundles: One FactBundle per resolver

    Returns:
        (merged fields, generator fields that were ignored)
    """
    by_source = {b.source: b for b in bundles}
    ignored: List[str] = []

    merged: Dict[str, Any] = {
        "type": reference.type,
        "title": reference.title,
        "summary": generation.summary,
        "tags": generation.tags,
        "image": generation.image,
    }

    if generation.type and generation.type.strip().lower() != reference.type.value:
        ignored.append("type")
    if generation.title and generation.title.strip() != reference.title:
        ignored.append("title")
    if generation.href:
        ignored.append("href")
    ignored.extend(sorted((generation.model_extra or {}).keys()))

    merged["canonical_url"], _ = pick_fact(by_source, "canonical_url", HREF_SOURCE_PRIORITY)

    image_url, _ = pick_fact(by_source, "image_url", SOURCE_PRIORITY)
    if image_url is not None:
        merged["image_url"] = image_url

    # Not queried: key omitted. Queried and absent: explicit None.
    for field in reference.fact_fields:
        value, queried = pick_fact(by_source, field, SOURCE_PRIORITY)
        if value is not None or queried:
            merged[field] = value

    return merged, ignored


def normalize_record(merged: Dict[str, Any]) -> Tuple[EnrichedRecord, List[str]]:
    """Apply every repair and build the validated record."""
    fields = dict(merged)
    repairs: List[str] = []

    tags, tag_repairs = normalize_tags(fields.pop("tags") or [], fields["type"])
    image, image_repairs = normalize_image(fields.pop("image"), fields["title"])
    summary, summary_repairs = normalize_summary(fields.pop("summary"))
    href, href_repairs = normalize_href(fields.pop("canonical_url"))
    repairs += tag_repairs + image_repairs + summary_repairs + href_repairs

    record = EnrichedRecord(
        href=href,
        image=image,
        summary=summary,
        tags=tags,
        **fields,
    )
    return record, repairs


# =============================================================================
# Enrichment Service
# =============================================================================


class EnrichmentService:
    """Concurrent enrichment of catalog entries."""

    def __init__(
        self,
        config: EnrichmentConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        openai_client: Optional[AsyncOpenAI] = None,
    ):
        """Initialize enrichment service.

        Args:
            config: Explicit settings (credentials, model, deadlines)
            http_client: Shared client for the factual providers; one is
                created (and owned) when not given
            openai_client: Preconfigured generation client
        """
        self.config = config
        self._http_client = http_client
        self._owns_http_client = http_client is None
        llm_logger = LLMLogger(config.llm_log_path) if config.llm_log_path else None
        self.generator = ConstrainedGenerator(config, client=openai_client, llm_logger=llm_logger)
        self.logger = LoggerManager.get_logger(__name__, use_json=True)

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get the resolver HTTP client (lazy initialization)."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                headers={"User-Agent": self.config.user_agent},
                timeout=self.config.request_timeout_seconds,
            )
        return self._http_client

    async def aclose(self) -> None:
        """Close owned HTTP resources."""
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        await self.generator.aclose()

    async def __aenter__(self) -> "EnrichmentService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def enrich(self, reference: EntityReference) -> EnrichedRecord:
        """Enrich one entity reference.

        Returns:
            A record satisfying every record invariant

        Raises:
            GenerationFailed: generator call failed or was unextractable
        """
        record, _ = await self.enrich_with_trace(reference)
        return record

    async def enrich_with_trace(
        self, reference: EntityReference
    ) -> Tuple[EnrichedRecord, EnrichmentTrace]:
        """Like `enrich`, also returning the state path, sources and repairs."""
        trace = EnrichmentTrace(
            title=reference.title,
            entity_type=reference.type,
            schema_version=SCHEMA_VERSION,
            model=self.config.model,
        )

        self._transition(trace, ReconcilerState.DISPATCHED)
        generation_task = asyncio.ensure_future(self._generate(reference))
        resolver_tasks = [
            asyncio.ensure_future(self._bounded(name, source, job))
            for name, source, job in self._resolver_jobs(reference)
        ]

        self._transition(trace, ReconcilerState.AWAITING_ALL)
        settled = await asyncio.gather(
            generation_task, *resolver_tasks, return_exceptions=True
        )
        generation, bundles = settled[0], list(settled[1:])

        if isinstance(generation, GenerationFailed):
            trace.error = str(generation)
            self._transition(trace, ReconcilerState.GENERATION_FAILED)
            self.logger.error(
                "enrichment.generation_failed",
                extra={"extra_data": {
                    "title": reference.title,
                    "type": reference.type.value,
                    "upstream_status": generation.status_code,
                }},
            )
            raise generation
        if isinstance(generation, BaseException):
            raise generation

        for bundle in bundles:
            trace.sources_found[bundle.source.value] = bundle.found

        merged, ignored = merge_fields(reference, generation, bundles)
        trace.ignored_generator_fields = ignored
        self._transition(trace, ReconcilerState.MERGED)

        record, repairs = normalize_record(merged)
        trace.repairs = repairs
        self._transition(trace, ReconcilerState.NORMALIZED)

        self._transition(trace, ReconcilerState.DONE)
        self.logger.info(
            "enrichment.done",
            extra={"extra_data": {
                "title": reference.title,
                "type": reference.type.value,
                "sources_found": trace.sources_found,
                "repairs": repairs,
                "ignored_generator_fields": ignored,
            }},
        )
        return record, trace

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    async def _generate(self, reference: EntityReference) -> GenerationResult:
        """Generator call plus extraction, bounded by the generation deadline."""
        try:
            raw = await asyncio.wait_for(
                self.generator.generate(reference),
                timeout=self.config.generation_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise GenerationFailed.from_timeout(self.config.generation_timeout_seconds) from e

        if not 200 <= raw.status_code < 300:
            raise GenerationFailed.from_api_error(raw.status_code, raw.body)

        shape, payload = extract_with_shape(raw.envelope)
        if payload is None:
            raise GenerationFailed.from_unextractable(raw.status_code, raw.body)

        try:
            result = GenerationResult.model_validate(payload)
        except ValidationError as e:
            raise GenerationFailed.from_unextractable(raw.status_code, raw.body) from e

        self.logger.debug(
            "enrichment.extracted",
            extra={"extra_data": {"title": reference.title, "shape": shape}},
        )
        return result

    def _resolver_jobs(
        self, reference: EntityReference
    ) -> List[Tuple[str, FactSource, Awaitable[FactBundle]]]:
        client = self.http_client
        language = self.config.wikipedia_language
        timeout = self.config.request_timeout_seconds

        jobs: List[Tuple[str, FactSource, Awaitable[FactBundle]]] = [
            (
                "summary",
                FactSource.WIKIPEDIA,
                resolve_summary_facts(client, reference.title, language=language, timeout=timeout),
            ),
            (
                "structured_facts",
                FactSource.WIKIDATA,
                self._structured_chain(reference),
            ),
        ]
        if reference.type in CATALOG_TYPES:
            jobs.append((
                "catalog",
                FactSource.OPEN_LIBRARY,
                resolve_catalog_facts(client, reference.title, timeout=timeout),
            ))
        return jobs

    async def _structured_chain(self, reference: EntityReference) -> FactBundle:
        """Cross-reference lookup, then the structured facts for that id."""
        client = self.http_client
        language = self.config.wikipedia_language
        timeout = self.config.request_timeout_seconds

        qid = await resolve_cross_reference_id(
            client, reference.title, language=language, timeout=timeout
        )
        return await resolve_structured_facts(
            client, qid, reference.type, language=language, timeout=timeout
        )

    async def _bounded(
        self,
        name: str,
        source: FactSource,
        job: Awaitable[FactBundle],
    ) -> FactBundle:
        """Run a resolver under the resolver deadline; failures become not-found."""
        try:
            return await asyncio.wait_for(job, timeout=self.config.resolver_deadline_seconds)
        except asyncio.TimeoutError:
            self.logger.warning(
                "enrichment.resolver_deadline",
                extra={"extra_data": {"resolver": name, "deadline": self.config.resolver_deadline_seconds}},
            )
        except Exception:
            # Malformed upstream payloads surface here as parsing errors
            self.logger.exception(
                "enrichment.resolver_error",
                extra={"extra_data": {"resolver": name}},
            )
        return FactBundle.not_found(source)

    def _transition(self, trace: EnrichmentTrace, state: ReconcilerState) -> None:
        trace.states.append(state.value)
        self.logger.debug(
            f"enrichment.state.{state.value}",
            extra={"extra_data": {"title": trace.title, "state": state.value}},
        )
