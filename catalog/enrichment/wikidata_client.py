"""Wikidata client: structured facts for a resolved entity id.

Fetches the entity claims document for a QID and extracts the factual
fields owned by the resolvers for the entry type:
- person: birth year (P569), death year (P570)
- book: authors (P50, P2093), publication year (P577), publisher (P123),
  ISBN (P212, P957), language of work (P407)
- movie: release year (P577), directors (P57)
- organization / project: inception year (P571)
- every type: image (P18) as a Commons file URL

Date claims are parsed into bare integer years from the signed, year-first
time string Wikidata uses (`+1815-12-10T00:00:00Z`, `-0044-03-15T00:00:00Z`).
A malformed or missing claim yields None for that field only.

Usage:
------
bundle = await resolve_structured_facts(client, "Q7259", EntityType.PERSON)
bundle.birth_year   # 1815
bundle.death_year   # 1852
"""

import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import httpx

from catalog.enrichment.exceptions import UpstreamUnavailable
from catalog.enrichment.http_utils import fetch_json
from catalog.enrichment.models import (
    FACT_FIELDS_BY_TYPE,
    EntityType,
    FactBundle,
    FactSource,
)
from catalog.utils.logger import LoggerManager

logger = LoggerManager.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

ENTITY_DATA_ENDPOINT = "https://www.wikidata.org/wiki/Special:EntityData/{qid}.json"
WIKIDATA_API_ENDPOINT = "https://www.wikidata.org/w/api.php"
COMMONS_FILE_PATH = "https://commons.wikimedia.org/wiki/Special:FilePath/{name}"

# wbgetentities accepts at most 50 ids per call
MAX_LABEL_IDS = 50
MAX_PEOPLE = 10

YEAR_PROPERTIES = {
    "birth_year": "P569",
    "death_year": "P570",
    "founded_year": "P571",
    "published_year": "P577",
    "release_year": "P577",
}

# Years where several claims are common (regional release dates, reprints);
# the earliest one is the meaningful value
EARLIEST_YEAR_FIELDS = {"published_year", "release_year", "founded_year"}

PEOPLE_PROPERTIES = {
    "authors": "P50",
    "directors": "P57",
}
AUTHOR_NAME_STRING = "P2093"

LABELLED_PROPERTIES = {
    "publisher": "P123",
    "language": "P407",
}

ISBN_PROPERTIES = ("P212", "P957")  # ISBN-13 first
IMAGE_PROPERTY = "P18"

WIKIDATA_DATE_RE = re.compile(r"^([+-]?)(\d{1,16})-\d{2}-\d{2}")


# =============================================================================
# Claim parsing
# =============================================================================


def parse_wikidata_date(date_str: Optional[str]) -> Optional[int]:
    """Parse a Wikidata time string to a year.

    Args:
        date_str: Time value like "+1950-05-01T00:00:00Z" or "-0044-03-15T00:00:00Z"

    Returns:
        Year as integer (negative for BCE) or None if malformed
    """
    if not isinstance(date_str, str):
        return None

    match = WIKIDATA_DATE_RE.match(date_str.strip())
    if not match:
        return None

    sign, digits = match.groups()
    year = int(digits)
    if year == 0:
        return None
    return -year if sign == "-" else year


def select_claim_values(entity: Dict[str, Any], prop: str) -> List[Any]:
    """Return datavalue values for a property, preferred rank first.

    Deprecated claims and "no value"/"unknown value" snaks are skipped.
    """
    claims = (entity.get("claims") or {}).get(prop) or []
    preferred: List[Any] = []
    normal: List[Any] = []
    for claim in claims:
        if not isinstance(claim, dict):
            continue
        rank = claim.get("rank", "normal")
        if rank == "deprecated":
            continue
        snak = claim.get("mainsnak") or {}
        if snak.get("snaktype") != "value":
            continue
        value = (snak.get("datavalue") or {}).get("value")
        if value is None:
            continue
        (preferred if rank == "preferred" else normal).append(value)
    return preferred + normal


def claim_years(entity: Dict[str, Any], prop: str) -> List[int]:
    years = []
    for value in select_claim_values(entity, prop):
        time_str = value.get("time") if isinstance(value, dict) else None
        year = parse_wikidata_date(time_str)
        if year is not None:
            years.append(year)
    return years


def claim_entity_ids(entity: Dict[str, Any], prop: str) -> List[str]:
    ids = []
    for value in select_claim_values(entity, prop):
        if isinstance(value, dict) and isinstance(value.get("id"), str):
            if value["id"] not in ids:
                ids.append(value["id"])
    return ids


def claim_strings(entity: Dict[str, Any], prop: str) -> List[str]:
    return [
        v.strip() for v in select_claim_values(entity, prop)
        if isinstance(v, str) and v.strip()
    ]


def commons_file_url(filename: str) -> str:
    """Build a Commons Special:FilePath URL for an image claim."""
    return COMMONS_FILE_PATH.format(name=quote(filename.strip().replace(" ", "_"), safe=""))


def extract_qid(uri: Optional[str]) -> Optional[str]:
    """Extract a QID from an entity URI or id string."""
    if not uri:
        return None
    match = re.search(r"(Q\d+)$", str(uri))
    return match.group(1) if match else None


# =============================================================================
# HTTP
# =============================================================================


async def fetch_entity(
    client: httpx.AsyncClient,
    qid: str,
    timeout: float = 10.0,
) -> Optional[Dict[str, Any]]:
    """Fetch the claims document for one entity.

    Returns:
        The entity dict, or None if the document has no entity
    Raises:
        UpstreamUnavailable: if the request failed
    """
    data = await fetch_json(
        client,
        FactSource.WIKIDATA,
        ENTITY_DATA_ENDPOINT.format(qid=qid),
        timeout=timeout,
    )
    entities = data.get("entities") or {}
    if qid in entities:
        return entities[qid]
    # Merged items come back under the redirect target's id
    for entity in entities.values():
        if isinstance(entity, dict):
            return entity
    return None


async def fetch_labels(
    client: httpx.AsyncClient,
    ids: Iterable[str],
    language: str = "en",
    timeout: float = 10.0,
) -> Dict[str, str]:
    """Resolve entity ids to labels (requested language, then English).

    Failures are logged and yield an empty mapping.
    """
    unique_ids = list(dict.fromkeys(ids))[:MAX_LABEL_IDS]
    if not unique_ids:
        return {}

    languages = language if language == "en" else f"{language}|en"
    params = {
        "action": "wbgetentities",
        "ids": "|".join(unique_ids),
        "props": "labels",
        "languages": languages,
        "format": "json",
    }
    try:
        data = await fetch_json(
            client, FactSource.WIKIDATA, WIKIDATA_API_ENDPOINT, params=params, timeout=timeout
        )
    except UpstreamUnavailable as e:
        logger.warning(f"Label lookup failed for {len(unique_ids)} ids: {e}")
        return {}

    labels: Dict[str, str] = {}
    for qid, entity in (data.get("entities") or {}).items():
        entity_labels = (entity or {}).get("labels") or {}
        for lang in (language, "en"):
            value = (entity_labels.get(lang) or {}).get("value")
            if value:
                labels[qid] = value
                break
    return labels


# =============================================================================
# Structured facts
# =============================================================================


def _people(ids: List[str], labels: Dict[str, str], extra_names: List[str]) -> Optional[List[str]]:
    names = [labels[i] for i in ids if i in labels]
    for name in extra_names:
        if name not in names:
            names.append(name)
    return names[:MAX_PEOPLE] or None


async def resolve_structured_facts(
    client: httpx.AsyncClient,
    qid: Optional[str],
    entity_type: EntityType,
    language: str = "en",
    timeout: float = 10.0,
) -> FactBundle:
    """Resolve the factual fields for an entity type from its claims.

    Args:
        client: Shared async client
        qid: Wikidata entity id, or None (short-circuits to "no facts")
        entity_type: Catalog type; selects which fields are queried
        language: Label language
        timeout: Request timeout in seconds

    Returns:
        FactBundle. Every type-owned field is in `queried` once the claims
        document was read, whether or not a value was found.
    """
    if not qid:
        return FactBundle.not_found(FactSource.WIKIDATA)

    try:
        entity = await fetch_entity(client, qid, timeout=timeout)
    except UpstreamUnavailable as e:
        logger.warning(f"Structured facts unavailable for {qid}: {e}")
        return FactBundle.not_found(FactSource.WIKIDATA)

    if entity is None:
        logger.info(f"Wikidata returned no entity for {qid}")
        return FactBundle.not_found(FactSource.WIKIDATA)

    fields = FACT_FIELDS_BY_TYPE[entity_type]
    values: Dict[str, Any] = {}

    for field in fields:
        prop = YEAR_PROPERTIES.get(field)
        if prop is None:
            continue
        years = claim_years(entity, prop)
        if years:
            values[field] = min(years) if field in EARLIEST_YEAR_FIELDS else years[0]

    # Entity-valued claims need one label round-trip
    people_ids = {
        field: claim_entity_ids(entity, PEOPLE_PROPERTIES[field])
        for field in fields if field in PEOPLE_PROPERTIES
    }
    labelled_ids = {
        field: claim_entity_ids(entity, LABELLED_PROPERTIES[field])[:1]
        for field in fields if field in LABELLED_PROPERTIES
    }
    wanted = [i for ids in people_ids.values() for i in ids[:MAX_PEOPLE]]
    wanted += [i for ids in labelled_ids.values() for i in ids]
    labels = await fetch_labels(client, wanted, language=language, timeout=timeout)

    for field, ids in people_ids.items():
        extra = claim_strings(entity, AUTHOR_NAME_STRING) if field == "authors" else []
        values[field] = _people(ids, labels, extra)

    for field, ids in labelled_ids.items():
        values[field] = labels.get(ids[0]) if ids else None

    if "isbn" in fields:
        for prop in ISBN_PROPERTIES:
            isbns = claim_strings(entity, prop)
            if isbns:
                values["isbn"] = isbns[0]
                break

    images = claim_strings(entity, IMAGE_PROPERTY)
    if images:
        values["image_url"] = commons_file_url(images[0])

    logger.debug(
        f"Structured facts for {qid}",
        extra={"extra_data": {"qid": qid, "fields": sorted(k for k, v in values.items() if v is not None)}},
    )

    return FactBundle(
        source=FactSource.WIKIDATA,
        found=True,
        identifier=entity.get("id") or qid,
        queried=set(fields) | {"image_url"},
        **{k: v for k, v in values.items() if v is not None},
    )
