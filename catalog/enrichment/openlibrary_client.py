"""Open Library client: catalog facts for book entries.

- `search_catalog`: title search returning suggestions
- `resolve_catalog_facts`: picks the suggestion whose title matches exactly
  and turns it into a FactBundle (authors, first publication year, publisher, ISBN,
  language, work page URL)

Failures degrade to "not found", like the other resolvers.
"""

import re
import unicodedata
from typing import List, Optional

import httpx
from pydantic import ValidationError

from catalog.enrichment.exceptions import UpstreamUnavailable
from catalog.enrichment.http_utils import fetch_json
from catalog.enrichment.models import (
    FACT_FIELDS_BY_TYPE,
    CatalogSuggestion,
    EntityType,
    FactBundle,
    FactSource,
)
from catalog.utils.logger import LoggerManager

logger = LoggerManager.get_logger(__name__)


SEARCH_ENDPOINT = "https://openlibrary.org/search.json"
WORK_URL = "https://openlibrary.org{key}"
SEARCH_FIELDS = "key,title,author_name,first_publish_year,publisher,isbn,language"

MAX_AUTHORS = 10


def normalize_title(title: str) -> str:
    """Casefold, strip accents and punctuation for title comparison."""
    text = unicodedata.normalize("NFKD", title)
    text = "".join(c for c in text if not unicodedata.combining(c))
    text = re.sub(r"[^\w\s]", " ", text.casefold())
    return " ".join(text.split())


def pick_isbn(isbns: List[str]) -> Optional[str]:
    """Prefer an ISBN-13, fall back to the first ISBN-10."""
    cleaned = [re.sub(r"[\s-]", "", i) for i in isbns]
    for isbn in cleaned:
        if len(isbn) == 13 and isbn.isdigit():
            return isbn
    for isbn in cleaned:
        if len(isbn) == 10:
            return isbn
    return None


def best_suggestion(
    suggestions: List[CatalogSuggestion],
    term: str,
) -> Optional[CatalogSuggestion]:
    """Suggestion whose normalized title equals the term, or None.

    Non-matching hits are never used, not even the top one.
    """
    wanted = normalize_title(term)
    for suggestion in suggestions:
        if normalize_title(suggestion.title) == wanted:
            return suggestion
    return None


async def search_catalog(
    client: httpx.AsyncClient,
    term: str,
    limit: int = 5,
    timeout: float = 10.0,
) -> List[CatalogSuggestion]:
    """Search the catalog by title.

    Raises:
        UpstreamUnavailable: if the request failed
    """
    data = await fetch_json(
        client,
        FactSource.OPEN_LIBRARY,
        SEARCH_ENDPOINT,
        params={"q": term, "limit": limit, "fields": SEARCH_FIELDS},
        timeout=timeout,
    )

    suggestions = []
    for doc in data.get("docs") or []:
        try:
            suggestions.append(CatalogSuggestion.model_validate(doc))
        except ValidationError:
            # Docs without key/title are not usable
            continue
    return suggestions[:limit]


async def resolve_catalog_facts(
    client: httpx.AsyncClient,
    term: str,
    timeout: float = 10.0,
) -> FactBundle:
    """Resolve book facts for a title from the catalog.

    Args:
        client: Shared async client
        term: Book title
        timeout: Request timeout in seconds

    Returns:
        FactBundle; an empty result set still counts as queried
    """
    try:
        suggestions = await search_catalog(client, term, timeout=timeout)
    except UpstreamUnavailable as e:
        logger.warning(f"Catalog lookup failed for {term!r}: {e}")
        return FactBundle.not_found(FactSource.OPEN_LIBRARY)

    queried = set(FACT_FIELDS_BY_TYPE[EntityType.BOOK]) | {"canonical_url"}

    suggestion = best_suggestion(suggestions, term)
    if suggestion is None:
        logger.info(f"No catalog title match for {term!r} among {len(suggestions)} results")
        return FactBundle(source=FactSource.OPEN_LIBRARY, found=False, queried=queried)

    return FactBundle(
        source=FactSource.OPEN_LIBRARY,
        found=True,
        identifier=suggestion.key,
        canonical_url=WORK_URL.format(key=suggestion.key) if suggestion.key.startswith("/") else None,
        authors=suggestion.author_name[:MAX_AUTHORS] or None,
        published_year=suggestion.first_publish_year,
        publisher=suggestion.publisher[0] if suggestion.publisher else None,
        isbn=pick_isbn(suggestion.isbn),
        language=suggestion.language[0] if suggestion.language else None,
        queried=queried,
    )
