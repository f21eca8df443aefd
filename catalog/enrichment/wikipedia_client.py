"""Wikipedia resolvers: canonical page URL and Wikidata cross-reference.

Two lookups against the encyclopedia:
- Page summary endpoint (REST): the canonical page URL for a title.
  Disambiguation pages are rejected, a wrong reference link is worse
  than none.
- Page properties (Action API): the Wikidata entity id (QID) linked to the
  page, following redirects. Required before the structured-facts lookup.

Both are single best-effort attempts. Any failure is logged and returned
as "not found".

Usage:
------
async with httpx.AsyncClient() as client:
    url = await resolve_canonical_url(client, "Ada Lovelace")
    qid = await resolve_cross_reference_id(client, "Ada Lovelace")  # "Q7259"
"""

import re
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from catalog.enrichment.exceptions import UpstreamUnavailable
from catalog.enrichment.http_utils import fetch_json
from catalog.enrichment.models import FactBundle, FactSource
from catalog.utils.logger import LoggerManager

logger = LoggerManager.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

SUMMARY_ENDPOINT = "https://{lang}.wikipedia.org/api/rest_v1/page/summary/{title}"
ACTION_API_ENDPOINT = "https://{lang}.wikipedia.org/w/api.php"

# Description Wikipedia assigns to disambiguation pages
DISAMBIGUATION_DESCRIPTION = "topics referred to by the same term"

QID_RE = re.compile(r"^Q[1-9]\d*$")


# =============================================================================
# Summary endpoint
# =============================================================================


def page_path(title: str) -> str:
    """Encode a title the way the REST endpoint expects it."""
    return quote(title.strip().replace(" ", "_"), safe="")


def is_disambiguation(summary: Dict[str, Any]) -> bool:
    """Check a summary document for disambiguation markers."""
    if summary.get("type") == "disambiguation":
        return True
    title = str(summary.get("title") or "")
    if title.lower().endswith("(disambiguation)"):
        return True
    description = str(summary.get("description") or "").strip().lower()
    return description == DISAMBIGUATION_DESCRIPTION


def extract_page_url(summary: Dict[str, Any]) -> Optional[str]:
    """Get the desktop page URL from a summary document."""
    urls = summary.get("content_urls") or {}
    desktop = urls.get("desktop") or {}
    page = desktop.get("page")
    if isinstance(page, str) and page.startswith("https://"):
        return page
    return None


async def resolve_canonical_url(
    client: httpx.AsyncClient,
    title: str,
    language: str = "en",
    timeout: float = 10.0,
) -> Optional[str]:
    """Resolve a title to its canonical encyclopedia page URL.

    Args:
        client: Shared async client
        title: Entry title
        language: Wikipedia language edition
        timeout: Request timeout in seconds

    Returns:
        Page URL, or None if not found, ambiguous, or the lookup failed
    """
    url = SUMMARY_ENDPOINT.format(lang=language, title=page_path(title))
    try:
        summary = await fetch_json(
            client, FactSource.WIKIPEDIA, url, params={"redirect": "true"}, timeout=timeout
        )
    except UpstreamUnavailable as e:
        logger.warning(f"Summary lookup failed for {title!r}: {e}")
        return None

    if is_disambiguation(summary):
        logger.info(f"Rejected disambiguation page for {title!r}")
        return None

    page_url = extract_page_url(summary)
    if page_url is None:
        logger.info(f"Summary for {title!r} has no page URL")
    return page_url


async def resolve_summary_facts(
    client: httpx.AsyncClient,
    title: str,
    language: str = "en",
    timeout: float = 10.0,
) -> FactBundle:
    """Wrap `resolve_canonical_url` as a FactBundle."""
    page_url = await resolve_canonical_url(client, title, language=language, timeout=timeout)
    return FactBundle(
        source=FactSource.WIKIPEDIA,
        found=page_url is not None,
        identifier=title,
        canonical_url=page_url,
        queried={"canonical_url"},
    )


# =============================================================================
# Cross-reference (page -> Wikidata QID)
# =============================================================================


def extract_wikibase_item(data: Dict[str, Any]) -> Optional[str]:
    """Pull the QID out of a pageprops query response.

    Handles both formatversion=2 (list of pages) and the legacy dict form.
    Missing pages and disambiguation pages yield None.
    """
    pages = (data.get("query") or {}).get("pages")
    if isinstance(pages, dict):
        pages = list(pages.values())
    if not isinstance(pages, list) or not pages:
        return None

    page = pages[0] or {}
    if page.get("missing") is not None and page.get("missing") is not False:
        return None

    props = page.get("pageprops") or {}
    if "disambiguation" in props:
        return None

    qid = props.get("wikibase_item")
    if isinstance(qid, str) and QID_RE.match(qid):
        return qid
    return None


async def resolve_cross_reference_id(
    client: httpx.AsyncClient,
    title: str,
    language: str = "en",
    timeout: float = 10.0,
) -> Optional[str]:
    """Resolve a title to the Wikidata entity id of its encyclopedia page.

    Args:
        client: Shared async client
        title: Entry title (exact or redirect title)
        language: Wikipedia language edition
        timeout: Request timeout in seconds

    Returns:
        QID string (e.g. "Q7259") or None
    """
    params = {
        "action": "query",
        "prop": "pageprops",
        "ppprop": "wikibase_item|disambiguation",
        "redirects": "1",
        "titles": title.strip(),
        "format": "json",
        "formatversion": "2",
    }
    try:
        data = await fetch_json(
            client,
            FactSource.WIKIPEDIA,
            ACTION_API_ENDPOINT.format(lang=language),
            params=params,
            timeout=timeout,
        )
    except UpstreamUnavailable as e:
        logger.warning(f"Cross-reference lookup failed for {title!r}: {e}")
        return None

    qid = extract_wikibase_item(data)
    if qid is None:
        logger.info(f"No Wikidata item for {title!r}")
    return qid
