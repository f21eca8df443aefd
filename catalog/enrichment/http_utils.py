"""Shared HTTP helper for the factual resolvers."""

from typing import Any, Dict, Optional

import httpx

from catalog.enrichment.exceptions import UpstreamUnavailable
from catalog.enrichment.models import FactSource


async def fetch_json(
    client: httpx.AsyncClient,
    source: FactSource,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    timeout: float = 10.0,
) -> Dict[str, Any]:
    """GET a JSON document from a factual provider.

    Args:
        client: Shared async client (carries the User-Agent header)
        source: Provider, used for error attribution
        url: Endpoint URL
        params: Query parameters
        timeout: Request timeout in seconds

    Returns:
        Decoded JSON object

    Raises:
        UpstreamUnavailable: On transport errors, non-2xx status, or a body
            that is not a JSON object
    """
    try:
        response = await client.get(
            url,
            params=params,
            headers={"Accept": "application/json"},
            timeout=timeout,
            follow_redirects=True,
        )
    except httpx.HTTPError as e:
        raise UpstreamUnavailable(source, f"{type(e).__name__}: {e}") from e

    if not response.is_success:
        raise UpstreamUnavailable(
            source,
            f"HTTP {response.status_code} from {url}",
            status_code=response.status_code,
        )

    try:
        data = response.json()
    except ValueError as e:
        raise UpstreamUnavailable(
            source, "response body is not JSON", status_code=response.status_code
        ) from e

    if not isinstance(data, dict):
        raise UpstreamUnavailable(
            source, "response body is not a JSON object", status_code=response.status_code
        )
    return data
