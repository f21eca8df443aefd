"""Shared fixtures: mocked upstreams for the resolvers and the generator.

Every outbound request goes through `httpx.MockTransport`; nothing touches
the network. `UpstreamRouter` dispatches on (method, host, path) and records
each request for assertions.
"""

import json
import os
import tempfile
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from openai import AsyncOpenAI

# Keep test log files out of the working tree; must run before any
# catalog module creates its logger
os.environ.setdefault("CATALOG_LOG_DIR", tempfile.mkdtemp(prefix="catalog-test-logs-"))

from catalog.enrichment.config import EnrichmentConfig  # noqa: E402
from catalog.enrichment.enrichment_service import EnrichmentService  # noqa: E402


OPENAI_BASE_URL = "https://api.openai.test/v1"
OPENAI_HOST = "api.openai.test"
WIKIPEDIA_HOST = "en.wikipedia.org"
WIKIDATA_HOST = "www.wikidata.org"
OPENLIBRARY_HOST = "openlibrary.org"

Route = Tuple[str, str, str]


class UpstreamRouter:
    """Callable MockTransport handler with per-route responses."""

    def __init__(self):
        self.routes: Dict[Route, Any] = {}
        self.requests: List[httpx.Request] = []

    def add(self, host: str, path: str, response: Any, method: str = "GET") -> None:
        """Register a response.

        `response` may be a dict (JSON 200), an httpx.Response, or a
        callable (sync or async) taking the request.
        """
        self.routes[(method, host, path)] = response

    def json(self, host: str, path: str, payload: Any, status_code: int = 200, method: str = "GET") -> None:
        self.add(host, path, httpx.Response(status_code, json=payload), method=method)

    def calls(self, host: str, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.host == host and (path is None or r.url.path == path)
        ]

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.host, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "no route"})
        if callable(handler):
            return handler(request)
        if isinstance(handler, dict):
            return httpx.Response(200, json=handler)
        return handler


def responses_envelope(payload: Dict[str, Any], shape: str = "text_block") -> Dict[str, Any]:
    """Wrap a generator payload the way the Responses API does."""
    envelope: Dict[str, Any] = {
        "id": "resp_test",
        "object": "response",
        "status": "completed",
        "model": "gpt-4o-mini",
        "usage": {"input_tokens": 120, "output_tokens": 80, "total_tokens": 200},
    }
    if shape == "text_block":
        block = {"type": "output_text", "text": json.dumps(payload), "annotations": []}
        envelope["output"] = [{"type": "message", "role": "assistant", "content": [block]}]
    elif shape == "structured_json_block":
        block = {"type": "output_json", "json": payload}
        envelope["output"] = [{"type": "message", "role": "assistant", "content": [block]}]
    elif shape == "top_level_text":
        envelope["output"] = []
        envelope["output_text"] = json.dumps(payload)
    else:
        raise ValueError(f"unknown shape {shape}")
    return envelope


def wikidata_time_claim(time: str, rank: str = "normal") -> Dict[str, Any]:
    return {
        "rank": rank,
        "mainsnak": {
            "snaktype": "value",
            "datavalue": {"type": "time", "value": {"time": time, "precision": 11}},
        },
    }


def wikidata_item_claim(qid: str, rank: str = "normal") -> Dict[str, Any]:
    return {
        "rank": rank,
        "mainsnak": {
            "snaktype": "value",
            "datavalue": {"type": "wikibase-entityid", "value": {"entity-type": "item", "id": qid}},
        },
    }


def wikidata_string_claim(value: str, rank: str = "normal") -> Dict[str, Any]:
    return {
        "rank": rank,
        "mainsnak": {"snaktype": "value", "datavalue": {"type": "string", "value": value}},
    }


@pytest.fixture
def router() -> UpstreamRouter:
    return UpstreamRouter()


@pytest.fixture
def envelope() -> Callable[..., Dict[str, Any]]:
    return responses_envelope


@pytest.fixture
def claims():
    """Builders for Wikidata claim snippets."""
    return {
        "time": wikidata_time_claim,
        "item": wikidata_item_claim,
        "string": wikidata_string_claim,
    }


@pytest.fixture
def mock_client(router) -> Callable[[], httpx.AsyncClient]:
    """Factory for async clients bound to the router (create inside the test loop)."""
    def _make() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(router))
    return _make


@pytest.fixture
def openai_client_factory(router) -> Callable[[], AsyncOpenAI]:
    def _make() -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key="sk-test",
            base_url=OPENAI_BASE_URL,
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(router)),
        )
    return _make


@pytest.fixture
def test_config() -> EnrichmentConfig:
    return EnrichmentConfig(
        openai_api_key="sk-test",
        openai_base_url=OPENAI_BASE_URL,
        request_timeout_seconds=2.0,
        resolver_deadline_seconds=2.0,
        generation_timeout_seconds=2.0,
    )


@pytest.fixture
def build_service(router, mock_client, openai_client_factory, test_config):
    """Factory for an EnrichmentService wired to the router."""
    def _make(config: Optional[EnrichmentConfig] = None) -> EnrichmentService:
        return EnrichmentService(
            config or test_config,
            http_client=mock_client(),
            openai_client=openai_client_factory(),
        )
    return _make


@pytest.fixture
def jane_doe_upstreams(router, claims):
    """Person with a Wikipedia page and a Wikidata birth date, no death date."""
    router.json(WIKIPEDIA_HOST, "/api/rest_v1/page/summary/Jane_Doe", {
        "type": "standard",
        "title": "Jane Doe",
        "description": "American physicist",
        "content_urls": {"desktop": {"page": "https://en.wikipedia.org/wiki/Jane_Doe"}},
    })
    router.json(WIKIPEDIA_HOST, "/w/api.php", {
        "batchcomplete": True,
        "query": {"pages": [{"pageid": 1, "title": "Jane Doe", "pageprops": {"wikibase_item": "Q4200"}}]},
    })
    router.json(WIKIDATA_HOST, "/wiki/Special:EntityData/Q4200.json", {
        "entities": {
            "Q4200": {
                "id": "Q4200",
                "claims": {"P569": [claims["time"]("+1950-03-14T00:00:00Z")]},
            }
        }
    })
    return router


@pytest.fixture
def generator_reply(router, envelope):
    """Set the generator's 200 reply to a given payload."""
    def _set(payload: Dict[str, Any], shape: str = "text_block") -> None:
        router.json(OPENAI_HOST, "/v1/responses", envelope(payload, shape), method="POST")
    return _set
