"""Tests for Wikidata claim parsing and structured facts resolution."""

import asyncio

import httpx
import pytest

from catalog.enrichment.models import EntityType, FactSource
from catalog.enrichment.wikidata_client import (
    claim_entity_ids,
    claim_years,
    commons_file_url,
    extract_qid,
    fetch_labels,
    parse_wikidata_date,
    resolve_structured_facts,
    select_claim_values,
)

HOST = "www.wikidata.org"


def _entity_doc(qid, claims_map):
    return {"entities": {qid: {"id": qid, "claims": claims_map}}}


class TestParseWikidataDate:

    @pytest.mark.parametrize("value,expected", [
        ("+1950-05-01T00:00:00Z", 1950),
        ("+1815-12-10T00:00:00Z", 1815),
        ("-0044-03-15T00:00:00Z", -44),
        ("+2001-00-00T00:00:00Z", 2001),
        ("1999-01-01", 1999),
    ])
    def test_valid(self, value, expected):
        assert parse_wikidata_date(value) == expected

    @pytest.mark.parametrize("value", [None, "", "unknown", "+0000-00-00T00:00:00Z", 1950])
    def test_malformed_is_none(self, value):
        assert parse_wikidata_date(value) is None


class TestClaims:

    def test_preferred_rank_first_and_deprecated_skipped(self, claims):
        entity = {"claims": {"P569": [
            claims["time"]("+1901-01-01T00:00:00Z"),
            claims["time"]("+1900-01-01T00:00:00Z", rank="preferred"),
            claims["time"]("+1800-01-01T00:00:00Z", rank="deprecated"),
        ]}}
        assert claim_years(entity, "P569") == [1900, 1901]

    def test_novalue_snaks_skipped(self):
        entity = {"claims": {"P570": [{"rank": "normal", "mainsnak": {"snaktype": "novalue"}}]}}
        assert select_claim_values(entity, "P570") == []

    def test_entity_ids_deduplicated(self, claims):
        entity = {"claims": {"P50": [claims["item"]("Q1"), claims["item"]("Q2"), claims["item"]("Q1")]}}
        assert claim_entity_ids(entity, "P50") == ["Q1", "Q2"]

    def test_commons_file_url(self):
        assert commons_file_url("Ada Lovelace portrait.jpg") == (
            "https://commons.wikimedia.org/wiki/Special:FilePath/Ada_Lovelace_portrait.jpg"
        )

    def test_extract_qid(self):
        assert extract_qid("http://www.wikidata.org/entity/Q7259") == "Q7259"
        assert extract_qid("Q42") == "Q42"
        assert extract_qid("not an id") is None
        assert extract_qid(None) is None


def test_person_facts(router, mock_client, claims):
    router.json(HOST, "/wiki/Special:EntityData/Q7259.json", _entity_doc("Q7259", {
        "P569": [claims["time"]("+1815-12-10T00:00:00Z")],
        "P570": [claims["time"]("+1852-11-27T00:00:00Z")],
        "P18": [claims["string"]("Ada Lovelace portrait.jpg")],
    }))

    async def run():
        async with mock_client() as client:
            return await resolve_structured_facts(client, "Q7259", EntityType.PERSON)

    bundle = asyncio.run(run())
    assert bundle.source == FactSource.WIKIDATA
    assert bundle.found is True
    assert bundle.identifier == "Q7259"
    assert bundle.birth_year == 1815
    assert bundle.death_year == 1852
    assert bundle.image_url.endswith("Ada_Lovelace_portrait.jpg")
    # No entity-valued claims, no label round-trip
    assert router.calls(HOST, "/w/api.php") == []


def test_living_person_death_year_queried_but_absent(router, mock_client, claims):
    router.json(HOST, "/wiki/Special:EntityData/Q1.json", _entity_doc("Q1", {
        "P569": [claims["time"]("+1950-01-01T00:00:00Z")],
    }))

    async def run():
        async with mock_client() as client:
            return await resolve_structured_facts(client, "Q1", EntityType.PERSON)

    bundle = asyncio.run(run())
    assert bundle.birth_year == 1950
    assert bundle.death_year is None
    assert bundle.has_queried("death_year")


def test_book_facts_with_labels(router, mock_client, claims):
    router.json(HOST, "/wiki/Special:EntityData/Q190192.json", _entity_doc("Q190192", {
        "P50": [claims["item"]("Q7934")],
        "P2093": [claims["string"]("Anonymous Editor")],
        "P577": [
            claims["time"]("+1966-01-01T00:00:00Z"),
            claims["time"]("+1965-08-01T00:00:00Z"),
        ],
        "P123": [claims["item"]("Q1000")],
        "P407": [claims["item"]("Q1860")],
        "P212": [claims["string"]("978-0-441-17271-9")],
    }))
    router.json(HOST, "/w/api.php", {"entities": {
        "Q7934": {"labels": {"en": {"language": "en", "value": "Frank Herbert"}}},
        "Q1000": {"labels": {"en": {"language": "en", "value": "Chilton Books"}}},
        "Q1860": {"labels": {"en": {"language": "en", "value": "English"}}},
    }})

    async def run():
        async with mock_client() as client:
            return await resolve_structured_facts(client, "Q190192", EntityType.BOOK)

    bundle = asyncio.run(run())
    assert bundle.authors == ["Frank Herbert", "Anonymous Editor"]
    assert bundle.published_year == 1965
    assert bundle.publisher == "Chilton Books"
    assert bundle.language == "English"
    assert bundle.isbn == "978-0-441-17271-9"

    label_calls = router.calls(HOST, "/w/api.php")
    assert len(label_calls) == 1
    assert set(label_calls[0].url.params["ids"].split("|")) == {"Q7934", "Q1000", "Q1860"}


def test_label_failure_keeps_other_facts(router, mock_client, claims):
    router.json(HOST, "/wiki/Special:EntityData/Q2.json", _entity_doc("Q2", {
        "P57": [claims["item"]("Q3")],
        "P577": [claims["time"]("+1999-03-31T00:00:00Z")],
    }))
    router.add(HOST, "/w/api.php", httpx.Response(500))

    async def run():
        async with mock_client() as client:
            return await resolve_structured_facts(client, "Q2", EntityType.MOVIE)

    bundle = asyncio.run(run())
    assert bundle.release_year == 1999
    assert bundle.directors is None
    assert bundle.has_queried("directors")


def test_missing_qid_short_circuits(router, mock_client):
    async def run():
        async with mock_client() as client:
            return await resolve_structured_facts(client, None, EntityType.PERSON)

    bundle = asyncio.run(run())
    assert bundle.found is False
    assert bundle.queried == set()
    assert router.requests == []


def test_upstream_error_is_not_found(router, mock_client):
    router.add(HOST, "/wiki/Special:EntityData/Q5.json", httpx.Response(502))

    async def run():
        async with mock_client() as client:
            return await resolve_structured_facts(client, "Q5", EntityType.ORGANIZATION)

    bundle = asyncio.run(run())
    assert bundle.found is False
    assert not bundle.has_queried("founded_year")


def test_redirected_entity(router, mock_client, claims):
    router.json(HOST, "/wiki/Special:EntityData/Q10.json", _entity_doc("Q11", {
        "P571": [claims["time"]("+1998-09-04T00:00:00Z")],
    }))

    async def run():
        async with mock_client() as client:
            return await resolve_structured_facts(client, "Q10", EntityType.ORGANIZATION)

    bundle = asyncio.run(run())
    assert bundle.identifier == "Q11"
    assert bundle.founded_year == 1998


def test_fetch_labels_empty_makes_no_request(router, mock_client):
    async def run():
        async with mock_client() as client:
            return await fetch_labels(client, [])

    assert asyncio.run(run()) == {}
    assert router.requests == []
