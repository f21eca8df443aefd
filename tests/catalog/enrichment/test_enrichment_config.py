"""Tests for EnrichmentConfig construction."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from catalog.enrichment.config import DEFAULT_MODEL, EnrichmentConfig


def test_defaults():
    config = EnrichmentConfig()
    assert config.model == DEFAULT_MODEL
    assert config.openai_api_key is None
    assert config.wikipedia_language == "en"


def test_from_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("CATALOG_MODEL", "gpt-4.1-mini")
    monkeypatch.setenv("CATALOG_WIKI_LANGUAGE", "de")
    monkeypatch.setenv("CATALOG_LLM_LOG_PATH", "logs/calls.jsonl")

    config = EnrichmentConfig.from_env()

    assert config.openai_api_key == "sk-env"
    assert config.model == "gpt-4.1-mini"
    assert config.wikipedia_language == "de"
    assert config.llm_log_path == Path("logs/calls.jsonl")


def test_from_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-fallback")
    path = tmp_path / "catalog.yaml"
    path.write_text(
        "enrichment:\n"
        "  model: gpt-4o\n"
        "  resolver_deadline_seconds: 5\n"
    )

    config = EnrichmentConfig.from_yaml(path)

    assert config.model == "gpt-4o"
    assert config.resolver_deadline_seconds == 5
    assert config.openai_api_key == "sk-fallback"


def test_from_yaml_rejects_unknown_keys(tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text("enrichment:\n  modle: typo\n")

    with pytest.raises(ValidationError):
        EnrichmentConfig.from_yaml(path)


def test_config_is_frozen():
    config = EnrichmentConfig()
    with pytest.raises(ValidationError):
        config.model = "other"
