"""Configuration for the enrichment pipeline.

The service receives an explicit `EnrichmentConfig`; nothing in the pipeline
reads the environment. Use `from_env()` or `from_yaml()` at the edges
(API startup, CLI) to build one.

Example YAML:

    enrichment:
      model: gpt-4o-mini
      wikipedia_language: en
      resolver_deadline_seconds: 15
      llm_log_path: logs/llm_calls.jsonl
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from catalog.utils.config_loader import ConfigLoader


DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_USER_AGENT = "CatalogEnrichmentBot/1.0 (catalog editor autofill)"


class EnrichmentConfig(BaseModel):
    """Settings passed to EnrichmentService at construction time."""
    model_config = ConfigDict(extra='forbid', frozen=True)

    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    model: str = DEFAULT_MODEL

    wikipedia_language: str = Field(default="en", pattern=r"^[a-z]{2,3}(?:-[a-z]+)?$")
    user_agent: str = DEFAULT_USER_AGENT

    # Per-HTTP-request timeout for factual providers
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    # Wall-clock bound for each resolver task (cross-ref + facts chain included)
    resolver_deadline_seconds: float = Field(default=15.0, gt=0)
    # Wall-clock bound for the generation call
    generation_timeout_seconds: float = Field(default=60.0, gt=0)

    llm_log_path: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "EnrichmentConfig":
        """Build config from process environment variables."""
        values = {
            "openai_api_key": os.getenv("OPENAI_API_KEY") or None,
            "openai_base_url": os.getenv("OPENAI_BASE_URL") or None,
            "model": os.getenv("CATALOG_MODEL") or DEFAULT_MODEL,
            "wikipedia_language": os.getenv("CATALOG_WIKI_LANGUAGE") or "en",
        }
        log_path = os.getenv("CATALOG_LLM_LOG_PATH")
        if log_path:
            values["llm_log_path"] = Path(log_path)
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "EnrichmentConfig":
        """Build config from the `enrichment:` section of a YAML file.

        A missing API key falls back to OPENAI_API_KEY.
        """
        section = dict(ConfigLoader(path).section("enrichment"))
        if not section.get("openai_api_key"):
            section["openai_api_key"] = os.getenv("OPENAI_API_KEY") or None
        return cls(**section)
