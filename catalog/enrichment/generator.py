"""Constrained generator: one structured-output call for subjective fields.

Uses the OpenAI Responses API with a strict JSON Schema (see `schema.py`).
The raw HTTP envelope is returned undecoded by the SDK models so the
extractor can handle every envelope shape the provider produces.

Unlike resolver failures, any failure here is fatal for the enrichment:
non-2xx responses, connection errors and timeouts raise GenerationFailed.
"""

import json
from typing import Any, Dict, Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI
from pydantic import BaseModel, ConfigDict

from catalog.enrichment.config import EnrichmentConfig
from catalog.enrichment.exceptions import GenerationFailed
from catalog.enrichment.models import EntityReference
from catalog.enrichment.schema import (
    SCHEMA_VERSION,
    build_instructions,
    build_text_format,
    build_user_prompt,
)
from catalog.utils.llm_logger import LLMLogger
from catalog.utils.logger import LoggerManager

logger = LoggerManager.get_logger(__name__)


class RawGeneration(BaseModel):
    """Undecoded provider response."""
    model_config = ConfigDict(extra='forbid')

    status_code: int
    body: str
    envelope: Optional[Dict[str, Any]] = None  # None when the body is not a JSON object


class ConstrainedGenerator:
    """Issues the structured-output request for one entity reference."""

    def __init__(
        self,
        config: EnrichmentConfig,
        client: Optional[AsyncOpenAI] = None,
        llm_logger: Optional[LLMLogger] = None,
    ):
        """
        Args:
            config: Model name, credentials and timeout
            client: Preconfigured async client (tests, custom transports)
            llm_logger: Optional JSONL call log
        """
        self.config = config
        self._client = client
        self.llm_logger = llm_logger

    @property
    def client(self) -> AsyncOpenAI:
        """Lazily built client; retries are disabled, one attempt per request."""
        if self._client is None:
            if not self.config.openai_api_key:
                raise GenerationFailed.from_missing_api_key()
            self._client = AsyncOpenAI(
                api_key=self.config.openai_api_key,
                base_url=self.config.openai_base_url,
                max_retries=0,
                timeout=self.config.generation_timeout_seconds,
            )
        return self._client

    async def generate(
        self,
        reference: EntityReference,
        text_format: Optional[Dict[str, Any]] = None,
        instructions: Optional[str] = None,
    ) -> RawGeneration:
        """Send the constrained request.

        Args:
            reference: Entity reference (title, type, known fields)
            text_format: Structured-output block; built from the reference if None
            instructions: System instructions; built from the type if None

        Returns:
            RawGeneration with status, body and decoded envelope

        Raises:
            GenerationFailed: missing key, non-2xx status, transport error or timeout
        """
        text_format = text_format or build_text_format(reference.type, reference.title)
        instructions = instructions or build_instructions(reference.type)
        user_prompt = build_user_prompt(reference)

        client = self.client
        try:
            raw = await client.responses.with_raw_response.create(
                model=self.config.model,
                instructions=instructions,
                input=user_prompt,
                text=text_format,
                store=False,
            )
        except APIStatusError as e:
            logger.error(
                f"Generation failed with HTTP {e.status_code} for {reference.title!r}"
            )
            raise GenerationFailed.from_api_error(e.status_code, e.response.text, e) from e
        except APITimeoutError as e:
            logger.error(f"Generation timed out for {reference.title!r}")
            raise GenerationFailed.from_timeout(self.config.generation_timeout_seconds) from e
        except APIConnectionError as e:
            logger.error(f"Generation request failed for {reference.title!r}: {e}")
            raise GenerationFailed.from_transport_error(e) from e

        http_response = raw.http_response
        body = http_response.text
        try:
            decoded = json.loads(body)
        except ValueError:
            decoded = None
        envelope = decoded if isinstance(decoded, dict) else None

        if self.llm_logger is not None:
            self.llm_logger.log_call(
                call_type="autofill",
                model=self.config.model,
                system_prompt=instructions,
                user_prompt=user_prompt,
                raw_response=envelope,
                extra_metadata={
                    "title": reference.title,
                    "type": reference.type.value,
                    "schema_version": SCHEMA_VERSION,
                },
            )

        return RawGeneration(
            status_code=http_response.status_code,
            body=body,
            envelope=envelope,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
