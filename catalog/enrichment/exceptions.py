"""Exceptions for the enrichment pipeline."""

from typing import Optional

from catalog.enrichment.models import FactSource


class UpstreamUnavailable(Exception):
    """A factual provider could not be used.

    Raised by the shared HTTP helper on transport errors, non-2xx responses
    and undecodable payloads. Resolvers catch it and degrade to "not found";
    it never leaves the resolver layer.
    """

    def __init__(
        self,
        source: FactSource,
        message: str,
        status_code: Optional[int] = None,
    ):
        super().__init__(f"{source.value}: {message}")
        self.source = source
        self.status_code = status_code


class GenerationFailed(Exception):
    """The constrained generation step failed; no record is produced.

    Carries the upstream HTTP status (None for transport errors, timeouts
    and configuration problems) and the raw upstream body for diagnostics.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.original_error = original_error

    @classmethod
    def from_missing_api_key(cls) -> "GenerationFailed":
        """Create error for a missing generation API key."""
        message = (
            "OpenAI API key not found. Autofill requires generation access.\n\n"
            "To fix this issue:\n"
            "1. Set OPENAI_API_KEY environment variable:\n"
            "   export OPENAI_API_KEY='sk-...'\n\n"
            "2. Or set enrichment.openai_api_key in the YAML config."
        )
        return cls(message)

    @classmethod
    def from_api_error(
        cls,
        status_code: int,
        body: Optional[str],
        error: Optional[Exception] = None,
    ) -> "GenerationFailed":
        """Create error for a non-2xx response from the provider."""
        message = f"Generation provider returned HTTP {status_code}"
        return cls(message, status_code=status_code, body=body, original_error=error)

    @classmethod
    def from_transport_error(cls, error: Exception) -> "GenerationFailed":
        """Create error for connection failures."""
        message = f"Generation request failed: {type(error).__name__}: {error}"
        return cls(message, original_error=error)

    @classmethod
    def from_timeout(cls, seconds: float) -> "GenerationFailed":
        message = f"Generation request did not complete within {seconds:g}s"
        return cls(message)

    @classmethod
    def from_unextractable(
        cls,
        status_code: Optional[int],
        body: Optional[str],
    ) -> "GenerationFailed":
        """Create error for a response with no JSON object in any known shape."""
        message = "Generation response contained no extractable JSON object"
        return cls(message, status_code=status_code, body=body)

    def to_detail(self) -> dict:
        """JSON-safe diagnostic payload for HTTP error responses."""
        return {
            "error": str(self),
            "upstream_status": self.status_code,
            "upstream_body": self.body,
        }
