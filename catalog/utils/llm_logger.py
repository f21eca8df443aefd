"""Generation call logging with cost tracking.

Every call to the text-generation provider is appended to a JSONL file with:
- model, call type and schema version
- prompt sizes, plus full prompts or previews
- token usage read from the raw response envelope
- a cost estimate based on the pricing table below

Usage:
    from catalog.utils.llm_logger import LLMLogger

    llm_logger = LLMLogger(Path("logs/llm_calls.jsonl"))
    llm_logger.log_call(
        call_type="autofill",
        model="gpt-4o-mini",
        system_prompt=instructions,
        user_prompt=user_prompt,
        raw_response=envelope,
    )
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from catalog.utils.logger import LoggerManager


# Pricing per 1M tokens; update when provider pricing changes
PRICING_PER_1M_TOKENS = {
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
}

DEFAULT_LLM_LOG_PATH = Path("logs/llm_calls.jsonl")


class LLMLogger:
    """Append-only JSONL logger for generation calls.

    Attributes:
        log_path: Path to the JSONL log file
        log_full_prompts: Whether to log full prompts or just previews
        preview_length: Max characters kept for prompt previews
    """

    def __init__(
        self,
        log_path: Optional[Path] = None,
        log_full_prompts: bool = False,
        preview_length: int = 500,
    ):
        self.log_path = Path(log_path) if log_path else DEFAULT_LLM_LOG_PATH
        self.log_full_prompts = log_full_prompts
        self.preview_length = preview_length

        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        self.logger = LoggerManager.get_logger(name="llm_logger")

    def _calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Estimated cost in USD; unknown models cost 0."""
        pricing = PRICING_PER_1M_TOKENS.get(model, {"input": 0, "output": 0})
        cost = (
            (input_tokens * pricing["input"] / 1_000_000) +
            (output_tokens * pricing["output"] / 1_000_000)
        )
        return round(cost, 6)

    def _truncate(self, text: str, max_length: int) -> str:
        if len(text) <= max_length:
            return text
        return text[:max_length] + "..."

    def log_call(
        self,
        call_type: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        raw_response: Optional[Dict[str, Any]],
        extra_metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Log one generation call.

        Args:
            call_type: Kind of call (e.g. "autofill")
            model: Model name
            system_prompt: Instructions sent with the request
            user_prompt: User input sent with the request
            raw_response: Decoded response envelope (usage is read from it)
            extra_metadata: Additional fields stored under "metadata"

        Returns:
            The log entry dict that was written
        """
        usage = (raw_response or {}).get("usage") or {}
        input_tokens = int(usage.get("input_tokens") or 0)
        output_tokens = int(usage.get("output_tokens") or 0)
        total_tokens = input_tokens + output_tokens

        cost_usd = self._calculate_cost(model, input_tokens, output_tokens)

        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "call_type": call_type,
            "model": model,
            "prompts": {
                "system_length": len(system_prompt),
                "user_length": len(user_prompt),
            },
            "usage": {
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "total_tokens": total_tokens,
            },
            "cost_usd": cost_usd,
        }

        if self.log_full_prompts:
            log_entry["prompts"]["system"] = system_prompt
            log_entry["prompts"]["user"] = user_prompt
        else:
            log_entry["prompts"]["system_preview"] = self._truncate(
                system_prompt, self.preview_length
            )
            log_entry["prompts"]["user_preview"] = self._truncate(
                user_prompt, self.preview_length
            )

        if extra_metadata:
            log_entry["metadata"] = extra_metadata

        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
        except OSError as e:
            self.logger.warning(f"Failed to write LLM log: {e}")

        self.logger.info(
            f"LLM call: {call_type} | model={model} | "
            f"tokens={total_tokens} (in={input_tokens}, out={output_tokens}) | "
            f"cost=${cost_usd:.6f}"
        )

        return log_entry
