"""Tests for LLM logger utility.

Verifies logging of generation calls with cost tracking and prompt capture.
"""

import json

import pytest

from catalog.utils.llm_logger import PRICING_PER_1M_TOKENS, LLMLogger


@pytest.fixture
def temp_log_path(tmp_path):
    """Create temporary log file path."""
    return tmp_path / "test_llm_calls.jsonl"


@pytest.fixture
def envelope_with_usage():
    return {"id": "resp_1", "usage": {"input_tokens": 1000, "output_tokens": 500}}


class TestLLMLogger:
    """Tests for LLMLogger class."""

    def test_init_creates_log_directory(self, tmp_path):
        log_path = tmp_path / "subdir" / "llm_calls.jsonl"
        LLMLogger(log_path=log_path)

        assert log_path.parent.exists()

    def test_calculate_cost_gpt4o_mini(self, temp_log_path):
        logger = LLMLogger(temp_log_path)

        cost = logger._calculate_cost("gpt-4o-mini", 1000, 500)

        pricing = PRICING_PER_1M_TOKENS["gpt-4o-mini"]
        expected = (1000 * pricing["input"] + 500 * pricing["output"]) / 1_000_000
        assert cost == pytest.approx(expected)

    def test_unknown_model_costs_nothing(self, temp_log_path):
        assert LLMLogger(temp_log_path)._calculate_cost("mystery-model", 1000, 1000) == 0

    def test_log_call_writes_jsonl(self, temp_log_path, envelope_with_usage):
        logger = LLMLogger(temp_log_path)

        logger.log_call(
            call_type="autofill",
            model="gpt-4o-mini",
            system_prompt="You write entries.",
            user_prompt="Title: Ada Lovelace",
            raw_response=envelope_with_usage,
            extra_metadata={"title": "Ada Lovelace"},
        )
        logger.log_call(
            call_type="autofill",
            model="gpt-4o-mini",
            system_prompt="You write entries.",
            user_prompt="Title: Alan Turing",
            raw_response=envelope_with_usage,
        )

        lines = temp_log_path.read_text().splitlines()
        assert len(lines) == 2
        entry = json.loads(lines[0])
        assert entry["call_type"] == "autofill"
        assert entry["usage"] == {"input_tokens": 1000, "output_tokens": 500, "total_tokens": 1500}
        assert entry["cost_usd"] > 0
        assert entry["metadata"] == {"title": "Ada Lovelace"}
        assert entry["prompts"]["user_preview"] == "Title: Ada Lovelace"
        assert "metadata" not in json.loads(lines[1])

    def test_missing_usage_counts_zero(self, temp_log_path):
        entry = LLMLogger(temp_log_path).log_call(
            call_type="autofill",
            model="gpt-4o-mini",
            system_prompt="s",
            user_prompt="u",
            raw_response=None,
        )
        assert entry["usage"]["total_tokens"] == 0
        assert entry["cost_usd"] == 0

    def test_prompt_preview_truncated(self, temp_log_path):
        entry = LLMLogger(temp_log_path, preview_length=10).log_call(
            call_type="autofill",
            model="gpt-4o-mini",
            system_prompt="x" * 50,
            user_prompt="short",
            raw_response={},
        )
        assert entry["prompts"]["system_preview"] == "x" * 10 + "..."
        assert entry["prompts"]["system_length"] == 50

    def test_full_prompts(self, temp_log_path):
        entry = LLMLogger(temp_log_path, log_full_prompts=True).log_call(
            call_type="autofill",
            model="gpt-4o-mini",
            system_prompt="x" * 600,
            user_prompt="u",
            raw_response={},
        )
        assert entry["prompts"]["system"] == "x" * 600
        assert "system_preview" not in entry["prompts"]
