"""Response extraction for structured-output envelopes.

The generation provider does not return one fixed envelope shape across API
versions. The payload is recovered by trying an ordered list of shape
matchers; each returns the JSON object or None, and the first hit wins:

1. structured_json_block: a typed JSON content block
   {"output": [{"content": [{"type": "output_json", "json": {...}}]}]}
2. text_block: a typed text content block whose string is JSON
   {"output": [{"content": [{"type": "output_text", "text": "{...}"}]}]}
3. top_level_text: the convenience top-level text field
   {"output_text": "{...}"}
"""

import json
import re
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

JsonObject = Dict[str, Any]
ShapeMatcher = Callable[[Any], Optional[JsonObject]]

JSON_BLOCK_TYPES = ("output_json", "json")
TEXT_BLOCK_TYPES = ("output_text", "text")

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_json_object(text: Any) -> Optional[JsonObject]:
    """Parse a string that should hold one JSON object.

    A surrounding markdown code fence is tolerated. Anything that is not a
    JSON object (arrays, scalars, invalid JSON) yields None.
    """
    if not isinstance(text, str):
        return None
    stripped = text.strip()
    fenced = _FENCE_RE.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    try:
        value = json.loads(stripped)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def iter_content_blocks(envelope: Any) -> Iterator[Dict[str, Any]]:
    """Yield content blocks of every output item, in order."""
    if not isinstance(envelope, dict):
        return
    output = envelope.get("output")
    if not isinstance(output, list):
        return
    for item in output:
        if not isinstance(item, dict):
            continue
        content = item.get("content")
        if not isinstance(content, list):
            continue
        for block in content:
            if isinstance(block, dict):
                yield block


def structured_json_block(envelope: Any) -> Optional[JsonObject]:
    for block in iter_content_blocks(envelope):
        if block.get("type") not in JSON_BLOCK_TYPES:
            continue
        value = block.get("json")
        if value is None:
            value = block.get("parsed")
        if isinstance(value, dict):
            return value
    return None


def text_block(envelope: Any) -> Optional[JsonObject]:
    for block in iter_content_blocks(envelope):
        if block.get("type") not in TEXT_BLOCK_TYPES:
            continue
        value = parse_json_object(block.get("text"))
        if value is not None:
            return value
    return None


def top_level_text(envelope: Any) -> Optional[JsonObject]:
    if not isinstance(envelope, dict):
        return None
    return parse_json_object(envelope.get("output_text"))


EXTRACTION_SHAPES: Tuple[Tuple[str, ShapeMatcher], ...] = (
    ("structured_json_block", structured_json_block),
    ("text_block", text_block),
    ("top_level_text", top_level_text),
)


def extract_with_shape(envelope: Any) -> Tuple[Optional[str], Optional[JsonObject]]:
    """Try every shape in priority order.

    Returns:
        (shape name, payload) for the first matching shape, or (None, None)
    """
    for name, matcher in EXTRACTION_SHAPES:
        value = matcher(envelope)
        if value is not None:
            return name, value
    return None, None


def extract_structured(envelope: Any) -> Optional[JsonObject]:
    """Recover the JSON payload from a raw response envelope.

    Returns:
        The payload object, or None if no tolerated shape holds valid JSON
    """
    return extract_with_shape(envelope)[1]
