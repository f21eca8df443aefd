"""Structured-output contract for the constrained generator.

One canonical schema version. The generator is asked only for subjective
fields (summary, tags, an image filename placeholder); `type` and `title`
are echoed back and pinned by enum, `href` is pinned to the empty string.
Factual fields belong to the resolvers and are not part of the schema.
"""

import json
from typing import Any, Dict

from pydantic.alias_generators import to_camel

from catalog.enrichment.models import (
    FACT_FIELDS_BY_TYPE,
    MAX_SUMMARY_LENGTH,
    MAX_TAG_LENGTH,
    MAX_TAGS,
    MIN_SUMMARY_LENGTH,
    MIN_TAGS,
    TAG_PATTERN,
    EntityReference,
    EntityType,
)


SCHEMA_VERSION = "catalog-entry/3"
SCHEMA_NAME = "catalog_entry_v3"

# Empty string or a slug filename
IMAGE_PLACEHOLDER_PATTERN = r"^$|^[a-z0-9]+(?:-[a-z0-9]+)*\.(?:jpg|jpeg|png|webp)$"


def build_output_schema(entity_type: EntityType, title: str) -> Dict[str, Any]:
    """JSON Schema for the generator's output.

    Args:
        entity_type: Entry type, pinned by enum
        title: Entry title, pinned by enum

    Returns:
        Strict JSON Schema (all properties required, no additional ones)
    """
    return {
        "type": "object",
        "additionalProperties": False,
        "required": ["type", "title", "href", "image", "summary", "tags"],
        "properties": {
            "type": {"type": "string", "enum": [entity_type.value]},
            "title": {"type": "string", "enum": [title]},
            "href": {
                "type": "string",
                "enum": [""],
                "description": "Always empty; reference links are resolved separately.",
            },
            "image": {
                "type": "string",
                "pattern": IMAGE_PLACEHOLDER_PATTERN,
                "description": "Lowercase hyphenated filename derived from the title, or empty.",
            },
            "summary": {
                "type": "string",
                "minLength": MIN_SUMMARY_LENGTH,
                "maxLength": MAX_SUMMARY_LENGTH,
                "description": "One to three neutral sentences.",
            },
            "tags": {
                "type": "array",
                "minItems": MIN_TAGS,
                "maxItems": MAX_TAGS,
                "items": {
                    "type": "string",
                    "pattern": TAG_PATTERN,
                    "maxLength": MAX_TAG_LENGTH,
                },
            },
        },
    }


def build_text_format(entity_type: EntityType, title: str) -> Dict[str, Any]:
    """`text.format` block for the Responses API."""
    return {
        "format": {
            "type": "json_schema",
            "name": SCHEMA_NAME,
            "strict": True,
            "schema": build_output_schema(entity_type, title),
        }
    }


def build_instructions(entity_type: EntityType) -> str:
    """System instructions for one entry type."""
    owned = [to_camel(f) for f in FACT_FIELDS_BY_TYPE[entity_type]]
    owned_line = ", ".join(["href", "imageUrl"] + owned)

    return f"""You write entries for a small reference catalog of {entity_type.value}s.
Fill in ONLY the subjective fields of the JSON schema you are given.

RULES:
- summary: 1-3 neutral, encyclopedic sentences ({MIN_SUMMARY_LENGTH}-{MAX_SUMMARY_LENGTH} characters).
  State only what is widely documented. If you are not certain what the title
  refers to, describe it in general terms instead of guessing specifics.
- Do NOT invent facts: no dates, numbers, names, quotes or claims you cannot verify.
- tags: {MIN_TAGS}-{MAX_TAGS} lowercase topical tags, hyphens instead of spaces
  (e.g. "computer-science"), no duplicates, no tag equal to the title.
- image: a lowercase hyphenated filename derived from the title with a .jpg
  extension (e.g. "ada-lovelace.jpg"), or an empty string.
- href: always an empty string. Never write a URL anywhere.
- type and title: repeat the given values unchanged.

These fields are looked up from factual sources and are NOT yours to supply,
do not mention or guess them: {owned_line}.
"""


def build_user_prompt(reference: EntityReference) -> str:
    """User input: the reference plus any already-known values as context."""
    lines = [
        "Create a catalog entry.",
        "",
        f"Title: {reference.title}",
        f"Type: {reference.type.value}",
    ]
    if reference.known_fields:
        known = json.dumps(reference.known_fields, ensure_ascii=False, sort_keys=True, default=str)
        lines += [
            "",
            "Already known (context only; keep consistent, do not copy URLs or dates):",
            known,
        ]
    return "\n".join(lines)
