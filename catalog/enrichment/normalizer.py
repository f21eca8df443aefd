"""Normalization and repair of merged records.

Enforces the record invariants regardless of where a value came from:
- tags: 2-6 unique lowercase slugs, padded with generic fallbacks
- image: slug filename, derived from the title when missing or malformed
- summary: minimum length, otherwise the "not established" sentinel
- href: verified http(s) URL, otherwise the "no reference" sentinel

Every function is deterministic and idempotent. Repairs are reported by
name so the caller can record them in the enrichment trace; a thin
generator result is repaired, never raised.
"""

import re
import unicodedata
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

from catalog.enrichment.models import (
    IMAGE_EXTENSIONS,
    IMAGE_PATTERN,
    MAX_SUMMARY_LENGTH,
    MAX_TAG_LENGTH,
    MAX_TAGS,
    MIN_SUMMARY_LENGTH,
    MIN_TAGS,
    NO_REFERENCE_HREF,
    SUMMARY_NOT_ESTABLISHED,
    EntityType,
)

# Generic padding, tried in order after the entry type itself
FALLBACK_TAGS = ("catalog", "reference", "general", "entry")

DEFAULT_IMAGE_EXTENSION = "jpg"
UNTITLED_SLUG = "untitled"

_IMAGE_RE = re.compile(IMAGE_PATTERN)
_SENTENCE_END_RE = re.compile(r"[.!?](?=\s|$)")


def slugify(text: str, max_length: Optional[int] = None) -> str:
    """Lowercase ASCII slug with single hyphens.

    >>> slugify("Machine Learning")
    'machine-learning'
    >>> slugify("  Ça va, très_bien! ")
    'ca-va-tres-bien'
    """
    text = unicodedata.normalize("NFKD", str(text))
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    if max_length is not None and len(text) > max_length:
        text = text[:max_length].rstrip("-")
    return text


# =============================================================================
# Tags
# =============================================================================


def normalize_tags(
    tags: Iterable[str],
    entity_type: Optional[EntityType] = None,
) -> Tuple[List[str], List[str]]:
    """Slugify, dedupe, truncate and pad a tag list.

    Args:
        tags: Raw tags in order of preference
        entity_type: Used as the first padding tag

    Returns:
        (tags, repairs) where repairs names what had to change
    """
    repairs: List[str] = []
    raw = list(tags or [])

    cleaned: List[str] = []
    for tag in raw:
        slug = slugify(tag, max_length=MAX_TAG_LENGTH)
        if slug and slug not in cleaned:
            cleaned.append(slug)
    if cleaned != raw:
        repairs.append("tags_cleaned")

    if len(cleaned) > MAX_TAGS:
        cleaned = cleaned[:MAX_TAGS]
        repairs.append("tags_truncated")

    if len(cleaned) < MIN_TAGS:
        padding = ((entity_type.value,) if entity_type else ()) + FALLBACK_TAGS
        for tag in padding:
            if len(cleaned) >= MIN_TAGS:
                break
            if tag not in cleaned:
                cleaned.append(tag)
        repairs.append("tags_padded")

    return cleaned, repairs


# =============================================================================
# Image
# =============================================================================


def derive_image_name(title: str) -> str:
    """`Ada Lovelace` -> `ada-lovelace.jpg`."""
    slug = slugify(title, max_length=80) or UNTITLED_SLUG
    return f"{slug}.{DEFAULT_IMAGE_EXTENSION}"


def normalize_image(image: Optional[str], title: str) -> Tuple[str, List[str]]:
    """Keep a well-formed filename, otherwise derive one from the title."""
    if image:
        candidate = image.strip().lower()
        if _IMAGE_RE.match(candidate):
            return candidate, ([] if candidate == image else ["image_cleaned"])
        stem, _, ext = candidate.rpartition(".")
        # URLs and paths are not filenames
        if stem and ext in IMAGE_EXTENSIONS and "/" not in stem:
            slug = slugify(stem, max_length=80)
            if slug:
                return f"{slug}.{ext}", ["image_cleaned"]
    return derive_image_name(title), ["image_derived"]


# =============================================================================
# Summary
# =============================================================================


def _truncate_summary(text: str) -> str:
    head = text[:MAX_SUMMARY_LENGTH]
    ends = [m.end() for m in _SENTENCE_END_RE.finditer(head)]
    if ends and ends[-1] >= MIN_SUMMARY_LENGTH:
        return head[:ends[-1]]
    head = head[:MAX_SUMMARY_LENGTH - 3]
    cut = head.rsplit(" ", 1)[0].rstrip(" ,;:")
    # An early last space would leave too little text; cut mid-word instead
    if len(cut) < MIN_SUMMARY_LENGTH:
        cut = head
    return cut + "..."


def normalize_summary(summary: Optional[str]) -> Tuple[str, List[str]]:
    """Collapse whitespace and enforce length bounds."""
    text = " ".join((summary or "").split())
    if len(text) < MIN_SUMMARY_LENGTH:
        return SUMMARY_NOT_ESTABLISHED, ["summary_sentinel"]
    if len(text) > MAX_SUMMARY_LENGTH:
        return _truncate_summary(text), ["summary_truncated"]
    return text, []


# =============================================================================
# href
# =============================================================================


def is_verified_url(url: Optional[str]) -> bool:
    if not isinstance(url, str) or not url:
        return False
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def normalize_href(url: Optional[str]) -> Tuple[str, List[str]]:
    """Resolver URL or the "no reference" sentinel."""
    if is_verified_url(url):
        return url, []
    return NO_REFERENCE_HREF, ["href_sentinel"]
