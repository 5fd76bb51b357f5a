"""Slug identifiers for projects and tasks.

Both kinds share one grammar: lowercase ASCII letters, digits and interior
dashes. ``normalize`` never fails; callers check ``is_valid`` afterwards.
"""

from __future__ import annotations

import re

_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
_DASH_RUNS = re.compile(r"-+")
_VALID_SLUG = re.compile(r"[a-z0-9](?:[a-z0-9-]*[a-z0-9])?")


def normalize(raw: str) -> str:
    """Lowercase, trim, map anything outside [a-z0-9-] to '-', collapse and strip dashes."""
    slug = raw.strip().lower()
    slug = _INVALID_CHARS.sub("-", slug)
    slug = _DASH_RUNS.sub("-", slug)
    return slug.strip("-")


def is_valid(slug: str) -> bool:
    return bool(slug) and _VALID_SLUG.fullmatch(slug) is not None
