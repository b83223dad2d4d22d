"""Small text helpers shared by tools and workflows."""

from __future__ import annotations

import re

_SLUG_INVALID = re.compile(r"[^a-z0-9\- _]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_slug(raw: str | None, default: str = "task") -> str:
    """Turn free text into a file-name-safe slug.

    Lowercases, replaces characters outside ``[a-z0-9-_ ]`` with spaces,
    trims, and collapses whitespace runs into ``-``.

    >>> sanitize_slug("Fix Bug #42!!")
    'fix-bug-42'
    >>> sanitize_slug("")
    'task'
    """
    base = _SLUG_INVALID.sub(" ", (raw or "").lower()).strip()
    base = _WHITESPACE.sub("-", base)
    return base or default


def count_words(text: str) -> int:
    return len([w for w in _WHITESPACE.split(text.strip()) if w])


