"""Slug helpers."""

import re
import unicodedata
from collections.abc import Iterable

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str | None) -> str:
    """Return an ASCII, lowercase, dash separated slug for ``text``."""
    if not text:
        return ""
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("-", ascii_text.lower()).strip("-")


def suggest_unique_slug(base: str, taken: Iterable[str]) -> str:
    """Return ``base`` or the first ``base{n}`` (n >= 1) that is not taken."""
    taken = set(taken)
    if base not in taken:
        return base
    counter = 1
    while f"{base}{counter}" in taken:
        counter += 1
    return f"{base}{counter}"


__all__ = ["slugify", "suggest_unique_slug"]
