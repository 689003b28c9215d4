"""Text normalization helpers for postings and provider output."""

import re
from typing import Iterable

from bs4 import BeautifulSoup

_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace and trim the ends."""
    return _WHITESPACE.sub(" ", text or "").strip()


def normalize_identity(text: str) -> str:
    """Case-insensitive, whitespace-normalized form used for dedup keys."""
    return normalize_whitespace(text).casefold()


def html_to_text(html: str) -> str:
    """Strip markup from a board description, keeping readable spacing."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    return normalize_whitespace(soup.get_text(" "))


def title_matches_roles(title: str, roles: Iterable[str]) -> bool:
    """True when any desired role appears in the title (case-insensitive substring)."""
    title_lower = (title or "").lower()
    return any(role.strip() and role.strip().lower() in title_lower for role in roles)


def slugify_filename(text: str) -> str:
    """Replace whitespace runs with underscores, e.g. for attachment names."""
    return _WHITESPACE.sub("_", (text or "").strip())


def as_string_list(value) -> list[str]:
    """Coerce provider output into a clean list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [part for part in re.split(r"[,\n]", value)]
    if not isinstance(value, (list, tuple)):
        return []
    result = []
    for item in value:
        if isinstance(item, (str, int, float)) and not isinstance(item, bool):
            cleaned = normalize_whitespace(str(item))
            if cleaned:
                result.append(cleaned)
    return result
