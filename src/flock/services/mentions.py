"""Extraction of ``@username`` mentions from post and comment bodies."""

from __future__ import annotations

import re

USERNAME_PATTERN = r"[a-zA-Z][a-zA-Z0-9_-]{0,17}"

RX_USERNAME = re.compile(rf"^{USERNAME_PATTERN}$")
RX_MENTION = re.compile(rf"(?<![\w@])@({USERNAME_PATTERN})(?![a-zA-Z0-9_-])")


def collect_mentions(content: str) -> list[str]:
    """Return the distinct usernames mentioned in ``content``, in order of appearance."""
    seen: dict[str, None] = {}
    for match in RX_MENTION.finditer(content):
        seen.setdefault(match.group(1), None)
    return list(seen)
