"""Aggregate length, mention, and link limits for published text."""

from __future__ import annotations

import re

from safe_outputs.errors import LimitExceededError

MAX_LENGTH = 65536
MAX_MENTIONS = 10
MAX_LINKS = 50

MENTION_RE = re.compile(r"(?:^|(?<=[^\w`@]))@[A-Za-z][A-Za-z0-9-]{0,38}(?:/[A-Za-z0-9][A-Za-z0-9_.-]*)?")
LINK_RE = re.compile(r"https?://", re.IGNORECASE)


def count_mentions(text: str) -> int:
    return len(MENTION_RE.findall(text or ""))


def count_links(text: str) -> int:
    return len(LINK_RE.findall(text or ""))


def check(text: str) -> LimitExceededError | None:
    """Return the first violated limit, checked as length, mentions, then links."""
    value = text or ""
    if len(value) > MAX_LENGTH:
        return LimitExceededError(
            "E006",
            f"E006: Comment body exceeds maximum length of {MAX_LENGTH} characters (got {len(value)})",
            actual=len(value),
            limit=MAX_LENGTH,
        )
    mentions = count_mentions(value)
    if mentions > MAX_MENTIONS:
        return LimitExceededError(
            "E007",
            f"E007: Comment contains {mentions} mentions, maximum is {MAX_MENTIONS}",
            actual=mentions,
            limit=MAX_MENTIONS,
        )
    links = count_links(value)
    if links > MAX_LINKS:
        return LimitExceededError(
            "E008",
            f"E008: Comment contains {links} links, maximum is {MAX_LINKS}",
            actual=links,
            limit=MAX_LINKS,
        )
    return None


def enforce(text: str) -> str:
    violation = check(text)
    if violation is not None:
        raise violation
    return text
