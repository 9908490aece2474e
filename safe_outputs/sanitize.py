"""Sanitization of untrusted agent text before it is published."""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable

DEFAULT_BLOCKED_DOMAINS: tuple[str, ...] = ()

ANSI_ESCAPE_RE = re.compile(r"\x1b(?:\[[0-?]*[ -/]*[@-~]|\][^\x07\x1b]*(?:\x07|\x1b\\)|[@-Z\\-_])")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
HTML_COMMENT_RE = re.compile(r"<!--.*?(?:-->|--!>|$)", re.DOTALL)
TAG_RE = re.compile(r"<(/?[A-Za-z!][^<>]*)>")
MENTION_RE = re.compile(r"(^|[^\w`@])@([A-Za-z][A-Za-z0-9-]{0,38}(?:/[A-Za-z0-9][A-Za-z0-9_.-]*)?)")
CODE_SPAN_RE = re.compile(r"(```.*?```|`[^`\n]*`)", re.DOTALL)
URL_RE = re.compile(r"https?://[^\s<>()\"'`]+", re.IGNORECASE)
BOT_TRIGGER_RE = re.compile(
    r"\b(fix(?:e[sd])?|close[sd]?|resolve[sd]?)(\s+)(#\d+)\b",
    re.IGNORECASE,
)
INVISIBLE_CHARS_RE = re.compile("[\u200b\u200c\u200d\u2060\ufeff\u202a-\u202e\u2066-\u2069]")
TRAILING_SPACE_RE = re.compile(r"[ \t]+$", re.MULTILINE)


def sanitize(
    text: str | None,
    allowed_mentions: Iterable[str] = (),
    blocked_domains: Iterable[str] = DEFAULT_BLOCKED_DOMAINS,
) -> str:
    """Neutralize markup, mentions, and injected markers in agent-authored text.

    Any ``<!-- ... -->`` in the input is dropped, so tracking markers can only
    be introduced afterwards by :func:`safe_outputs.markers.compose_body`.
    """
    if not text:
        return ""
    value = ANSI_ESCAPE_RE.sub("", str(text))
    value = CONTROL_CHARS_RE.sub("", value.replace("\r\n", "\n"))
    value = HTML_COMMENT_RE.sub("", value)
    # Nested tags like <scr<script>ipt> only surface after the inner one is converted.
    while True:
        converted = TAG_RE.sub(lambda match: f"({match.group(1).strip()})", value)
        if converted == value:
            break
        value = converted
    value = neutralize_mentions(value, allowed_mentions)
    value = redact_blocked_urls(value, blocked_domains)
    value = BOT_TRIGGER_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}`{m.group(3)}`", value)
    value = TRAILING_SPACE_RE.sub("", value)
    return value.rstrip()


def neutralize_mentions(text: str, allowed_mentions: Iterable[str] = ()) -> str:
    allowed = {name.strip().lstrip("@").lower() for name in allowed_mentions if name.strip()}

    def _wrap(match: re.Match[str]) -> str:
        login = match.group(2)
        if login.lower() in allowed or login.split("/")[0].lower() in allowed:
            return match.group(0)
        return f"{match.group(1)}`@{login}`"

    # Code spans are left alone; mentions are rewritten only in the gaps between them.
    pieces = CODE_SPAN_RE.split(text)
    return "".join(
        piece if index % 2 else MENTION_RE.sub(_wrap, piece) for index, piece in enumerate(pieces)
    )


def redact_blocked_urls(text: str, blocked_domains: Iterable[str]) -> str:
    blocked = [domain.strip().lower().lstrip(".") for domain in blocked_domains if domain.strip()]
    if not blocked:
        return text

    def _redact(match: re.Match[str]) -> str:
        host = _host_of(match.group(0))
        if any(host == domain or host.endswith("." + domain) for domain in blocked):
            return "(redacted)"
        return match.group(0)

    return URL_RE.sub(_redact, text)


def _host_of(url: str) -> str:
    remainder = url.split("://", 1)[-1]
    authority = re.split(r"[/?#]", remainder, maxsplit=1)[0]
    host = authority.rsplit("@", 1)[-1].split(":", 1)[0]
    return host.lower().rstrip(".")


def harden_unicode(text: str) -> str:
    """NFC-normalize, drop invisible/bidi controls, and fold fullwidth ASCII."""
    value = unicodedata.normalize("NFC", text)
    value = INVISIBLE_CHARS_RE.sub("", value)
    return "".join(
        chr(ord(char) - 0xFEE0) if 0xFF01 <= ord(char) <= 0xFF5E else char for char in value
    )


def sanitize_title(text: str | None, title_prefix: str = "", max_length: int = 128) -> str:
    """Single-line title sanitization with duplicate-prefix removal."""
    if not text:
        return ""
    value = harden_unicode(str(text))
    value = sanitize(value.replace("\n", " ").replace("\t", " "))
    value = re.sub(r"\s+", " ", value).strip()
    prefix = title_prefix.strip()
    if prefix:
        pattern = re.compile(r"^" + re.escape(prefix) + r"\s*(?:[:|-]\s*)?")
        while pattern.match(value):
            value = pattern.sub("", value, count=1).strip()
    if len(value) > max_length:
        value = value[: max_length - 3].rstrip() + "..."
    return value


def apply_title_prefix(title: str, title_prefix: str) -> str:
    if not title_prefix or not title_prefix.strip():
        return title
    if title.startswith(title_prefix.strip()):
        return title
    return f"{title_prefix}{title}"
