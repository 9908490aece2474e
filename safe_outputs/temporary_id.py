"""Temporary ID parsing, batch-scoped resolution map, and text substitution.

Agents refer to entities they asked to create earlier in the same batch with
placeholders such as ``aw_abc123`` (optionally ``#``-prefixed, case-insensitive).
Create-type handlers register the permanent reference once the platform call
succeeds; later intents resolve through the map or are deferred to a later pass.
"""

from __future__ import annotations

import json
import random
import re
import string
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Union

TEMPORARY_ID_RE = re.compile(r"^aw_[A-Za-z0-9]{3,8}$", re.IGNORECASE)
TEMPORARY_ID_REFERENCE_RE = re.compile(r"#(aw_[A-Za-z0-9]+)\b", re.IGNORECASE)
_MAP_KEY_RE = re.compile(r"^aw_[a-z0-9]+$")
_ALPHABET = string.ascii_letters + string.digits


@dataclass(frozen=True)
class IssueReference:
    repo: str
    number: int


@dataclass(frozen=True)
class DraftItemReference:
    draft_item_id: str


ResolvedReference = Union[IssueReference, DraftItemReference]


@dataclass(frozen=True)
class ResolvedTarget:
    owner: str
    repo: str
    number: int

    @property
    def repo_slug(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class Resolution:
    resolved: ResolvedTarget | None
    was_temporary_id: bool
    error_message: str = ""

    @property
    def is_deferred(self) -> bool:
        return self.was_temporary_id and self.resolved is None

    @property
    def is_error(self) -> bool:
        return self.resolved is None and not self.is_deferred


def is_temporary_id(value: Any) -> bool:
    return isinstance(value, str) and bool(TEMPORARY_ID_RE.match(value))


def normalize_temporary_id(value: str) -> str:
    text = str(value).strip()
    if text.startswith("#"):
        text = text[1:]
    return text.lower()


def generate_temporary_id(rng: random.Random | None = None) -> str:
    chooser = rng or random.SystemRandom()
    return "aw_" + "".join(chooser.choice(_ALPHABET) for _ in range(8))


class TemporaryIdMap:
    """Grow-only mapping of normalized temporary IDs to resolved references."""

    def __init__(self, entries: Mapping[str, ResolvedReference] | None = None) -> None:
        self._entries: dict[str, ResolvedReference] = {}
        for key, value in (entries or {}).items():
            self.register(key, value)

    def register(self, temporary_id: str, reference: ResolvedReference) -> bool:
        """Record a reference; returns False when the key was already registered."""
        key = normalize_temporary_id(temporary_id)
        if not _MAP_KEY_RE.match(key):
            raise ValueError(f"Invalid temporary_id format: '{temporary_id}'")
        if key in self._entries:
            return False
        self._entries[key] = reference
        return True

    def get(self, temporary_id: str) -> ResolvedReference | None:
        return self._entries.get(normalize_temporary_id(temporary_id))

    def __contains__(self, temporary_id: object) -> bool:
        return isinstance(temporary_id, str) and normalize_temporary_id(temporary_id) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def items(self) -> list[tuple[str, ResolvedReference]]:
        return list(self._entries.items())

    def to_dict(self) -> dict[str, dict[str, Any]]:
        out: dict[str, dict[str, Any]] = {}
        for key, value in self._entries.items():
            if isinstance(value, IssueReference):
                out[key] = {"repo": value.repo, "number": value.number}
            else:
                out[key] = {"draft_item_id": value.draft_item_id}
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], default_repo: str = "") -> "TemporaryIdMap":
        """Load the serialized map shape, tolerating the legacy ``id -> number`` form."""
        id_map = cls()
        for key, value in raw.items():
            if not _MAP_KEY_RE.match(normalize_temporary_id(str(key))):
                continue
            reference: ResolvedReference | None = None
            if isinstance(value, bool):
                continue
            if isinstance(value, int):
                reference = IssueReference(repo=default_repo, number=value)
            elif isinstance(value, Mapping):
                if "number" in value:
                    reference = IssueReference(
                        repo=str(value.get("repo") or default_repo),
                        number=int(value["number"]),
                    )
                elif value.get("draft_item_id") or value.get("draftItemId"):
                    reference = DraftItemReference(
                        draft_item_id=str(value.get("draft_item_id") or value.get("draftItemId"))
                    )
            if reference is not None:
                id_map.register(str(key), reference)
        return id_map

    @classmethod
    def from_json(cls, text: str, default_repo: str = "") -> "TemporaryIdMap":
        if not text.strip():
            return cls()
        raw = json.loads(text)
        if not isinstance(raw, dict):
            raise ValueError("Temporary ID map must be a JSON object")
        return cls.from_mapping(raw, default_repo=default_repo)


def _invalid_format(value: str) -> str:
    return (
        f"Invalid temporary ID format: '{value}'. Temporary IDs must be in format 'aw_' "
        "followed by 3 to 8 alphanumeric characters (A-Za-z0-9). Example: 'aw_abc' or 'aw_abc12345'"
    )


def validate_declared_temporary_id(value: Any) -> tuple[str | None, str]:
    """Validate the ``temporary_id`` an intent asks to register.

    Returns ``(normalized_id, "")`` on success, ``(None, "")`` when absent and
    ``(None, error)`` when malformed.
    """
    if value is None:
        return None, ""
    if not isinstance(value, str):
        return None, f"temporary_id must be a string (got {type(value).__name__})"
    normalized = normalize_temporary_id(value)
    if not is_temporary_id(normalized):
        return None, _invalid_format(value)
    return normalized, ""


def resolve(
    ref: Any,
    id_map: TemporaryIdMap,
    fallback_owner: str,
    fallback_repo: str,
) -> Resolution:
    """Resolve a number field that may hold a temporary ID.

    An unresolved but well-formed temporary ID yields ``was_temporary_id=True``
    with ``resolved=None``; callers treat that as a deferral, never an error.
    """
    if ref is None or (isinstance(ref, str) and not ref.strip()):
        return Resolution(None, False, "Issue number is missing")
    if isinstance(ref, bool):
        return Resolution(None, False, f"Invalid issue number: {ref}")

    fallback_slug = f"{fallback_owner}/{fallback_repo}" if fallback_owner and fallback_repo else ""

    if isinstance(ref, int):
        return _numeric(ref, str(ref), fallback_slug)

    text = str(ref).strip()
    bare = text[1:] if text.startswith("#") else text

    if is_temporary_id(bare):
        reference = id_map.get(bare)
        if reference is None:
            return Resolution(
                None,
                True,
                f"Temporary ID '{text}' not found in map. Ensure the issue was created before linking.",
            )
        if not isinstance(reference, IssueReference):
            return Resolution(
                None,
                False,
                f"Temporary ID '{text}' refers to a project draft item, not an issue or pull request",
            )
        return _with_slug(reference.repo or fallback_slug, reference.number, True)

    if bare.lower().startswith("aw_"):
        return Resolution(None, False, _invalid_format(text))

    if bare.isascii() and bare.isdigit():
        return _numeric(int(bare), text, fallback_slug)
    return Resolution(
        None,
        False,
        f"Invalid issue number: {text}. Expected either a valid temporary ID "
        "(format: aw_ followed by 3-8 alphanumeric characters) or a numeric issue number.",
    )


def _numeric(number: int, original: str, fallback_slug: str) -> Resolution:
    if number <= 0:
        return Resolution(None, False, f"Invalid issue number: {original}")
    return _with_slug(fallback_slug, number, False)


def _with_slug(slug: str, number: int, was_temporary_id: bool) -> Resolution:
    owner, _, name = slug.partition("/")
    if not owner or not name or "/" in name:
        return Resolution(
            None,
            False,
            f"Invalid repository slug '{slug}' while resolving issue target (expected 'owner/repo')",
        )
    return Resolution(ResolvedTarget(owner=owner, repo=name, number=number), was_temporary_id)


def find_references(text: str) -> list[str]:
    """Return normalized temporary IDs referenced as ``#aw_...`` in free text."""
    seen = [normalize_temporary_id(match.group(1)) for match in TEMPORARY_ID_REFERENCE_RE.finditer(text or "")]
    return list(dict.fromkeys(seen))


def has_unresolved_references(text: str, id_map: TemporaryIdMap) -> bool:
    return any(ref not in id_map for ref in find_references(text))


def replace_references(text: str, id_map: TemporaryIdMap, repo_slug: str = "") -> str:
    """Rewrite ``#aw_...`` references present in the map to permanent numbers.

    Same-repo references become ``#N``; cross-repo references become
    ``owner/repo#N``. IDs absent from the map are left untouched.
    """

    def _substitute(match: re.Match[str]) -> str:
        reference = id_map.get(match.group(1))
        if not isinstance(reference, IssueReference):
            return match.group(0)
        if not reference.repo or reference.repo == repo_slug:
            return f"#{reference.number}"
        return f"{reference.repo}#{reference.number}"

    return TEMPORARY_ID_REFERENCE_RE.sub(_substitute, text or "")
