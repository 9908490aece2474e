from __future__ import annotations

import random

import pytest

from safe_outputs.temporary_id import (
    DraftItemReference,
    IssueReference,
    TemporaryIdMap,
    find_references,
    generate_temporary_id,
    has_unresolved_references,
    is_temporary_id,
    normalize_temporary_id,
    replace_references,
    resolve,
    validate_declared_temporary_id,
)


def test_is_temporary_id_enforces_length_and_charset() -> None:
    assert is_temporary_id("aw_abc")
    assert is_temporary_id("AW_abc12345")
    assert not is_temporary_id("aw_ab")
    assert not is_temporary_id("aw_abc123456")
    assert not is_temporary_id("aw_ab-c")
    assert not is_temporary_id(123)


def test_normalize_strips_hash_and_lowercases() -> None:
    assert normalize_temporary_id(" #AW_Abc12 ") == "aw_abc12"


def test_generate_temporary_id_matches_pattern() -> None:
    value = generate_temporary_id(random.Random(7))
    assert is_temporary_id(value)
    assert len(value) == len("aw_") + 8


def test_unresolved_temporary_id_defers_without_raising() -> None:
    resolution = resolve("aw_abc123", TemporaryIdMap(), "octo", "widgets")

    assert resolution.resolved is None
    assert resolution.was_temporary_id is True
    assert resolution.is_deferred
    assert not resolution.is_error


def test_resolved_temporary_id_uses_mapped_repo() -> None:
    id_map = TemporaryIdMap({"aw_abc123": IssueReference(repo="other/repo", number=12)})

    resolution = resolve("#AW_ABC123", id_map, "octo", "widgets")

    assert resolution.resolved is not None
    assert resolution.resolved.repo_slug == "other/repo"
    assert resolution.resolved.number == 12
    assert resolution.was_temporary_id


def test_mapped_reference_without_repo_falls_back_to_default() -> None:
    id_map = TemporaryIdMap({"aw_abc123": IssueReference(repo="", number=3)})

    resolution = resolve("aw_abc123", id_map, "octo", "widgets")

    assert resolution.resolved is not None
    assert resolution.resolved.repo_slug == "octo/widgets"


@pytest.mark.parametrize("ref", ["aw_", "aw_toolong123456", "aw_a!c"])
def test_malformed_temporary_id_is_an_error_not_a_deferral(ref: str) -> None:
    resolution = resolve(ref, TemporaryIdMap(), "octo", "widgets")

    assert resolution.resolved is None
    assert resolution.was_temporary_id is False
    assert resolution.is_error
    assert "Invalid temporary ID format" in resolution.error_message


@pytest.mark.parametrize("ref", [42, "42", "#42"])
def test_numeric_refs_resolve_against_fallback_repo(ref: object) -> None:
    resolution = resolve(ref, TemporaryIdMap(), "octo", "widgets")

    assert resolution.resolved is not None
    assert resolution.resolved.number == 42
    assert resolution.resolved.repo_slug == "octo/widgets"
    assert resolution.was_temporary_id is False


@pytest.mark.parametrize("ref", [None, "", 0, -3, "abc", True, "\u00b2", "#\u0661\u0662"])
def test_invalid_refs_are_errors(ref: object) -> None:
    resolution = resolve(ref, TemporaryIdMap(), "octo", "widgets")

    assert resolution.is_error
    assert resolution.error_message


def test_draft_reference_cannot_resolve_issue_target() -> None:
    id_map = TemporaryIdMap({"aw_draft1": DraftItemReference(draft_item_id="PVTI_1")})

    resolution = resolve("aw_draft1", id_map, "octo", "widgets")

    assert resolution.is_error
    assert "draft item" in resolution.error_message


def test_register_is_first_wins() -> None:
    id_map = TemporaryIdMap()

    assert id_map.register("aw_abc", IssueReference("octo/widgets", 1)) is True
    assert id_map.register("AW_ABC", IssueReference("octo/widgets", 2)) is False
    assert id_map.get("aw_abc") == IssueReference("octo/widgets", 1)
    assert len(id_map) == 1


def test_register_rejects_non_temporary_keys() -> None:
    with pytest.raises(ValueError):
        TemporaryIdMap().register("issue-1", IssueReference("octo/widgets", 1))


def test_replace_references_same_and_cross_repo() -> None:
    id_map = TemporaryIdMap(
        {
            "aw_x1": IssueReference("octo/widgets", 7),
            "aw_far": IssueReference("other/repo", 9),
        }
    )

    text = replace_references("see #aw_x1, #AW_FAR and #aw_unknown", id_map, "octo/widgets")

    assert text == "see #7, other/repo#9 and #aw_unknown"


def test_replace_references_leaves_draft_items_literal() -> None:
    id_map = TemporaryIdMap({"aw_draft1": DraftItemReference("PVTI_1")})
    assert replace_references("tracked in #aw_draft1", id_map, "octo/widgets") == "tracked in #aw_draft1"


def test_find_and_detect_unresolved_references() -> None:
    id_map = TemporaryIdMap({"aw_abc": IssueReference("octo/widgets", 1)})
    text = "#aw_abc then #aw_def then #AW_DEF again"

    assert find_references(text) == ["aw_abc", "aw_def"]
    assert has_unresolved_references(text, id_map)
    assert not has_unresolved_references("#aw_abc", id_map)


def test_map_serialization_round_trip_and_legacy_shape() -> None:
    id_map = TemporaryIdMap.from_json(
        '{"aw_abc": 5, "aw_def": {"repo": "other/repo", "number": 6}, '
        '"aw_ghi": {"draft_item_id": "PVTI_9"}, "not-an-id": 3}',
        default_repo="octo/widgets",
    )

    assert id_map.to_dict() == {
        "aw_abc": {"repo": "octo/widgets", "number": 5},
        "aw_def": {"repo": "other/repo", "number": 6},
        "aw_ghi": {"draft_item_id": "PVTI_9"},
    }
    assert TemporaryIdMap.from_json(id_map.to_json()).to_dict() == id_map.to_dict()


def test_from_json_rejects_non_object() -> None:
    with pytest.raises(ValueError):
        TemporaryIdMap.from_json("[1, 2]")


def test_validate_declared_temporary_id() -> None:
    assert validate_declared_temporary_id(None) == (None, "")
    assert validate_declared_temporary_id("#AW_New1") == ("aw_new1", "")

    normalized, error = validate_declared_temporary_id("aw_x")
    assert normalized is None
    assert "Invalid temporary ID format" in error

    normalized, error = validate_declared_temporary_id(12)
    assert normalized is None
    assert "must be a string" in error
