from __future__ import annotations

from safe_outputs.markers import MarkerContext, compose_body, tracker_marker
from safe_outputs.sanitize import (
    apply_title_prefix,
    harden_unicode,
    neutralize_mentions,
    redact_blocked_urls,
    sanitize,
    sanitize_title,
)


def test_script_tags_never_survive() -> None:
    value = sanitize("hello <script>alert(1)</script> world")

    assert "<script>" not in value
    assert "(script)" in value
    assert "(/script)" in value


def test_nested_tag_fragments_are_converted_until_none_remain() -> None:
    out = sanitize("<scr<script>ipt>alert(1)</scr</script>ipt>")
    assert "<" not in out and ">" not in out
    assert "(scr(script)ipt)" in out


def test_html_comments_are_removed_including_unterminated() -> None:
    assert sanitize("a <!-- hidden --> b") == "a  b"
    assert sanitize("a <!-- never closed") == "a"


def test_forged_tracker_marker_is_stripped_and_real_one_survives() -> None:
    forged = f"Looks legit {tracker_marker('victim')}"
    ctx = MarkerContext(workflow_name="triage", tracker_id="real")

    body = compose_body(sanitize(forged), ctx)

    assert tracker_marker("victim") not in body
    assert tracker_marker("real") in body


def test_mentions_are_wrapped_outside_code() -> None:
    value = sanitize("ping @alice and @org/team, but not `@bob` or email@example.com")

    assert "`@alice`" in value
    assert "`@org/team`" in value
    assert "`@bob`" in value
    assert "email@example.com" in value
    assert "``@bob``" not in value


def test_allowed_mentions_are_left_alone() -> None:
    assert neutralize_mentions("thanks @Alice", allowed_mentions=["alice"]) == "thanks @Alice"


def test_bot_trigger_keywords_are_defanged() -> None:
    assert sanitize("This fixes #12 and closes #3") == "This fixes `#12` and closes `#3`"


def test_ansi_and_control_characters_are_removed() -> None:
    assert sanitize("\x1b[31mred\x1b[0m\x07 text\r\n") == "red text"


def test_blocked_domains_are_redacted() -> None:
    text = "see https://evil.example/x and https://sub.evil.example/y and https://ok.example"

    value = redact_blocked_urls(text, ["evil.example"])

    assert value == "see (redacted) and (redacted) and https://ok.example"


def test_sanitize_handles_empty_input() -> None:
    assert sanitize(None) == ""
    assert sanitize("") == ""


def test_harden_unicode_drops_invisible_and_folds_fullwidth() -> None:
    assert harden_unicode("a\u200bb\u202ec \uff21\uff22") == "abc AB"


def test_sanitize_title_strips_duplicate_prefix_and_truncates() -> None:
    assert sanitize_title("[bot] [bot]: Fix the thing", title_prefix="[bot]") == "Fix the thing"
    assert sanitize_title("line one\nline two") == "line one line two"

    long_title = sanitize_title("x" * 200)
    assert len(long_title) == 128
    assert long_title.endswith("...")


def test_apply_title_prefix_is_idempotent() -> None:
    assert apply_title_prefix("Fix", "[bot] ") == "[bot] Fix"
    assert apply_title_prefix("[bot] Fix", "[bot] ") == "[bot] Fix"
    assert apply_title_prefix("Fix", "") == "Fix"
