from __future__ import annotations

from safe_outputs.context import ExecutionContext
from safe_outputs.handlers.add_comment import AddCommentHandler
from safe_outputs.markers import workflow_id_marker
from safe_outputs.models.intents import AddCommentIntent
from safe_outputs.models.results import ErrorKind
from safe_outputs.shared.settings import RunSettings
from safe_outputs.temporary_id import IssueReference, TemporaryIdMap

REPO = "octo/widgets"


def test_comment_on_triggering_issue_gets_footer(client, make_handler) -> None:
    client.add_issue(REPO, 5)
    handler = make_handler(AddCommentHandler)

    result = handler.handle(AddCommentIntent(body="Looks good <b>now</b>"), TemporaryIdMap())

    assert result.success
    assert result.payload["item_number"] == 5
    posted = client.comments[(REPO, 5)][0]["body"]
    assert posted.startswith("Looks good (b)now(/b)")
    assert "> Generated by triage" in posted
    assert workflow_id_marker("triage-wf") in posted


def test_temporary_id_in_body_is_replaced(client, make_handler) -> None:
    client.add_issue(REPO, 42)
    id_map = TemporaryIdMap({"aw_x1": IssueReference(REPO, 7)})
    handler = make_handler(AddCommentHandler)

    result = handler.handle(AddCommentIntent(item_number=42, body="hi #aw_x1"), id_map)

    assert result.success
    posted = client.comments[(REPO, 42)][0]["body"]
    assert "hi #7" in posted
    assert "aw_x1" not in posted


def test_unresolved_explicit_target_defers_without_calls(client, make_handler) -> None:
    handler = make_handler(AddCommentHandler)

    result = handler.handle(AddCommentIntent(item_number="aw_abc123", body="x"), TemporaryIdMap())

    assert result.deferred
    assert result.error_kind is ErrorKind.DEFERRED
    assert client.calls == []


def test_triggering_target_outside_issue_context_is_skipped(client, make_handler) -> None:
    handler = make_handler(AddCommentHandler, context=ExecutionContext(repo=REPO, event_name="push"))

    result = handler.handle(AddCommentIntent(body="x"), TemporaryIdMap())

    assert result.skipped
    assert 'Target is "triggering"' in result.warning
    assert client.calls == []


def test_link_limit_violation_is_a_constraint_failure(client, make_handler) -> None:
    client.add_issue(REPO, 5)
    handler = make_handler(AddCommentHandler)
    body = " ".join(f"https://example.com/{i}" for i in range(51))

    result = handler.handle(AddCommentIntent(body=body), TemporaryIdMap())

    assert result.failed
    assert result.error_kind is ErrorKind.CONSTRAINT
    assert result.payload["code"] == "E008"
    assert client.calls_for("create_comment") == []


def test_mentions_over_limit_in_agent_text_fail_before_sanitizing(client, make_handler) -> None:
    client.add_issue(REPO, 5)
    body = " ".join(f"@user{i}" for i in range(11))

    result = make_handler(AddCommentHandler).handle(AddCommentIntent(body=body), TemporaryIdMap())

    assert result.error_kind is ErrorKind.CONSTRAINT
    assert result.payload["code"] == "E007"
    assert client.calls_for("create_comment") == []


def test_oversized_text_hidden_in_html_comment_still_fails_length_limit(client, make_handler) -> None:
    client.add_issue(REPO, 5)
    body = "<!--" + "a" * 70000 + "-->hi"

    result = make_handler(AddCommentHandler).handle(AddCommentIntent(body=body), TemporaryIdMap())

    assert result.error_kind is ErrorKind.CONSTRAINT
    assert result.payload["code"] == "E006"
    assert client.calls_for("create_comment") == []


def test_non_ascii_digit_item_number_is_a_validation_failure(client, make_handler) -> None:
    result = make_handler(AddCommentHandler).handle(AddCommentIntent(item_number="\u00b2", body="x"), TemporaryIdMap())

    assert result.failed
    assert result.error_kind is ErrorKind.VALIDATION
    assert client.calls == []


def test_staged_mode_previews_without_writing(client, make_handler) -> None:
    handler = make_handler(AddCommentHandler, settings=RunSettings(staged=True, workflow_name="triage"))

    result = handler.handle(AddCommentIntent(body="hello"), TemporaryIdMap())

    assert result.staged
    assert result.preview["item_number"] == 5
    assert client.calls == []


def test_discussion_context_posts_to_discussion(client, make_handler) -> None:
    client.add_discussion(REPO, 3)
    context = ExecutionContext(repo=REPO, event_name="discussion", discussion_number=3)
    handler = make_handler(AddCommentHandler, context=context)

    result = handler.handle(AddCommentIntent(body="answer"), TemporaryIdMap())

    assert result.success
    assert result.payload["is_discussion"] is True
    assert client.calls_for("create_comment") == []
    assert client.discussions[(REPO, 3)]["comments"][0]["body"].startswith("answer")


def test_explicit_number_falls_back_to_discussion_on_404(client, make_handler) -> None:
    client.add_discussion(REPO, 42)
    handler = make_handler(AddCommentHandler)

    result = handler.handle(AddCommentIntent(item_number=42, body="hi"), TemporaryIdMap())

    assert result.success
    assert result.payload["is_discussion"] is True
    assert len(client.calls_for("get_discussion_id")) == 1


def test_triggering_target_missing_is_not_found_without_fallback(client, make_handler) -> None:
    client.add_discussion(REPO, 5)
    handler = make_handler(AddCommentHandler)

    result = handler.handle(AddCommentIntent(body="hi"), TemporaryIdMap())

    assert result.skipped
    assert result.error_kind is ErrorKind.NOT_FOUND
    assert client.calls_for("get_discussion_id") == []


def test_hide_older_comments_minimizes_previous_workflow_comments(client, make_handler) -> None:
    client.add_issue(REPO, 5)
    old = client.create_comment(REPO, 5, f"old\n\n{workflow_id_marker('triage-wf')}")
    client.create_comment(REPO, 5, "human comment")
    handler = make_handler(AddCommentHandler, hide_older_comments=True)

    result = handler.handle(AddCommentIntent(body="new"), TemporaryIdMap())

    assert result.success
    assert client.minimized == {old["node_id"]: "outdated"}


def test_hide_older_comments_respects_allowed_reasons(client, make_handler) -> None:
    client.add_issue(REPO, 5)
    client.create_comment(REPO, 5, f"old\n\n{workflow_id_marker('triage-wf')}")
    handler = make_handler(AddCommentHandler, hide_older_comments=True, allowed_reasons=["spam"])

    result = handler.handle(AddCommentIntent(body="new"), TemporaryIdMap())

    assert result.success
    assert client.minimized == {}


def test_footer_never_keeps_workflow_id_marker(client, make_handler) -> None:
    client.add_issue(REPO, 5)
    handler = make_handler(AddCommentHandler, footer=False)

    handler.handle(AddCommentIntent(body="quiet"), TemporaryIdMap())

    posted = client.comments[(REPO, 5)][0]["body"]
    assert "Generated by" not in posted
    assert posted == f"quiet\n\n{workflow_id_marker('triage-wf')}"


def test_repo_outside_allow_list_is_rejected(client, make_handler) -> None:
    handler = make_handler(AddCommentHandler)

    result = handler.handle(AddCommentIntent(item_number=1, repo="evil/repo", body="x"), TemporaryIdMap())

    assert result.failed
    assert result.error_kind is ErrorKind.AUTHORIZATION
    assert "not in the allowed-repos list" in result.error


def test_bare_repo_name_is_qualified_and_matched_by_wildcard(client, make_handler) -> None:
    client.add_issue("octo/gadgets", 2)
    handler = make_handler(AddCommentHandler, allowed_repos=["octo/*"])

    result = handler.handle(AddCommentIntent(item_number=2, repo="gadgets", body="x"), TemporaryIdMap())

    assert result.success
    assert result.payload["repo"] == "octo/gadgets"
