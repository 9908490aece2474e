from __future__ import annotations

import pytest

from safe_outputs.errors import PlatformError, ReviewContextMismatch
from safe_outputs.github.client_inmemory import InMemoryGitHubClient
from safe_outputs.markers import MarkerContext
from safe_outputs.models.results import ErrorKind
from safe_outputs.review_buffer import (
    BufferedComment,
    FooterPolicy,
    ReviewBuffer,
    ReviewContext,
    ReviewState,
)

REPO = "octo/widgets"
CTX = ReviewContext(repo=REPO, pull_request_number=7, head_sha="abc123")


@pytest.fixture
def client() -> InMemoryGitHubClient:
    client = InMemoryGitHubClient()
    client.add_pull_request(REPO, 7, head_sha="abc123")
    client.add_pull_request(REPO, 8)
    return client


def test_empty_submit_is_skipped_without_calls(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client)

    result = buffer.submit()

    assert result.success and result.skipped
    assert client.calls == []
    assert buffer.state is ReviewState.EMPTY


def test_mismatched_context_is_rejected_and_first_retained(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client)
    buffer.add_comment(CTX, BufferedComment(path="a.py", line=1, body="one"))

    with pytest.raises(ReviewContextMismatch):
        buffer.add_comment(
            ReviewContext(repo=REPO, pull_request_number=8, head_sha="x"),
            BufferedComment(path="b.py", line=2, body="two"),
        )

    assert buffer.context == CTX
    assert len(buffer.comments) == 1


def test_rebinding_same_pull_request_is_a_no_op(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client)
    buffer.bind_context(CTX)
    buffer.bind_context(ReviewContext(repo=REPO, pull_request_number=7, head_sha="other"))
    assert buffer.context == CTX


def test_submit_sends_one_review_with_all_comments(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client, markers=MarkerContext(workflow_name="reviewer"))
    buffer.add_comment(CTX, BufferedComment(path="a.py", line=3, body="one"))
    buffer.add_comment(CTX, BufferedComment(path="b.py", line=9, body="two", start_line=5, side="RIGHT"))
    buffer.set_metadata(CTX, "Overall fine", "request_changes")

    result = buffer.submit()

    assert result.success
    assert buffer.state is ReviewState.SUBMITTED
    calls = client.calls_for("create_pull_request_review")
    assert len(calls) == 1
    payload = calls[0]["payload"]
    assert payload["commit_id"] == "abc123"
    assert payload["event"] == "REQUEST_CHANGES"
    assert payload["comments"] == [
        {"path": "a.py", "line": 3, "body": "one"},
        {"path": "b.py", "line": 9, "body": "two", "start_line": 5, "side": "RIGHT", "start_side": "RIGHT"},
    ]
    assert payload["body"].startswith("Overall fine")
    assert "> Generated by reviewer" in payload["body"]
    assert result.payload["comment_count"] == 2


def test_second_submit_is_a_skipped_no_op(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client)
    buffer.add_comment(CTX, BufferedComment(path="a.py", line=1, body="one"))
    assert buffer.submit().success

    again = buffer.submit()

    assert again.skipped
    assert len(client.calls_for("create_pull_request_review")) == 1


def test_event_defaults_to_comment(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client, footer_policy=FooterPolicy.NEVER)
    buffer.add_comment(CTX, BufferedComment(path="a.py", line=1, body="one"))

    buffer.submit()

    payload = client.calls_for("create_pull_request_review")[0]["payload"]
    assert payload["event"] == "COMMENT"
    assert "body" not in payload


def test_if_body_footer_policy_skips_footer_for_empty_body(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client, footer_policy=FooterPolicy.IF_BODY)
    buffer.set_metadata(CTX, "", "APPROVE")

    buffer.submit()

    payload = client.calls_for("create_pull_request_review")[0]["payload"]
    assert payload == {"commit_id": "abc123", "event": "APPROVE"}


def test_last_metadata_call_wins(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client, footer_policy=FooterPolicy.NEVER)
    buffer.set_metadata(CTX, "first", "COMMENT")
    buffer.set_metadata(None, "second", "APPROVE")

    buffer.submit()

    payload = client.calls_for("create_pull_request_review")[0]["payload"]
    assert payload["body"] == "second"
    assert payload["event"] == "APPROVE"


def test_invalid_event_is_rejected(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client)
    with pytest.raises(ValueError):
        buffer.set_metadata(CTX, "x", "MERGE")
    assert buffer.is_empty()


def test_failed_submit_can_be_retried(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client)
    buffer.add_comment(CTX, BufferedComment(path="a.py", line=1, body="one"))
    client.fail_next("create_pull_request_review", PlatformError("unprocessable", status=422))

    failed = buffer.submit()

    assert failed.failed
    assert failed.error_kind is ErrorKind.PLATFORM
    assert buffer.state is ReviewState.FAILED

    retried = buffer.submit()
    assert retried.success and not retried.skipped
    assert buffer.state is ReviewState.SUBMITTED


def test_metadata_without_context_fails_on_submit(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client)
    buffer.set_metadata(None, "body", "COMMENT")

    result = buffer.submit()

    assert result.failed
    assert client.calls_for("create_pull_request_review") == []


def test_staged_submit_previews_without_calls(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client, staged=True)
    buffer.add_comment(CTX, BufferedComment(path="a.py", line=1, body="one"))

    result = buffer.submit()

    assert result.staged
    assert result.preview["comment_count"] == 1
    assert client.calls == []


def test_footer_pushing_body_over_limit_blocks_submit(client: InMemoryGitHubClient) -> None:
    buffer = ReviewBuffer(client, markers=MarkerContext(workflow_name="reviewer"))
    buffer.set_metadata(CTX, "a" * 65530, "COMMENT")

    result = buffer.submit()

    assert not result.success
    assert result.error_kind is ErrorKind.CONSTRAINT
    assert result.payload["code"] == "E006"
    assert client.calls_for("create_pull_request_review") == []
    assert buffer.state is ReviewState.ACCUMULATING
