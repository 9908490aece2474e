"""Workflow execution context derived from the triggering GitHub event."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from safe_outputs.errors import ConfigError

ISSUE_EVENTS = {"issues", "issue_comment"}
PULL_REQUEST_EVENTS = {
    "pull_request",
    "pull_request_target",
    "pull_request_review",
    "pull_request_review_comment",
}
DISCUSSION_EVENTS = {"discussion", "discussion_comment"}


@dataclass(frozen=True)
class ExecutionContext:
    repo: str = ""
    event_name: str = ""
    issue_number: int | None = None
    pull_request_number: int | None = None
    discussion_number: int | None = None
    pull_request_head_sha: str = ""
    run_id: str = ""

    @property
    def is_issue_event(self) -> bool:
        return self.event_name in ISSUE_EVENTS

    @property
    def is_pull_request_event(self) -> bool:
        return self.event_name in PULL_REQUEST_EVENTS

    @property
    def is_discussion_event(self) -> bool:
        return self.event_name in DISCUSSION_EVENTS

    @classmethod
    def from_event(
        cls,
        event_name: str,
        payload: dict[str, Any],
        repo: str = "",
        run_id: str = "",
    ) -> "ExecutionContext":
        issue = payload.get("issue") if isinstance(payload.get("issue"), dict) else None
        pull = payload.get("pull_request") if isinstance(payload.get("pull_request"), dict) else None
        discussion = payload.get("discussion") if isinstance(payload.get("discussion"), dict) else None

        issue_number = _as_number(issue.get("number")) if issue else None
        pull_number = _as_number(pull.get("number")) if pull else None
        # issue_comment events on pull requests carry the PR as an issue
        if issue and issue.get("pull_request") and pull_number is None:
            pull_number = issue_number

        if not repo:
            repository = payload.get("repository") if isinstance(payload.get("repository"), dict) else {}
            repo = str(repository.get("full_name", ""))

        head = (pull or {}).get("head") if isinstance((pull or {}).get("head"), dict) else {}
        return cls(
            repo=repo,
            event_name=event_name,
            issue_number=issue_number,
            pull_request_number=pull_number,
            discussion_number=_as_number(discussion.get("number")) if discussion else None,
            pull_request_head_sha=str(head.get("sha", "")),
            run_id=run_id,
        )

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None, event_path: str | Path | None = None) -> "ExecutionContext":
        source = os.environ if env is None else env
        path = event_path or source.get("GITHUB_EVENT_PATH", "")
        payload: dict[str, Any] = {}
        if path:
            try:
                payload = json.loads(Path(path).read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                raise ConfigError(f"Unable to read event payload {path}: {exc}") from exc
            if not isinstance(payload, dict):
                raise ConfigError(f"Event payload {path} must be a JSON object")
        return cls.from_event(
            event_name=source.get("GITHUB_EVENT_NAME", ""),
            payload=payload,
            repo=source.get("GITHUB_REPOSITORY", ""),
            run_id=source.get("GITHUB_RUN_ID", ""),
        )


def _as_number(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    return None
