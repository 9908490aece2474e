"""Platform client contract and factory helpers."""

from __future__ import annotations

import os
from typing import Any, Protocol

from safe_outputs.github.auth import load_github_auth_from_env


class PlatformClient(Protocol):
    """Operations the handlers need from GitHub.

    Implementations raise :class:`safe_outputs.errors.PlatformError` for every
    failed call so that :mod:`safe_outputs.failures` can classify it.
    """

    def create_issue(self, repo: str, payload: dict[str, Any]) -> dict[str, Any]: ...

    def get_issue(self, repo: str, number: int) -> dict[str, Any]: ...

    def update_issue(self, repo: str, number: int, payload: dict[str, Any]) -> dict[str, Any]: ...

    def create_comment(self, repo: str, number: int, body: str) -> dict[str, Any]: ...

    def list_comments(self, repo: str, number: int) -> list[dict[str, Any]]: ...

    def get_pull_request(self, repo: str, number: int) -> dict[str, Any]: ...

    def update_pull_request(self, repo: str, number: int, payload: dict[str, Any]) -> dict[str, Any]: ...

    def request_reviewers(self, repo: str, number: int, reviewers: list[str]) -> dict[str, Any]: ...

    def create_pull_request_review(
        self, repo: str, number: int, payload: dict[str, Any]
    ) -> dict[str, Any]: ...

    def list_milestones(self, repo: str) -> list[dict[str, Any]]: ...

    def get_discussion_id(self, repo: str, number: int) -> str | None: ...

    def add_discussion_comment(self, discussion_id: str, body: str) -> dict[str, Any]: ...

    def list_discussion_comments(self, repo: str, number: int) -> list[dict[str, Any]]: ...

    def get_issue_parent(self, repo: str, number: int) -> dict[str, Any] | None: ...

    def add_sub_issue(self, repo: str, parent_number: int, sub_number: int) -> dict[str, Any]: ...

    def minimize_comment(self, node_id: str, reason: str) -> dict[str, Any]: ...

    def resolve_project(self, project: str) -> dict[str, Any]: ...

    def add_project_item(self, project_id: str, content_node_id: str) -> str: ...

    def add_project_draft_issue(self, project_id: str, title: str, body: str) -> str: ...

    def update_project_item_field(
        self, project_id: str, item_id: str, field_name: str, value: str
    ) -> dict[str, Any]: ...


def build_client_from_env(env: dict[str, str] | None = None) -> PlatformClient:
    env_map = os.environ if env is None else env
    client_type = (env_map.get("SAFE_OUTPUTS_GITHUB_CLIENT") or "in_memory").strip().lower()

    if client_type == "api":
        from safe_outputs.github.client_api import GitHubAPIClient

        auth = load_github_auth_from_env(env_map)
        base_url = (env_map.get("GITHUB_API_URL") or "https://api.github.com").strip()
        return GitHubAPIClient(auth=auth, base_url=base_url)

    from safe_outputs.github.client_inmemory import InMemoryGitHubClient

    return InMemoryGitHubClient()


__all__ = ["PlatformClient", "build_client_from_env"]
