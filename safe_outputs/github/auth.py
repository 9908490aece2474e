"""GitHub token selection for the safe-output client.

Reads, writes and Projects v2 calls may use different tokens: the workflow
token usually cannot write to user or organization projects, so a dedicated
project token is preferred for those calls when one is configured.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Mapping

TokenScope = Literal["read", "write", "project"]

SHARED_TOKEN_VARS = ("SAFE_OUTPUTS_GITHUB_TOKEN", "GH_AW_GITHUB_TOKEN", "GITHUB_TOKEN")
PROJECT_TOKEN_VARS = ("SAFE_OUTPUTS_PROJECT_TOKEN", "GH_AW_PROJECT_GITHUB_TOKEN")


@dataclass(frozen=True)
class GitHubAuth:
    read_token: str | None
    write_token: str | None
    project_token: str | None = None

    def token_for(self, scope: TokenScope) -> str | None:
        if scope == "read":
            return self.read_token
        if scope == "project":
            return self.project_token or self.write_token
        return self.write_token

    def redacted(self) -> dict[str, str]:
        return {
            "read_token": _redact(self.read_token),
            "write_token": _redact(self.write_token),
            "project_token": _redact(self.project_token),
        }


def load_github_auth_from_env(env: dict[str, str] | None = None) -> GitHubAuth:
    env_map = os.environ if env is None else env

    shared = _first(env_map, SHARED_TOKEN_VARS)
    return GitHubAuth(
        read_token=_first(env_map, ("SAFE_OUTPUTS_GITHUB_READ_TOKEN",)) or shared,
        write_token=_first(env_map, ("SAFE_OUTPUTS_GITHUB_WRITE_TOKEN",)) or shared,
        project_token=_first(env_map, PROJECT_TOKEN_VARS),
    )


def _first(env_map: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = (env_map.get(name) or "").strip()
        if value:
            return value
    return None


def _redact(token: str | None) -> str:
    if token is None:
        return "unset"
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"
