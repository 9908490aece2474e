"""Run-level settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from safe_outputs.errors import ConfigError
from safe_outputs.markers import MarkerContext

TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RunSettings:
    """Settings shared by every handler in a batch."""

    staged: bool = False
    workflow_name: str = ""
    workflow_id: str = ""
    tracker_id: str = ""
    run_url: str = ""
    max_passes: int = 3
    allowed_mentions: tuple[str, ...] = ()
    blocked_domains: tuple[str, ...] = ()
    log_level: str = "INFO"
    log_json: bool = False
    temporary_id_map: str = ""

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "RunSettings":
        source = os.environ if env is None else env
        run_url = source.get("SAFE_OUTPUTS_RUN_URL", "")
        if not run_url and source.get("GITHUB_REPOSITORY") and source.get("GITHUB_RUN_ID"):
            server = source.get("GITHUB_SERVER_URL", "https://github.com").rstrip("/")
            run_url = f"{server}/{source['GITHUB_REPOSITORY']}/actions/runs/{source['GITHUB_RUN_ID']}"
        return cls(
            staged=_flag(source.get("SAFE_OUTPUTS_STAGED")),
            workflow_name=source.get("SAFE_OUTPUTS_WORKFLOW_NAME") or source.get("GITHUB_WORKFLOW", ""),
            workflow_id=source.get("SAFE_OUTPUTS_WORKFLOW_ID", ""),
            tracker_id=source.get("SAFE_OUTPUTS_TRACKER_ID", ""),
            run_url=run_url,
            max_passes=_positive_int("SAFE_OUTPUTS_MAX_PASSES", source.get("SAFE_OUTPUTS_MAX_PASSES"), 3),
            allowed_mentions=_csv(source.get("SAFE_OUTPUTS_ALLOWED_MENTIONS")),
            blocked_domains=_csv(source.get("SAFE_OUTPUTS_BLOCKED_DOMAINS")),
            log_level=(source.get("SAFE_OUTPUTS_LOG_LEVEL") or "INFO").upper(),
            log_json=_flag(source.get("SAFE_OUTPUTS_LOG_JSON")),
            temporary_id_map=source.get("SAFE_OUTPUTS_TEMPORARY_ID_MAP", ""),
        )

    def markers(self) -> MarkerContext:
        return MarkerContext(
            workflow_name=self.workflow_name,
            workflow_id=self.workflow_id,
            tracker_id=self.tracker_id,
            run_url=self.run_url,
        )


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in TRUE_VALUES


def _csv(value: str | None) -> tuple[str, ...]:
    return tuple(part.strip() for part in (value or "").split(",") if part.strip())


def _positive_int(name: str, value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid {name}: {value}. Must be a positive integer") from exc
    if parsed <= 0:
        raise ConfigError(f"Invalid {name}: {value}. Must be a positive integer")
    return parsed
