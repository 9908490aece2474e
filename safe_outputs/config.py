"""Per-intent-type handler configuration loaded from YAML or JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from safe_outputs.errors import ConfigError
from safe_outputs.models.intents import INTENT_TYPES
from safe_outputs.review_buffer import FooterPolicy

DEFAULT_MAX: dict[str, int] = {
    "create_issue": 10,
    "add_comment": 20,
    "close_issue": 10,
    "close_pull_request": 10,
    "link_sub_issue": 5,
    "create_pull_request_review_comment": 10,
    "submit_pull_request_review": 1,
    "update_project": 10,
    "assign_milestone": 1,
    "add_reviewer": 3,
    "hide_comment": 5,
}


class HandlerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max: int | None = Field(default=None, ge=1)
    target: str = "triggering"
    target_repo: str | None = None
    allowed_repos: list[str] = Field(default_factory=list)
    required_labels: list[str] = Field(default_factory=list)
    required_title_prefix: str = ""
    parent_required_labels: list[str] = Field(default_factory=list)
    parent_title_prefix: str = ""
    sub_required_labels: list[str] = Field(default_factory=list)
    sub_title_prefix: str = ""
    comment: str = ""
    title_prefix: str = ""
    labels: list[str] = Field(default_factory=list)
    allowed: list[str] = Field(default_factory=list)
    allowed_reasons: list[str] = Field(default_factory=list)
    hide_older_comments: bool = False
    footer: FooterPolicy = FooterPolicy.ALWAYS
    side: Literal["LEFT", "RIGHT"] = "RIGHT"
    project: str | None = None

    @field_validator("target", mode="before")
    @classmethod
    def _normalize_target(cls, value: Any) -> str:
        text = str(value).strip() if value is not None else "triggering"
        if text in {"triggering", "*"}:
            return text
        if text.isascii() and text.isdigit() and int(text) > 0:
            return text
        raise ValueError(f"target must be 'triggering', '*' or a positive number (got {value!r})")

    @field_validator("target_repo")
    @classmethod
    def _validate_repo(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if value.count("/") != 1 or value.startswith("/") or value.endswith("/"):
            raise ValueError(f"target_repo must be 'owner/repo' (got {value!r})")
        return value

    @field_validator("footer", mode="before")
    @classmethod
    def _normalize_footer(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return FooterPolicy.ALWAYS if value else FooterPolicy.NEVER
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value


def default_config(intent_type: str) -> HandlerConfig:
    return HandlerConfig(max=DEFAULT_MAX.get(intent_type, 1))


def load_handler_configs(source: str | Path | Mapping[str, Any] | None) -> dict[str, HandlerConfig]:
    """Load handler configs keyed by intent type, filling in defaults."""
    raw: Any
    if source is None:
        raw = {}
    elif isinstance(source, Mapping):
        raw = dict(source)
    else:
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Unable to read handler config {path}: {exc}") from exc
        try:
            raw = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
        except (ValueError, yaml.YAMLError) as exc:
            raise ConfigError(f"Unable to parse handler config {path}: {exc}") from exc
        raw = raw or {}

    if not isinstance(raw, Mapping):
        raise ConfigError("Handler config must be a mapping of intent type to settings")

    configs = {intent_type: default_config(intent_type) for intent_type in INTENT_TYPES}
    for key, value in raw.items():
        intent_type = str(key).strip().replace("-", "_")
        if intent_type not in INTENT_TYPES:
            raise ConfigError(f"Unknown intent type in handler config: {key}")
        if value is not None and not isinstance(value, Mapping):
            raise ConfigError(f"Config for {intent_type} must be a mapping")
        data = {str(name).replace("-", "_"): item for name, item in (value or {}).items()}
        data.setdefault("max", DEFAULT_MAX.get(intent_type, 1))
        try:
            configs[intent_type] = HandlerConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid config for {intent_type}: {exc}") from exc
    return configs
