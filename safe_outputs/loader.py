"""Reads agent output files (NDJSON or a JSON ``{"items": [...]}`` document)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from safe_outputs.errors import ConfigError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AgentOutput:
    items: list[dict[str, Any]]
    errors: list[str] = field(default_factory=list)


def parse_agent_output(text: str) -> AgentOutput:
    """Parse agent output text.

    A document whose first non-blank character is ``{`` and which parses as a
    whole is treated as JSON; otherwise each non-blank line is one record.
    Lines that are not JSON objects are reported in ``errors`` and skipped.
    """
    stripped = text.strip()
    if not stripped:
        return AgentOutput(items=[])

    if stripped.startswith("{"):
        try:
            document = json.loads(stripped)
        except ValueError:
            document = None
        if isinstance(document, dict) and "items" in document:
            items = document["items"]
            if not isinstance(items, list):
                raise ConfigError('Agent output "items" must be a list')
            records = [item for item in items if isinstance(item, dict)]
            errors = [
                f"items[{index}]: not an object" for index, item in enumerate(items) if not isinstance(item, dict)
            ]
            return AgentOutput(items=records, errors=errors)
        if isinstance(document, dict):
            return AgentOutput(items=[document])

    items: list[dict[str, Any]] = []
    errors: list[str] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except ValueError as exc:
            errors.append(f"line {line_number}: invalid JSON ({exc.msg})")
            continue
        if not isinstance(record, dict):
            errors.append(f"line {line_number}: not an object")
            continue
        items.append(record)
    for error in errors:
        logger.warning("agent_output_line_skipped", error=error)
    return AgentOutput(items=items, errors=errors)


def load_agent_output(path: str | Path) -> AgentOutput:
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read agent output {source}: {exc}") from exc
    return parse_agent_output(text)
