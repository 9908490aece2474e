import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from safe_outputs.cli import app


@pytest.fixture(autouse=True)
def github_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SAFE_OUTPUTS_GITHUB_CLIENT",
        "SAFE_OUTPUTS_STAGED",
        "SAFE_OUTPUTS_TEMPORARY_ID_MAP",
        "SAFE_OUTPUTS_MAX_PASSES",
        "GITHUB_EVENT_PATH",
        "GITHUB_STEP_SUMMARY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GITHUB_REPOSITORY", "octo/widgets")
    monkeypatch.setenv("GITHUB_EVENT_NAME", "workflow_dispatch")
    monkeypatch.setenv("SAFE_OUTPUTS_LOG_LEVEL", "ERROR")


def _write_items(path: Path, items: list[dict]) -> Path:
    path.write_text("\n".join(json.dumps(item) for item in items) + "\n", encoding="utf-8")
    return path


def test_process_cli_creates_issues_and_reports_temporary_ids(tmp_path: Path):
    agent_output = _write_items(
        tmp_path / "output.jsonl",
        [
            {"type": "create_issue", "title": "Parent", "temporary_id": "aw_parent"},
            {"type": "create_issue", "title": "Child", "temporary_id": "aw_child", "body": "Part of #aw_parent"},
            {"type": "link_sub_issue", "parent_issue_number": "aw_parent", "sub_issue_number": "aw_child"},
        ],
    )
    summary = tmp_path / "summary.md"

    result = CliRunner().invoke(app, ["process", str(agent_output), "--summary", str(summary)])

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["counts"]["success"] == 3
    assert report["temporary_id_map"] == {
        "aw_child": {"repo": "octo/widgets", "number": 2},
        "aw_parent": {"repo": "octo/widgets", "number": 1},
    }
    assert "### Completed" in summary.read_text(encoding="utf-8")


def test_process_cli_staged_previews_without_writes(tmp_path: Path):
    agent_output = _write_items(tmp_path / "output.jsonl", [{"type": "create_issue", "title": "Preview me"}])

    result = CliRunner().invoke(app, ["process", str(agent_output), "--staged"])

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["staged"] is True
    assert report["results"][0]["staged"] is True
    assert report["results"][0]["preview_info"]["title"] == "Preview me"
    assert report["temporary_id_map"] == {}


def test_process_cli_exits_one_when_an_intent_fails(tmp_path: Path):
    agent_output = _write_items(tmp_path / "output.jsonl", [{"type": "create_issue", "title": ""}])

    result = CliRunner().invoke(app, ["process", str(agent_output)])

    assert result.exit_code == 1
    report = json.loads(result.stdout)
    assert report["results"][0]["error"] == "create_issue requires a non-empty title"


def test_process_cli_strict_fails_on_deferred_and_bad_lines(tmp_path: Path):
    agent_output = tmp_path / "output.jsonl"
    agent_output.write_text(
        '{"type": "link_sub_issue", "parent_issue_number": "aw_gone", "sub_issue_number": 3}\nnot json\n',
        encoding="utf-8",
    )

    relaxed = CliRunner().invoke(app, ["process", str(agent_output)])
    strict = CliRunner().invoke(app, ["process", str(agent_output), "--strict"])

    assert relaxed.exit_code == 0
    assert json.loads(relaxed.stdout)["input_errors"][0].startswith("line 2")
    assert strict.exit_code == 1


def test_process_cli_uses_temporary_id_map_file(tmp_path: Path):
    agent_output = _write_items(
        tmp_path / "output.jsonl",
        [{"type": "create_issue", "title": "Follow-up", "body": "After #aw_prev"}],
    )
    id_map = tmp_path / "map.json"
    id_map.write_text(json.dumps({"aw_prev": 41}), encoding="utf-8")

    result = CliRunner().invoke(app, ["process", str(agent_output), "--id-map", str(id_map)])

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["temporary_id_map"]["aw_prev"] == {"repo": "octo/widgets", "number": 41}


def test_process_cli_bad_config_exits_two(tmp_path: Path):
    agent_output = _write_items(tmp_path / "output.jsonl", [])
    config = tmp_path / "config.yml"
    config.write_text("launch_rockets:\n  max: 1\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["process", str(agent_output), "--config", str(config)])

    assert result.exit_code == 2
    assert "Unknown intent type" in result.output


def test_process_cli_missing_agent_output_exits_two(tmp_path: Path):
    result = CliRunner().invoke(app, ["process", str(tmp_path / "missing.jsonl")])

    assert result.exit_code == 2
    assert "Unable to read agent output" in result.output


def test_check_limits_cli_reports_violation(tmp_path: Path):
    body = tmp_path / "body.md"
    body.write_text(" ".join(f"https://example.com/{n}" for n in range(60)), encoding="utf-8")

    result = CliRunner().invoke(app, ["check-limits", str(body)])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["ok"] is False
    assert payload["code"] == "E008"
    assert payload["links"] == 60


def test_check_limits_cli_accepts_small_body(tmp_path: Path):
    body = tmp_path / "body.md"
    body.write_text("Looks good to me.", encoding="utf-8")

    result = CliRunner().invoke(app, ["check-limits", str(body)])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"ok": True, "length": 17, "mentions": 0, "links": 0}


def test_sanitize_cli_neutralizes_mentions(tmp_path: Path):
    body = tmp_path / "body.md"
    body.write_text("thanks @alice and @bob", encoding="utf-8")

    result = CliRunner().invoke(app, ["sanitize", str(body), "--allow-mention", "alice"])

    assert result.exit_code == 0
    assert "@alice" in result.stdout
    assert "`@bob`" in result.stdout


def test_configure_logging_replaces_handler_bound_to_closed_stream(monkeypatch):
    import io
    import logging
    import sys

    import structlog

    from safe_outputs.logging import configure_logging

    first = io.StringIO()
    monkeypatch.setattr(sys, "stderr", first)
    configure_logging(level="INFO")
    first.close()

    second = io.StringIO()
    monkeypatch.setattr(sys, "stderr", second)
    configure_logging(level="INFO", json_output=True)

    handlers = [
        handler
        for handler in logging.getLogger().handlers
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)
    ]
    assert len(handlers) == 1
    assert handlers[0].stream is second
