"""safe-outputs CLI."""

from __future__ import annotations

import json
import os
from dataclasses import replace
from pathlib import Path

import structlog
import typer

from safe_outputs import limits
from safe_outputs.config import load_handler_configs
from safe_outputs.context import ExecutionContext
from safe_outputs.dispatcher import Dispatcher
from safe_outputs.errors import ConfigError
from safe_outputs.github.client import build_client_from_env
from safe_outputs.loader import load_agent_output
from safe_outputs.logging import configure_logging
from safe_outputs.sanitize import sanitize as sanitize_text
from safe_outputs.shared.settings import RunSettings
from safe_outputs.summary import write_summary
from safe_outputs.temporary_id import TemporaryIdMap

logger = structlog.get_logger(__name__)

app = typer.Typer(add_completion=False, help="safe-outputs: execute agent intents against GitHub")


def _load_id_map(path: Path | None, inline: str, default_repo: str) -> TemporaryIdMap:
    text = inline
    if path is not None:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Unable to read temporary ID map {path}: {exc}") from exc
    try:
        return TemporaryIdMap.from_json(text or "", default_repo=default_repo)
    except ValueError as exc:
        raise ConfigError(f"Invalid temporary ID map: {exc}") from exc


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(code=2)


@app.command()
def process(
    agent_output: Path = typer.Argument(..., help="NDJSON or JSON agent output file"),
    config: Path = typer.Option(None, "--config", help="Handler config (YAML or JSON)"),
    id_map_file: Path = typer.Option(None, "--id-map", help="Temporary ID map JSON from a previous step"),
    staged: bool = typer.Option(False, "--staged", help="Preview instead of writing to GitHub"),
    max_passes: int = typer.Option(0, "--max-passes", help="Deferral passes (default from settings)"),
    summary: Path = typer.Option(None, "--summary", help="Append a markdown summary to this file"),
    event: Path = typer.Option(None, "--event", help="GitHub event payload JSON"),
    strict: bool = typer.Option(False, "--strict", help="Treat deferred intents and bad records as failures"),
) -> None:
    """Process an agent output file and execute its intents."""
    try:
        settings = RunSettings.from_env()
    except ConfigError as exc:
        raise _fail(str(exc)) from exc
    if staged:
        settings = replace(settings, staged=True)
    configure_logging(level=settings.log_level, json_output=settings.log_json)

    try:
        context = ExecutionContext.from_env(event_path=event)
        configs = load_handler_configs(config)
        id_map = _load_id_map(id_map_file, settings.temporary_id_map, context.repo)
        output = load_agent_output(agent_output)
        client = build_client_from_env()
    except ConfigError as exc:
        raise _fail(str(exc)) from exc

    dispatcher = Dispatcher(client, context, settings, configs)
    try:
        report = dispatcher.run(output.items, id_map, max_passes=max_passes or None)
    except Exception as exc:
        logger.exception("batch_aborted", error=str(exc))
        raise _fail(f"batch aborted: {exc}") from exc

    payload = report.to_dict()
    if output.errors:
        payload["input_errors"] = output.errors
    typer.echo(json.dumps(payload, indent=2, default=str))

    summary_path = summary or os.environ.get("GITHUB_STEP_SUMMARY")
    if summary_path:
        write_summary(report, summary_path)

    if report.failed:
        raise typer.Exit(code=1)
    if strict and (report.deferred or output.errors):
        raise typer.Exit(code=1)


@app.command("check-limits")
def check_limits(file: Path = typer.Argument(..., help="Text file to check")) -> None:
    """Check a body against the length, mention and link limits."""
    text = file.read_text(encoding="utf-8")
    violation = limits.check(text)
    result = {
        "ok": violation is None,
        "length": len(text),
        "mentions": limits.count_mentions(text),
        "links": limits.count_links(text),
    }
    if violation is not None:
        result.update({"code": violation.code, "error": str(violation)})
    typer.echo(json.dumps(result, indent=2))
    if violation is not None:
        raise typer.Exit(code=1)


@app.command()
def sanitize(
    file: Path = typer.Argument(..., help="Text file to sanitize"),
    allow_mention: list[str] = typer.Option([], "--allow-mention", help="Mention left untouched"),
    block_domain: list[str] = typer.Option([], "--block-domain", help="Domain whose URLs are redacted"),
) -> None:
    """Print the sanitized form of untrusted text."""
    text = file.read_text(encoding="utf-8")
    typer.echo(sanitize_text(text, allowed_mentions=allow_mention, blocked_domains=block_domain))


if __name__ == "__main__":
    app()
