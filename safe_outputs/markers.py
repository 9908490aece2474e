"""Tracking markers and footers appended to published bodies."""

from __future__ import annotations

from dataclasses import dataclass

MARKER_PREFIX = "safe-outputs"


@dataclass(frozen=True)
class MarkerContext:
    workflow_name: str = ""
    workflow_id: str = ""
    tracker_id: str = ""
    run_url: str = ""


def workflow_id_marker_content(workflow_id: str) -> str:
    return f"{MARKER_PREFIX}-workflow-id: {workflow_id}"


def workflow_id_marker(workflow_id: str) -> str:
    return f"<!-- {workflow_id_marker_content(workflow_id)} -->"


def tracker_marker(tracker_id: str) -> str:
    if not tracker_id:
        return ""
    return f"<!-- {MARKER_PREFIX}-tracker-id: {tracker_id} -->"


def workflow_marker(ctx: MarkerContext) -> str:
    parts = [f"{MARKER_PREFIX}-workflow: {ctx.workflow_name or 'workflow'}"]
    if ctx.tracker_id:
        parts.append(f"tracker-id: {ctx.tracker_id}")
    if ctx.run_url:
        parts.append(f"run: {ctx.run_url}")
    return f"<!-- {', '.join(parts)} -->"


def footer(ctx: MarkerContext, verb: str = "Generated") -> str:
    """Human-readable attribution line followed by the machine-readable markers."""
    name = ctx.workflow_name or "workflow"
    link = f"[{name}]({ctx.run_url})" if ctx.run_url else name
    lines = [f"> {verb} by {link}", ""]
    if ctx.workflow_id:
        lines.append(workflow_id_marker(ctx.workflow_id))
    lines.append(workflow_marker(ctx))
    return "\n".join(lines)


def compose_body(
    sanitized: str,
    ctx: MarkerContext,
    include_tracker: bool = True,
    include_footer: bool = True,
    verb: str = "Generated",
) -> str:
    """Append markers to already-sanitized text.

    Markers must only be added here, after sanitization, so that a forged
    marker in agent text has already been stripped.
    """
    body = sanitized.rstrip()
    if include_tracker and ctx.tracker_id:
        body = f"{body}\n\n{tracker_marker(ctx.tracker_id)}" if body else tracker_marker(ctx.tracker_id)
    if include_footer:
        body = f"{body}\n\n{footer(ctx, verb=verb)}" if body else footer(ctx, verb=verb)
    return body


def has_workflow_id_marker(body: str | None, workflow_id: str) -> bool:
    return bool(body) and workflow_id_marker(workflow_id) in str(body)
