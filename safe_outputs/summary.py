"""Markdown execution summary for a processed batch."""

from __future__ import annotations

from pathlib import Path

from safe_outputs.dispatcher import ResultEntry, RunReport

OUTCOME_SECTIONS = (
    ("failed", "Failed"),
    ("deferred", "Deferred (unresolved temporary IDs)"),
    ("staged", "Staged previews"),
    ("skipped", "Skipped"),
    ("success", "Completed"),
)


def _describe(entry: ResultEntry) -> str:
    result = entry.result
    label = f"#{entry.index + 1} `{entry.intent_type}`"
    if result.error:
        kind = f" ({result.error_kind.value})" if result.error_kind else ""
        return f"{label}{kind}: {result.error}"
    if result.warning:
        return f"{label}: {result.warning}"
    if result.staged:
        details = ", ".join(f"{key}={value}" for key, value in sorted(result.preview.items()))
        return f"{label}: {details}" if details else label
    url = result.payload.get("url") or result.payload.get("review_url")
    if url:
        return f"{label}: {url}"
    return label


def render_summary(report: RunReport) -> str:
    title = "## Safe outputs (staged preview)" if report.staged else "## Safe outputs"
    counts = ", ".join(f"{report.count(outcome)} {outcome}" for outcome, _ in OUTCOME_SECTIONS)
    lines = [
        title,
        "",
        f"- Intents: {len(report.results)} ({counts}).",
        f"- Passes: {report.passes}.",
    ]
    if len(report.id_map):
        lines.append(f"- Temporary IDs resolved: {len(report.id_map)}.")

    for outcome, heading in OUTCOME_SECTIONS:
        entries = [entry for entry in report.results if entry.result.outcome == outcome]
        if not entries:
            continue
        lines.extend(["", f"### {heading}"])
        for entry in entries:
            lines.append(f"- {_describe(entry)}")

    if len(report.id_map):
        lines.extend(["", "### Temporary ID map", "", "| Temporary ID | Resolved to |", "|---|---|"])
        for key, value in report.id_map.to_dict().items():
            target = value.get("draft_item_id") or f"{value['repo']}#{value['number']}"
            lines.append(f"| `{key}` | {target} |")

    return "\n".join(lines) + "\n"


def write_summary(report: RunReport, path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("a", encoding="utf-8") as handle:
        handle.write(render_summary(report))
    return target
