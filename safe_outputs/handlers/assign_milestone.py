"""assign_milestone: set the milestone of an issue from an allow-list."""

from __future__ import annotations

from typing import Any

from safe_outputs.failures import guarded_call
from safe_outputs.handlers.base import BaseHandler
from safe_outputs.models.intents import AssignMilestoneIntent
from safe_outputs.models.results import ErrorKind, HandlerResult
from safe_outputs.temporary_id import TemporaryIdMap


class AssignMilestoneHandler(BaseHandler):
    intent_type = "assign_milestone"
    supports_pull_requests = False
    number_fields = ("issue_number", "item_number")

    def handle(self, intent: AssignMilestoneIntent, id_map: TemporaryIdMap) -> HandlerResult:
        wanted_number = _milestone_number(intent.milestone_number)
        wanted_title = (intent.milestone_title or "").strip()
        if intent.milestone_number not in (None, "") and wanted_number is None:
            return HandlerResult.failure(f"Invalid milestone_number: {intent.milestone_number}")
        if wanted_number is None and not wanted_title:
            return HandlerResult.failure('Missing required field "milestone_number" or "milestone_title"')

        repo = self.resolve_repo(intent)
        if isinstance(repo, HandlerResult):
            return repo
        target = self.resolve_target(intent, repo, id_map, honor_explicit=True)
        if isinstance(target, HandlerResult):
            return target
        repo = target.repo_slug

        milestones, failure = guarded_call(lambda: self.client.list_milestones(repo), describe="list_milestones")
        if failure or milestones is None:
            return failure or HandlerResult.failure("Unable to list milestones")
        milestone = _find_milestone(milestones, wanted_number, wanted_title)
        if milestone is None:
            requested = wanted_title or f"#{wanted_number}"
            return HandlerResult.failure(f"Milestone {requested} not found in {repo}")

        if self.config.allowed and not _is_allowed(milestone, self.config.allowed):
            return HandlerResult.failure(
                f"Milestone '{milestone.get('title')}' is not in the allowed list: {', '.join(self.config.allowed)}",
                kind=ErrorKind.AUTHORIZATION,
            )

        milestone_number = int(milestone["number"])
        if self.staged:
            return HandlerResult.staged_preview(
                issue_number=target.number,
                repo=repo,
                milestone_number=milestone_number,
                milestone_title=milestone.get("title", ""),
            )

        _, failure = guarded_call(
            lambda: self.client.update_issue(repo, target.number, {"milestone": milestone_number}),
            describe="update_issue",
        )
        if failure:
            return failure
        self.log.info("milestone_assigned", repo=repo, number=target.number, milestone=milestone_number)
        return HandlerResult.ok(
            issue_number=target.number,
            repo=repo,
            milestone_number=milestone_number,
            milestone_title=milestone.get("title", ""),
        )


def _milestone_number(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()) or int(text) <= 0:
        return None
    return int(text)


def _find_milestone(
    milestones: list[dict[str, Any]], number: int | None, title: str
) -> dict[str, Any] | None:
    for milestone in milestones:
        if number is not None and milestone.get("number") == number:
            return milestone
        if number is None and str(milestone.get("title", "")).strip().lower() == title.lower():
            return milestone
    return None


def _is_allowed(milestone: dict[str, Any], allowed: list[str]) -> bool:
    title = str(milestone.get("title", "")).strip().lower()
    number = str(milestone.get("number", ""))
    return any(entry.strip().lower() in {title, number} for entry in allowed)
