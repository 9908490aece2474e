"""add_reviewer: request reviews on a pull request from an allow-list."""

from __future__ import annotations

from safe_outputs.failures import guarded_call
from safe_outputs.handlers.base import BaseHandler
from safe_outputs.models.intents import AddReviewerIntent
from safe_outputs.models.results import HandlerResult
from safe_outputs.temporary_id import TemporaryIdMap

COPILOT_REVIEWER = "copilot"


class AddReviewerHandler(BaseHandler):
    intent_type = "add_reviewer"
    supports_issues = False
    number_fields = ("pull_request_number", "item_number")

    def handle(self, intent: AddReviewerIntent, id_map: TemporaryIdMap) -> HandlerResult:
        requested = []
        for login in intent.reviewers:
            login = str(login).strip().lstrip("@")
            if login and login.lower() not in {name.lower() for name in requested}:
                requested.append(login)
        if not requested:
            return HandlerResult.failure('Missing or empty required field "reviewers"')

        allowed = {name.strip().lstrip("@").lower() for name in self.config.allowed}
        reviewers = []
        dropped = []
        for login in requested:
            lowered = login.lower()
            if lowered == COPILOT_REVIEWER and COPILOT_REVIEWER not in allowed:
                dropped.append(login)
            elif allowed and lowered not in allowed:
                dropped.append(login)
            else:
                reviewers.append(login)
        if dropped:
            self.log.warning("reviewers_filtered", dropped=dropped)
        if not reviewers:
            return HandlerResult.skip(f"No allowed reviewers to add (filtered: {', '.join(dropped)})")

        repo = self.resolve_repo(intent)
        if isinstance(repo, HandlerResult):
            return repo
        target = self.resolve_target(intent, repo, id_map)
        if isinstance(target, HandlerResult):
            return target
        repo = target.repo_slug

        if self.staged:
            return HandlerResult.staged_preview(
                pull_request_number=target.number, repo=repo, reviewers=reviewers
            )

        _, failure = guarded_call(
            lambda: self.client.request_reviewers(repo, target.number, reviewers),
            describe="request_reviewers",
        )
        if failure:
            return failure
        self.log.info("reviewers_requested", repo=repo, number=target.number, reviewers=reviewers)
        return HandlerResult.ok(
            pull_request_number=target.number,
            repo=repo,
            reviewers=reviewers,
            filtered=dropped,
        )
