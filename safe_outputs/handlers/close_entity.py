"""close_issue / close_pull_request: comment on an entity, then close it."""

from __future__ import annotations

from typing import Any, ClassVar

from safe_outputs.failures import guarded_call
from safe_outputs.handlers.base import BaseHandler, filter_mismatch
from safe_outputs.markers import compose_body
from safe_outputs.models.intents import CloseIssueIntent, ClosePullRequestIntent, IntentBase
from safe_outputs.models.results import HandlerResult
from safe_outputs.review_buffer import FooterPolicy
from safe_outputs.temporary_id import TemporaryIdMap


class CloseEntityHandler(BaseHandler):
    display: ClassVar[str] = ""

    def fetch(self, repo: str, number: int) -> dict[str, Any]:
        raise NotImplementedError

    def close(self, repo: str, number: int, intent: Any) -> dict[str, Any]:
        raise NotImplementedError

    def handle(self, intent: IntentBase, id_map: TemporaryIdMap) -> HandlerResult:
        repo = self.resolve_repo(intent)
        if isinstance(repo, HandlerResult):
            return repo

        raw_comment = intent.body if intent.body and intent.body.strip() else self.config.comment
        if not raw_comment or not raw_comment.strip():
            return HandlerResult.failure("No comment body provided")

        target = self.resolve_target(intent, repo, id_map, honor_explicit=True)
        if isinstance(target, HandlerResult):
            return target
        repo, number = target.repo_slug, target.number

        failure = self.check_limits(raw_comment)
        if failure:
            return failure
        text = self.prepare_text(raw_comment, repo, id_map)
        body = compose_body(text, self.settings.markers(), include_footer=self.config.footer is not FooterPolicy.NEVER)
        failure = self.check_limits(body)
        if failure:
            return failure

        entity, failure = guarded_call(lambda: self.fetch(repo, number), describe=f"get_{self.intent_type}")
        if failure or entity is None:
            return failure or HandlerResult.not_found(f"{self.display} #{number} in {repo}")

        mismatch = filter_mismatch(
            entity,
            self.config.required_labels,
            self.config.required_title_prefix,
            f"{self.display} #{number}",
        )
        if mismatch:
            self.log.warning("close_filter_mismatch", repo=repo, number=number, reason=mismatch)
            return HandlerResult.failure(mismatch)

        already_closed = entity.get("state") == "closed"
        if self.staged:
            return HandlerResult.staged_preview(
                number=number,
                repo=repo,
                already_closed=already_closed,
                body_length=len(body),
            )

        comment, failure = guarded_call(
            lambda: self.client.create_comment(repo, number, body), describe="create_comment"
        )
        if failure or comment is None:
            return failure or HandlerResult.failure("Comment was not created")

        closed = entity
        if already_closed:
            self.log.info("entity_already_closed", repo=repo, number=number)
        else:
            closed, failure = guarded_call(lambda: self.close(repo, number, intent), describe=self.intent_type)
            if failure or closed is None:
                return failure or HandlerResult.failure(f"{self.display} #{number} was not closed")
            self.log.info("entity_closed", repo=repo, number=number)

        return HandlerResult.ok(
            number=number,
            repo=repo,
            url=closed.get("html_url", ""),
            title=closed.get("title", ""),
            comment_url=comment.get("html_url", ""),
            already_closed=already_closed,
        )


class CloseIssueHandler(CloseEntityHandler):
    intent_type = "close_issue"
    display = "Issue"
    supports_pull_requests = False
    number_fields = ("issue_number", "item_number")

    def fetch(self, repo: str, number: int) -> dict[str, Any]:
        return self.client.get_issue(repo, number)

    def close(self, repo: str, number: int, intent: CloseIssueIntent) -> dict[str, Any]:
        return self.client.update_issue(repo, number, {"state": "closed", "state_reason": intent.state_reason})


class ClosePullRequestHandler(CloseEntityHandler):
    intent_type = "close_pull_request"
    display = "Pull request"
    supports_issues = False
    number_fields = ("pull_request_number", "item_number")

    def fetch(self, repo: str, number: int) -> dict[str, Any]:
        return self.client.get_pull_request(repo, number)

    def close(self, repo: str, number: int, intent: ClosePullRequestIntent) -> dict[str, Any]:
        return self.client.update_pull_request(repo, number, {"state": "closed"})
