"""create_issue: open an issue and register its temporary ID."""

from __future__ import annotations

from safe_outputs.failures import guarded_call
from safe_outputs.handlers.base import BaseHandler
from safe_outputs.markers import compose_body
from safe_outputs.models.intents import CreateIssueIntent
from safe_outputs.models.results import HandlerResult
from safe_outputs.review_buffer import FooterPolicy
from safe_outputs.sanitize import apply_title_prefix, sanitize_title
from safe_outputs.temporary_id import TemporaryIdMap, generate_temporary_id


class CreateIssueHandler(BaseHandler):
    intent_type = "create_issue"

    def handle(self, intent: CreateIssueIntent, id_map: TemporaryIdMap) -> HandlerResult:
        temporary_id = self.declared_temporary_id(intent)
        if isinstance(temporary_id, HandlerResult):
            return temporary_id
        temporary_id = temporary_id or generate_temporary_id()

        repo = self.resolve_repo(intent)
        if isinstance(repo, HandlerResult):
            return repo

        title = sanitize_title(intent.title, title_prefix=self.config.title_prefix)
        if not title:
            return HandlerResult.failure("create_issue requires a non-empty title")
        title = apply_title_prefix(title, self.config.title_prefix)

        failure = self.check_limits(intent.body or "")
        if failure:
            return failure
        text = self.prepare_text(intent.body, repo, id_map)
        body = compose_body(text, self.settings.markers(), include_footer=self.config.footer is not FooterPolicy.NEVER)
        failure = self.check_limits(body)
        if failure:
            return failure

        labels = list(dict.fromkeys([*self.config.labels, *(label.strip() for label in intent.labels if label.strip())]))
        payload = {"title": title, "body": body, "labels": labels}
        if intent.assignees:
            payload["assignees"] = [login.strip().lstrip("@") for login in intent.assignees if login.strip()]

        if self.staged:
            return HandlerResult.staged_preview(
                repo=repo,
                title=title,
                labels=labels,
                temporary_id=temporary_id,
                body_length=len(body),
            )

        issue, failure = guarded_call(lambda: self.client.create_issue(repo, payload), describe="create_issue")
        if failure or issue is None:
            return failure or HandlerResult.failure("Issue was not created")
        self.log.info("issue_created", repo=repo, number=issue.get("number"), temporary_id=temporary_id)
        return HandlerResult.ok(
            temporary_id=temporary_id,
            repo=repo,
            number=issue.get("number"),
            url=issue.get("html_url", ""),
        )
