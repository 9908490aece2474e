"""add_comment: post a sanitized comment on an issue, pull request, or discussion."""

from __future__ import annotations

from safe_outputs.failures import guarded_call, post_comment_with_fallback
from safe_outputs.handlers.base import BaseHandler
from safe_outputs.markers import compose_body, has_workflow_id_marker, workflow_id_marker
from safe_outputs.models.intents import AddCommentIntent
from safe_outputs.models.results import HandlerResult
from safe_outputs.review_buffer import FooterPolicy
from safe_outputs.temporary_id import ResolvedTarget, TemporaryIdMap

HIDE_REASON = "outdated"


class AddCommentHandler(BaseHandler):
    intent_type = "add_comment"

    def handle(self, intent: AddCommentIntent, id_map: TemporaryIdMap) -> HandlerResult:
        repo = self.resolve_repo(intent)
        if isinstance(repo, HandlerResult):
            return repo

        explicit = intent.item_number is not None and intent.item_number != ""
        is_discussion = False
        if explicit:
            target = self.resolve_ref(intent.item_number, repo, id_map, "item_number")
        elif self.context.is_discussion_event:
            if not self.context.discussion_number:
                return HandlerResult.failure("No discussion number available")
            owner, _, name = repo.partition("/")
            target = ResolvedTarget(owner=owner, repo=name, number=self.context.discussion_number)
            is_discussion = True
        else:
            target = self.resolve_target(intent, repo, id_map)
        if isinstance(target, HandlerResult):
            return target
        repo = target.repo_slug

        failure = self.check_limits(intent.body or "")
        if failure:
            return failure
        text = self.prepare_text(intent.body, repo, id_map)

        markers = self.settings.markers()
        body = compose_body(text, markers, include_footer=self.config.footer is not FooterPolicy.NEVER)
        if self.config.footer is FooterPolicy.NEVER and markers.workflow_id:
            body = f"{body}\n\n{workflow_id_marker(markers.workflow_id)}"
        failure = self.check_limits(body)
        if failure:
            return failure

        log = self.log.bind(repo=repo, number=target.number, is_discussion=is_discussion)
        if self.staged:
            log.info("staged_add_comment")
            return HandlerResult.staged_preview(
                item_number=target.number,
                repo=repo,
                is_discussion=is_discussion,
                body_length=len(body),
            )

        if self.config.hide_older_comments and markers.workflow_id:
            self._hide_older_comments(repo, target.number, markers.workflow_id, is_discussion)

        comment, posted_to_discussion, failure = post_comment_with_fallback(
            self.client,
            repo=repo,
            number=target.number,
            body=body,
            explicit_target=explicit,
            is_discussion=is_discussion,
        )
        if failure or comment is None:
            return failure or HandlerResult.failure("Comment was not created")
        log.info("comment_created", comment_id=comment.get("id"), is_discussion=posted_to_discussion)
        return HandlerResult.ok(
            comment_id=comment.get("id"),
            url=comment.get("html_url", ""),
            item_number=target.number,
            repo=repo,
            is_discussion=posted_to_discussion,
        )

    def _hide_older_comments(self, repo: str, number: int, workflow_id: str, is_discussion: bool) -> int:
        if self.config.allowed_reasons and HIDE_REASON not in {
            reason.lower() for reason in self.config.allowed_reasons
        }:
            self.log.warning("hide_older_comments_reason_not_allowed", reason=HIDE_REASON)
            return 0

        if is_discussion:
            comments, failure = guarded_call(
                lambda: self.client.list_discussion_comments(repo, number), describe="list_discussion_comments"
            )
        else:
            comments, failure = guarded_call(
                lambda: self.client.list_comments(repo, number), describe="list_comments"
            )
        if failure or not comments:
            return 0

        hidden = 0
        for comment in comments:
            if comment.get("minimized") or not has_workflow_id_marker(comment.get("body"), workflow_id):
                continue
            node_id = str(comment.get("node_id") or "")
            if not node_id:
                continue
            _, failure = guarded_call(
                lambda: self.client.minimize_comment(node_id, HIDE_REASON), describe="minimize_comment"
            )
            if failure is None:
                hidden += 1
        self.log.info("older_comments_hidden", count=hidden)
        return hidden
