"""hide_comment: minimize a comment by its node id."""

from __future__ import annotations

from safe_outputs.failures import guarded_call
from safe_outputs.github.client_api import MINIMIZE_CLASSIFIERS
from safe_outputs.handlers.base import BaseHandler
from safe_outputs.models.intents import HideCommentIntent
from safe_outputs.models.results import ErrorKind, HandlerResult
from safe_outputs.temporary_id import TemporaryIdMap


class HideCommentHandler(BaseHandler):
    intent_type = "hide_comment"

    def handle(self, intent: HideCommentIntent, id_map: TemporaryIdMap) -> HandlerResult:
        node_id = (intent.comment_id or "").strip()
        if not node_id:
            return HandlerResult.failure('Missing required field "comment_id"')
        if node_id.isascii() and node_id.isdigit():
            return HandlerResult.failure(
                f"comment_id must be a GraphQL node id (e.g. IC_kwDOABCD123456), got numeric id {node_id}"
            )

        reason = (intent.reason or "spam").strip().lower()
        if reason not in MINIMIZE_CLASSIFIERS:
            return HandlerResult.failure(
                f"Invalid reason: {intent.reason}. Must be one of {', '.join(sorted(MINIMIZE_CLASSIFIERS))}"
            )
        allowed = {entry.strip().lower() for entry in self.config.allowed_reasons}
        if allowed and reason not in allowed:
            return HandlerResult.failure(
                f"Reason '{reason}' is not in the allowed reasons: {', '.join(sorted(allowed))}",
                kind=ErrorKind.AUTHORIZATION,
            )

        if self.staged:
            return HandlerResult.staged_preview(comment_id=node_id, reason=reason)

        minimized, failure = guarded_call(
            lambda: self.client.minimize_comment(node_id, reason), describe="minimize_comment"
        )
        if failure or minimized is None:
            return failure or HandlerResult.failure("Comment was not minimized")
        self.log.info("comment_hidden", comment_id=node_id, reason=reason)
        return HandlerResult.ok(comment_id=node_id, reason=reason, is_hidden=bool(minimized.get("minimized")))
