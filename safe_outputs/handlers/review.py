"""Pull request review intents, accumulated in the shared review buffer."""

from __future__ import annotations

from typing import Any

from safe_outputs.errors import ReviewContextMismatch
from safe_outputs.failures import guarded_call
from safe_outputs.handlers.base import BaseHandler
from safe_outputs.models.intents import (
    CreatePullRequestReviewCommentIntent,
    IntentBase,
    SubmitPullRequestReviewIntent,
)
from safe_outputs.models.results import HandlerResult
from safe_outputs.review_buffer import REVIEW_EVENTS, BufferedComment, ReviewBuffer, ReviewContext, ReviewState
from safe_outputs.temporary_id import TemporaryIdMap


class PullRequestReviewHandler(BaseHandler):
    supports_issues = False
    number_fields = ("pull_request_number",)

    @property
    def buffer(self) -> ReviewBuffer:
        return self.deps.review_buffer

    def review_context(
        self, intent: IntentBase, repo: str, id_map: TemporaryIdMap
    ) -> ReviewContext | HandlerResult:
        target = self.resolve_target(intent, repo, id_map)
        if isinstance(target, HandlerResult):
            return target

        bound = self.buffer.context
        if bound is not None:
            if (bound.repo, bound.pull_request_number) != (target.repo_slug, target.number):
                return HandlerResult.failure(
                    "Review comments must target the same PR "
                    f"(buffer is bound to {bound.repo}#{bound.pull_request_number})"
                )
            return bound

        head_sha = ""
        if target.number == self.context.pull_request_number and target.repo_slug == self.context.repo:
            head_sha = self.context.pull_request_head_sha
        if not head_sha:
            pull, failure = guarded_call(
                lambda: self.client.get_pull_request(target.repo_slug, target.number),
                describe="get_pull_request",
            )
            if failure or pull is None:
                return failure or HandlerResult.not_found(f"pull request #{target.number} in {target.repo_slug}")
            head_sha = str(((pull.get("head") or {}).get("sha")) or "")
        if not head_sha:
            return HandlerResult.failure("Pull request head commit SHA not found")
        return ReviewContext(repo=target.repo_slug, pull_request_number=target.number, head_sha=head_sha)


class ReviewCommentHandler(PullRequestReviewHandler):
    intent_type = "create_pull_request_review_comment"

    def handle(self, intent: CreatePullRequestReviewCommentIntent, id_map: TemporaryIdMap) -> HandlerResult:
        if self.buffer.state is ReviewState.SUBMITTED:
            return HandlerResult.failure("Review has already been submitted")

        path = (intent.path or "").strip()
        if not path:
            return HandlerResult.failure('Missing required field "path"')
        line = _positive_int(intent.line)
        if line is None:
            return HandlerResult.failure(f"Invalid line number: {intent.line}")
        start_line = None
        if intent.start_line not in (None, ""):
            start_line = _positive_int(intent.start_line)
            if start_line is None or start_line > line:
                return HandlerResult.failure(f"Invalid start_line: {intent.start_line}")
        side = (intent.side or self.config.side).strip().upper()
        if side not in {"LEFT", "RIGHT"}:
            return HandlerResult.failure(f"Invalid side value: {intent.side}")

        repo = self.resolve_repo(intent)
        if isinstance(repo, HandlerResult):
            return repo
        ctx = self.review_context(intent, repo, id_map)
        if isinstance(ctx, HandlerResult):
            return ctx

        failure = self.check_limits(intent.body or "")
        if failure:
            return failure
        text = self.prepare_text(intent.body, ctx.repo, id_map)
        if not text.strip():
            return HandlerResult.failure('Missing or invalid required field "body"')
        failure = self.check_limits(text)
        if failure:
            return failure

        comment = BufferedComment(path=path, line=line, body=text, start_line=start_line, side=side)
        try:
            count = self.buffer.add_comment(ctx, comment)
        except ReviewContextMismatch as exc:
            return HandlerResult.failure(str(exc))
        self.log.info("review_comment_buffered", repo=ctx.repo, pull_request_number=ctx.pull_request_number, path=path)
        return HandlerResult.ok(
            buffered=True,
            buffered_count=count,
            pull_request_number=ctx.pull_request_number,
            repo=ctx.repo,
        )


class SubmitReviewHandler(PullRequestReviewHandler):
    intent_type = "submit_pull_request_review"

    def handle(self, intent: SubmitPullRequestReviewIntent, id_map: TemporaryIdMap) -> HandlerResult:
        if self.buffer.state is ReviewState.SUBMITTED:
            return HandlerResult.failure("Review has already been submitted")

        event = (intent.event or "COMMENT").strip().upper()
        if event not in REVIEW_EVENTS:
            return HandlerResult.failure(
                f"Invalid review event: {intent.event}. Must be one of {', '.join(REVIEW_EVENTS)}"
            )

        repo = self.resolve_repo(intent)
        if isinstance(repo, HandlerResult):
            return repo
        failure = self.check_limits(intent.body or "")
        if failure:
            return failure
        body = self.prepare_text(intent.body, repo, id_map)
        if event == "REQUEST_CHANGES" and not body.strip():
            return HandlerResult.failure("Review body is required for REQUEST_CHANGES")
        failure = self.check_limits(body)
        if failure:
            return failure

        ctx: ReviewContext | None = self.buffer.context
        if intent.pull_request_number not in (None, "") or ctx is None:
            resolved = self.review_context(intent, repo, id_map)
            if isinstance(resolved, HandlerResult):
                if resolved.deferred or resolved.failed:
                    return resolved
                resolved = None
            ctx = resolved

        try:
            self.buffer.set_metadata(ctx, body, event)
        except ReviewContextMismatch as exc:
            return HandlerResult.failure(str(exc))
        self.log.info("review_metadata_set", review_event=event, body_length=len(body))
        return HandlerResult.ok(event=event, body_length=len(body))


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()):
        return None
    parsed = int(text)
    return parsed if parsed > 0 else None
