"""Buffers pull request review comments and submits them as one review."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from safe_outputs import limits
from safe_outputs.errors import PlatformError, ReviewContextMismatch
from safe_outputs.github.client import PlatformClient
from safe_outputs.markers import MarkerContext, compose_body
from safe_outputs.models.results import ErrorKind, HandlerResult

logger = structlog.get_logger(__name__)

REVIEW_EVENTS = ("APPROVE", "REQUEST_CHANGES", "COMMENT")


class ReviewState(str, Enum):
    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    SUBMITTED = "submitted"
    FAILED = "failed"


class FooterPolicy(str, Enum):
    ALWAYS = "always"
    NEVER = "never"
    IF_BODY = "if_body"


@dataclass(frozen=True)
class ReviewContext:
    repo: str
    pull_request_number: int
    head_sha: str


@dataclass(frozen=True)
class BufferedComment:
    path: str
    line: int
    body: str
    start_line: int | None = None
    side: str | None = None
    start_side: str | None = None

    def to_api(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"path": self.path, "line": self.line, "body": self.body}
        if self.start_line is not None:
            payload["start_line"] = self.start_line
        if self.side:
            payload["side"] = self.side
        if self.start_line is not None and (self.start_side or self.side):
            payload["start_side"] = self.start_side or self.side
        return payload


class ReviewBuffer:
    """Accumulates review comments for a single pull request.

    The first comment or metadata call binds the buffer to a pull request;
    anything addressed to a different pull request afterwards is rejected.
    """

    def __init__(
        self,
        client: PlatformClient,
        markers: MarkerContext | None = None,
        footer_policy: FooterPolicy = FooterPolicy.ALWAYS,
        staged: bool = False,
    ) -> None:
        self.client = client
        self.markers = markers or MarkerContext()
        self.footer_policy = footer_policy
        self.staged = staged
        self.state = ReviewState.EMPTY
        self._context: ReviewContext | None = None
        self._comments: list[BufferedComment] = []
        self._body: str | None = None
        self._event: str | None = None

    @property
    def context(self) -> ReviewContext | None:
        return self._context

    @property
    def comments(self) -> tuple[BufferedComment, ...]:
        return tuple(self._comments)

    @property
    def has_metadata(self) -> bool:
        return self._event is not None

    def is_empty(self) -> bool:
        return not self._comments and not self.has_metadata

    def bind_context(self, ctx: ReviewContext) -> None:
        if self._context is None:
            self._context = ctx
            logger.debug("review_context_bound", repo=ctx.repo, pull_request_number=ctx.pull_request_number)
            return
        if (ctx.repo, ctx.pull_request_number) != (
            self._context.repo,
            self._context.pull_request_number,
        ):
            raise ReviewContextMismatch(
                "Review comments must target the same PR "
                f"(buffer is bound to {self._context.repo}#{self._context.pull_request_number}, "
                f"got {ctx.repo}#{ctx.pull_request_number})"
            )

    def add_comment(self, ctx: ReviewContext, comment: BufferedComment) -> int:
        self._ensure_open()
        self.bind_context(ctx)
        self._comments.append(comment)
        self.state = ReviewState.ACCUMULATING
        return len(self._comments)

    def set_metadata(self, ctx: ReviewContext | None, body: str, event: str) -> None:
        """Record the review body and event; the last call wins."""
        self._ensure_open()
        normalized = (event or "COMMENT").strip().upper()
        if normalized not in REVIEW_EVENTS:
            raise ValueError(f"Invalid review event: {event}")
        if ctx is not None:
            self.bind_context(ctx)
        self._body = body
        self._event = normalized
        self.state = ReviewState.ACCUMULATING

    def submit(self) -> HandlerResult:
        if self.state is ReviewState.SUBMITTED:
            return HandlerResult.skip("Review already submitted")
        if self.is_empty():
            logger.info("review_buffer_empty")
            return HandlerResult.skip()
        if self._context is None:
            return HandlerResult.failure("No review context available")
        if not self._context.head_sha:
            return HandlerResult.failure("Pull request head SHA not available")

        ctx = self._context
        event = self._event or "COMMENT"
        body = self._compose_body(self._body or "")
        comments = [comment.to_api() for comment in self._comments]

        violation = limits.check(body)
        if violation is not None:
            logger.warning("review_body_over_limit", code=violation.code, actual=violation.actual)
            return HandlerResult.failure(str(violation), kind=ErrorKind.CONSTRAINT, code=violation.code)

        if self.staged:
            self.state = ReviewState.SUBMITTED
            return HandlerResult.staged_preview(
                repo=ctx.repo,
                pull_request_number=ctx.pull_request_number,
                event=event,
                comment_count=len(comments),
                body_length=len(body),
            )

        payload: dict[str, Any] = {"commit_id": ctx.head_sha, "event": event}
        if comments:
            payload["comments"] = comments
        if body:
            payload["body"] = body

        log = logger.bind(repo=ctx.repo, pull_request_number=ctx.pull_request_number, review_event=event)
        try:
            review = self.client.create_pull_request_review(ctx.repo, ctx.pull_request_number, payload)
        except PlatformError as exc:
            self.state = ReviewState.FAILED
            log.error("review_submit_failed", error=str(exc), status=exc.status)
            return HandlerResult.failure(str(exc), kind=ErrorKind.PLATFORM)

        self.state = ReviewState.SUBMITTED
        log.info("review_submitted", review_id=review.get("id"), comment_count=len(comments))
        return HandlerResult.ok(
            review_id=review.get("id"),
            review_url=review.get("html_url", ""),
            pull_request_number=ctx.pull_request_number,
            repo=ctx.repo,
            event=event,
            comment_count=len(comments),
        )

    def _compose_body(self, body: str) -> str:
        if self.footer_policy is FooterPolicy.NEVER:
            return body
        if self.footer_policy is FooterPolicy.IF_BODY and not body.strip():
            return body
        return compose_body(body, self.markers, include_tracker=False)

    def _ensure_open(self) -> None:
        if self.state is ReviewState.SUBMITTED:
            raise ValueError("Review has already been submitted")
