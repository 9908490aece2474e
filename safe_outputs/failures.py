"""Classification of platform failures into warnings and fatal errors."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, TypeVar

import structlog

from safe_outputs.errors import PlatformError
from safe_outputs.github.client import PlatformClient
from safe_outputs.models.results import ErrorKind, HandlerResult

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class FailureKind(str, Enum):
    WARNING = "warning"
    FATAL = "fatal"


def is_not_found(error: BaseException) -> bool:
    if getattr(error, "status", None) == 404:
        return True
    message = str(error)
    return "404" in message or "not found" in message.lower()


def classify(error: PlatformError) -> FailureKind:
    return FailureKind.WARNING if is_not_found(error) else FailureKind.FATAL


def failure_result(error: PlatformError) -> HandlerResult:
    """Map a classified platform error onto a handler result."""
    if classify(error) is FailureKind.WARNING:
        return HandlerResult.not_found(str(error))
    kind = ErrorKind.AUTHORIZATION if getattr(error, "status", None) in {401, 403} else ErrorKind.PLATFORM
    return HandlerResult.failure(str(error), kind=kind)


def guarded_call(
    fn: Callable[[], T],
    *,
    describe: str,
) -> tuple[T | None, HandlerResult | None]:
    """Run one platform call; returns ``(value, None)`` or ``(None, result)``.

    Platform errors are never retried. Anything other than ``PlatformError``
    propagates to the caller.
    """
    try:
        return fn(), None
    except PlatformError as exc:
        kind = classify(exc)
        logger.warning(
            "platform_call_failed",
            call=describe,
            failure_kind=kind.value,
            status=exc.status,
            reason_code=exc.reason_code,
            error=str(exc),
        )
        return None, failure_result(exc)


def post_comment_with_fallback(
    client: PlatformClient,
    *,
    repo: str,
    number: int,
    body: str,
    explicit_target: bool,
    is_discussion: bool,
) -> tuple[dict[str, Any] | None, bool, HandlerResult | None]:
    """Post a comment, retrying once as a discussion comment on a 404.

    Returns ``(comment, posted_to_discussion, failure)``. The discussion retry
    only happens for an explicitly numbered target outside a discussion
    context.
    """
    try:
        if is_discussion:
            return _comment_on_discussion(client, repo, number, body), True, None
        return client.create_comment(repo, number, body), False, None
    except PlatformError as exc:
        if not (is_not_found(exc) and explicit_target and not is_discussion):
            logger.warning("comment_post_failed", repo=repo, number=number, error=str(exc))
            return None, is_discussion, failure_result(exc)
        logger.info("comment_retry_as_discussion", repo=repo, number=number)

    try:
        return _comment_on_discussion(client, repo, number, body), True, None
    except PlatformError as exc:
        logger.warning("discussion_comment_failed", repo=repo, number=number, error=str(exc))
        return None, True, failure_result(exc)


def _comment_on_discussion(client: PlatformClient, repo: str, number: int, body: str) -> dict[str, Any]:
    discussion_id = client.get_discussion_id(repo, number)
    if not discussion_id:
        raise PlatformError(f"Discussion #{number} not found in {repo}", status=404, reason_code="github_404")
    return client.add_discussion_comment(discussion_id, body)
