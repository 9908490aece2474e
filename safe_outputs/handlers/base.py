"""Shared handler plumbing: dependencies, target resolution, body preparation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Iterable, Protocol

import structlog

from safe_outputs import limits
from safe_outputs.config import HandlerConfig, default_config
from safe_outputs.context import ExecutionContext
from safe_outputs.github.client import PlatformClient
from safe_outputs.models.intents import IntentBase
from safe_outputs.models.results import ErrorKind, HandlerResult
from safe_outputs.review_buffer import ReviewBuffer
from safe_outputs.sanitize import sanitize
from safe_outputs.shared.settings import RunSettings
from safe_outputs.temporary_id import (
    ResolvedTarget,
    TemporaryIdMap,
    replace_references,
    resolve,
    validate_declared_temporary_id,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HandlerDeps:
    client: PlatformClient
    context: ExecutionContext
    settings: RunSettings
    review_buffer: ReviewBuffer


class Handler(Protocol):
    intent_type: str

    def handle(self, intent: Any, id_map: TemporaryIdMap) -> HandlerResult: ...


class BaseHandler:
    """Common behaviour for intent handlers.

    Resolution helpers return either the resolved value or the
    :class:`HandlerResult` the intent must stop with.
    """

    intent_type: ClassVar[str] = ""
    supports_issues: ClassVar[bool] = True
    supports_pull_requests: ClassVar[bool] = True
    number_fields: ClassVar[tuple[str, ...]] = ("item_number",)

    def __init__(self, deps: HandlerDeps, config: HandlerConfig | None = None) -> None:
        self.deps = deps
        self.config = config or default_config(self.intent_type)
        self.log = logger.bind(intent_type=self.intent_type)

    @property
    def client(self) -> PlatformClient:
        return self.deps.client

    @property
    def context(self) -> ExecutionContext:
        return self.deps.context

    @property
    def settings(self) -> RunSettings:
        return self.deps.settings

    @property
    def staged(self) -> bool:
        return self.deps.settings.staged

    def handle(self, intent: Any, id_map: TemporaryIdMap) -> HandlerResult:
        raise NotImplementedError

    # Repository and target resolution

    def default_repo(self) -> str:
        return self.config.target_repo or self.context.repo

    def resolve_repo(self, intent: IntentBase) -> str | HandlerResult:
        default = self.default_repo()
        requested = (intent.repo or "").strip()
        if not requested:
            if not default:
                return HandlerResult.failure("No target repository available")
            return default
        if "/" not in requested and default:
            requested = f"{default.partition('/')[0]}/{requested}"
        if requested == default or is_repo_allowed(requested, self.config.allowed_repos):
            return requested
        allowed = ", ".join([default, *self.config.allowed_repos])
        return HandlerResult.failure(
            f"Repository '{requested}' is not in the allowed-repos list. Allowed: {allowed}",
            kind=ErrorKind.AUTHORIZATION,
        )

    def resolve_ref(
        self, ref: Any, repo: str, id_map: TemporaryIdMap, field: str
    ) -> ResolvedTarget | HandlerResult:
        owner, _, name = repo.partition("/")
        resolution = resolve(ref, id_map, owner, name)
        if resolution.is_deferred:
            self.log.info("intent_deferred", field=field, ref=str(ref))
            return HandlerResult.defer(resolution.error_message or f"Unresolved temporary ID: {ref}")
        if resolution.resolved is None:
            return HandlerResult.failure(f"Invalid {field} specified: {ref}. {resolution.error_message}".strip())
        return resolution.resolved

    def explicit_ref(self, intent: IntentBase) -> tuple[str, Any]:
        for field in self.number_fields:
            value = getattr(intent, field, None)
            if value is not None and value != "":
                return field, value
        return "", None

    def resolve_target(
        self,
        intent: IntentBase,
        repo: str,
        id_map: TemporaryIdMap,
        honor_explicit: bool = False,
    ) -> ResolvedTarget | HandlerResult:
        """Resolve the entity number from explicit fields, the target config, or the event."""
        field, ref = self.explicit_ref(intent)
        target = self.config.target

        if ref is not None and (honor_explicit or target == "*"):
            return self.resolve_ref(ref, repo, id_map, field)

        owner, _, name = repo.partition("/")
        if target == "*":
            fields = "/".join(self.number_fields)
            return HandlerResult.failure(f'Target is "*" but no {fields} specified in {self.intent_type} item')

        if target != "triggering":
            return ResolvedTarget(owner=owner, repo=name, number=int(target))

        number = self._triggering_number()
        if number is None:
            return HandlerResult.skip(
                f'Target is "triggering" but not running in {self._context_label()} context, '
                f"skipping {self.intent_type}"
            )
        return ResolvedTarget(owner=owner, repo=name, number=number)

    def _triggering_number(self) -> int | None:
        ctx = self.context
        if self.supports_pull_requests and ctx.is_pull_request_event and ctx.pull_request_number:
            return ctx.pull_request_number
        if ctx.is_issue_event and ctx.issue_number:
            if ctx.pull_request_number and ctx.pull_request_number == ctx.issue_number:
                return ctx.issue_number if self.supports_pull_requests else None
            return ctx.issue_number if self.supports_issues else None
        return None

    def _context_label(self) -> str:
        if self.supports_issues and self.supports_pull_requests:
            return "issue or pull request"
        return "issue" if self.supports_issues else "pull request"

    # Body preparation

    def prepare_text(self, raw: str | None, repo: str, id_map: TemporaryIdMap) -> str:
        replaced = replace_references(raw or "", id_map, repo)
        return sanitize(
            replaced,
            allowed_mentions=self.settings.allowed_mentions,
            blocked_domains=self.settings.blocked_domains,
        )

    def check_limits(self, text: str) -> HandlerResult | None:
        violation = limits.check(text)
        if violation is None:
            return None
        self.log.warning("limit_exceeded", code=violation.code, actual=violation.actual, limit=violation.limit)
        return HandlerResult.failure(str(violation), kind=ErrorKind.CONSTRAINT, code=violation.code)

    def declared_temporary_id(self, intent: IntentBase) -> str | HandlerResult | None:
        normalized, error = validate_declared_temporary_id(intent.temporary_id)
        if error:
            return HandlerResult.failure(error)
        return normalized


def is_repo_allowed(repo: str, allowed: Iterable[str]) -> bool:
    owner = repo.partition("/")[0]
    for pattern in allowed:
        pattern = pattern.strip()
        if pattern == "*" or pattern == repo:
            return True
        if pattern.endswith("/*") and pattern[:-2] == owner:
            return True
    return False


def label_names(entity: dict[str, Any]) -> list[str]:
    names = []
    for label in entity.get("labels") or []:
        names.append(str(label.get("name", "")) if isinstance(label, dict) else str(label))
    return names


def filter_mismatch(
    entity: dict[str, Any],
    required_labels: list[str],
    required_title_prefix: str,
    display: str,
) -> str:
    """Describe why ``entity`` fails the label/title filters, or return ''."""
    present = set(label_names(entity))
    missing = [label for label in required_labels if label not in present]
    if missing:
        return f"{display} missing required labels: {', '.join(missing)}"
    if required_title_prefix and not str(entity.get("title", "")).startswith(required_title_prefix):
        return f'{display} title does not start with "{required_title_prefix}"'
    return ""
