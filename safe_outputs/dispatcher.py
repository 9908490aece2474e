"""Ordered, throttled dispatch of intents to their handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import structlog

from safe_outputs.config import HandlerConfig, default_config
from safe_outputs.context import ExecutionContext
from safe_outputs.github.client import PlatformClient
from safe_outputs.handlers.base import BaseHandler, HandlerDeps
from safe_outputs.handlers.registry import HANDLER_CLASSES
from safe_outputs.models.intents import Intent, MalformedIntent, UnknownIntent, parse_intent
from safe_outputs.models.results import ErrorKind, HandlerResult
from safe_outputs.review_buffer import ReviewBuffer
from safe_outputs.shared.settings import RunSettings
from safe_outputs.temporary_id import (
    DraftItemReference,
    IssueReference,
    ResolvedReference,
    TemporaryIdMap,
    find_references,
    has_unresolved_references,
)

logger = structlog.get_logger(__name__)

REVIEW_FLUSH_TYPE = "submit_pull_request_review"


@dataclass(frozen=True)
class ResultEntry:
    index: int
    intent_type: str
    result: HandlerResult

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "type": self.intent_type, **self.result.to_dict()}


@dataclass(frozen=True)
class BatchOutcome:
    results: list[ResultEntry]
    still_deferred: list[tuple[int, Intent]]


@dataclass
class RunReport:
    results: list[ResultEntry] = field(default_factory=list)
    passes: int = 0
    id_map: TemporaryIdMap = field(default_factory=TemporaryIdMap)
    staged: bool = False

    def count(self, outcome: str) -> int:
        return sum(1 for entry in self.results if entry.result.outcome == outcome)

    @property
    def failed(self) -> list[ResultEntry]:
        return [entry for entry in self.results if entry.result.failed]

    @property
    def deferred(self) -> list[ResultEntry]:
        return [entry for entry in self.results if entry.result.deferred]

    def to_dict(self) -> dict[str, Any]:
        return {
            "staged": self.staged,
            "passes": self.passes,
            "counts": {
                outcome: self.count(outcome)
                for outcome in ("success", "staged", "skipped", "deferred", "failed")
            },
            "temporary_id_map": self.id_map.to_dict(),
            "results": [entry.to_dict() for entry in self.results],
        }


class Dispatcher:
    """Routes each intent to the handler for its type, in batch order.

    One dispatcher serves one batch: the per-type counters, the handler
    instances and the review buffer all live for the batch only.
    """

    def __init__(
        self,
        client: PlatformClient,
        context: ExecutionContext,
        settings: RunSettings | None = None,
        configs: Mapping[str, HandlerConfig] | None = None,
    ) -> None:
        self.settings = settings or RunSettings()
        self.staged = self.settings.staged
        self.configs = dict(configs or {})
        submit_config = self.config_for(REVIEW_FLUSH_TYPE)
        self.review_buffer = ReviewBuffer(
            client,
            markers=self.settings.markers(),
            footer_policy=submit_config.footer,
            staged=self.staged,
        )
        self.deps = HandlerDeps(
            client=client,
            context=context,
            settings=self.settings,
            review_buffer=self.review_buffer,
        )
        self._handlers: dict[str, BaseHandler] = {}
        self._counts: dict[str, int] = {}

    def config_for(self, intent_type: str) -> HandlerConfig:
        return self.configs.get(intent_type) or default_config(intent_type)

    def handler_for(self, intent_type: str) -> BaseHandler | None:
        if intent_type not in self._handlers:
            handler_cls = HANDLER_CLASSES.get(intent_type)
            if handler_cls is None:
                return None
            self._handlers[intent_type] = handler_cls(self.deps, self.config_for(intent_type))
        return self._handlers[intent_type]

    def processed_count(self, intent_type: str) -> int:
        return self._counts.get(intent_type, 0)

    def process(
        self,
        batch: Iterable[Intent | Mapping[str, Any] | tuple[int, Intent]],
        id_map: TemporaryIdMap,
    ) -> BatchOutcome:
        """Dispatch one pass over ``batch`` and collect the deferred intents."""
        results: list[ResultEntry] = []
        still_deferred: list[tuple[int, Intent]] = []
        for position, item in enumerate(batch):
            index, intent = _indexed(position, item)
            result = self._dispatch(index, intent, id_map)
            results.append(ResultEntry(index=index, intent_type=intent.type, result=result))
            if result.deferred:
                still_deferred.append((index, intent))
        return BatchOutcome(results=results, still_deferred=still_deferred)

    def run(
        self,
        batch: Iterable[Intent | Mapping[str, Any]],
        id_map: TemporaryIdMap | None = None,
        max_passes: int | None = None,
    ) -> RunReport:
        """Process the batch, retry deferred intents, then flush the review buffer."""
        id_map = id_map if id_map is not None else TemporaryIdMap()
        limit = max(1, max_passes if max_passes is not None else self.settings.max_passes)

        outcome = self.process(batch, id_map)
        slots = {entry.index: position for position, entry in enumerate(outcome.results)}
        results = list(outcome.results)
        pending = outcome.still_deferred
        passes = 1

        while pending and passes < limit:
            known = len(id_map)
            retry = self.process(pending, id_map)
            passes += 1
            for entry in retry.results:
                results[slots[entry.index]] = entry
            progressed = len(retry.still_deferred) < len(pending) or len(id_map) > known
            pending = retry.still_deferred
            if not progressed:
                logger.info("deferral_stalled", pass_number=passes, remaining=len(pending))
                break

        for index, intent in pending:
            logger.warning("intent_still_deferred", intent_index=index, intent_type=intent.type)

        flush = self.finalize()
        results.append(ResultEntry(index=len(slots), intent_type=REVIEW_FLUSH_TYPE, result=flush))
        logger.info(
            "batch_complete",
            passes=passes,
            intents=len(slots),
            failed=sum(1 for entry in results if entry.result.failed),
            deferred=len(pending),
            staged=self.staged,
        )
        return RunReport(results=results, passes=passes, id_map=id_map, staged=self.staged)

    def finalize(self) -> HandlerResult:
        """Submit the buffered review, once."""
        return self.review_buffer.submit()

    def _dispatch(self, index: int, intent: Intent, id_map: TemporaryIdMap) -> HandlerResult:
        intent_type = intent.type
        log = logger.bind(intent_index=index, intent_type=intent_type)

        if isinstance(intent, UnknownIntent):
            log.warning("intent_unhandled")
            return HandlerResult.failure(
                f"No handler loaded for type: {intent_type or '(missing)'}", kind=ErrorKind.UNHANDLED
            )
        if isinstance(intent, MalformedIntent):
            log.warning("intent_malformed", errors=intent.errors)
            details = "; ".join(f"{err['path']}: {err['message']}" for err in intent.errors)
            return HandlerResult.failure(f"Invalid {intent_type} item: {details}", errors=intent.errors)

        handler = self.handler_for(intent_type)
        if handler is None:
            log.warning("intent_unhandled")
            return HandlerResult.failure(f"No handler loaded for type: {intent_type}", kind=ErrorKind.UNHANDLED)

        limit = handler.config.max
        if limit is not None and self.processed_count(intent_type) >= limit:
            log.info("intent_throttled", max=limit)
            return HandlerResult.failure(f"Max count of {limit} reached", kind=ErrorKind.THROTTLED)

        with structlog.contextvars.bound_contextvars(intent_index=index, intent_type=intent_type):
            result = handler.handle(intent, id_map)

        if not result.deferred and result.error_kind is not ErrorKind.VALIDATION:
            self._counts[intent_type] = self.processed_count(intent_type) + 1

        if result.success and not result.staged:
            self._register(result, id_map, log)
            if intent.body and has_unresolved_references(intent.body, id_map):
                log.warning(
                    "unresolved_temporary_ids_published",
                    references=[ref for ref in find_references(intent.body) if ref not in id_map],
                )
        log.info("intent_processed", outcome=result.outcome, error=result.error or None)
        return result

    def _register(self, result: HandlerResult, id_map: TemporaryIdMap, log: Any) -> None:
        payload = result.payload
        temporary_id = payload.get("temporary_id")
        if not temporary_id:
            return
        reference: ResolvedReference | None = None
        if payload.get("draft_item_id"):
            reference = DraftItemReference(draft_item_id=str(payload["draft_item_id"]))
        elif payload.get("repo") and payload.get("number"):
            reference = IssueReference(repo=str(payload["repo"]), number=int(payload["number"]))
        if reference is None:
            return
        if id_map.register(str(temporary_id), reference):
            log.info("temporary_id_registered", temporary_id=temporary_id, reference=str(reference))
        else:
            log.warning("temporary_id_already_registered", temporary_id=temporary_id)


def _indexed(position: int, item: Intent | Mapping[str, Any] | tuple[int, Intent]) -> tuple[int, Intent]:
    if isinstance(item, tuple):
        return item
    if isinstance(item, Mapping):
        return position, parse_intent(dict(item))
    return position, item
