from __future__ import annotations

from typing import Any, Callable

import pytest

from safe_outputs.config import HandlerConfig, default_config
from safe_outputs.context import ExecutionContext
from safe_outputs.github.client_inmemory import InMemoryGitHubClient
from safe_outputs.handlers.base import BaseHandler, HandlerDeps
from safe_outputs.review_buffer import ReviewBuffer
from safe_outputs.shared.settings import RunSettings

REPO = "octo/widgets"


@pytest.fixture
def client() -> InMemoryGitHubClient:
    return InMemoryGitHubClient()


@pytest.fixture
def issue_context() -> ExecutionContext:
    return ExecutionContext(repo=REPO, event_name="issues", issue_number=5, run_id="99")


@pytest.fixture
def make_handler(
    client: InMemoryGitHubClient, issue_context: ExecutionContext
) -> Callable[..., BaseHandler]:
    def _make(
        handler_cls: type[BaseHandler],
        context: ExecutionContext | None = None,
        settings: RunSettings | None = None,
        review_buffer: ReviewBuffer | None = None,
        **config: Any,
    ) -> BaseHandler:
        run_settings = settings or RunSettings(workflow_name="triage", workflow_id="triage-wf")
        deps = HandlerDeps(
            client=client,
            context=context or issue_context,
            settings=run_settings,
            review_buffer=review_buffer or ReviewBuffer(client, markers=run_settings.markers()),
        )
        base = default_config(handler_cls.intent_type).model_dump()
        return handler_cls(deps, HandlerConfig.model_validate({**base, **config}))

    return _make
