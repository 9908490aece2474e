"""Pydantic contracts for agent-emitted safe-output intents."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

NumberRef = Union[int, str]


class IntentBase(BaseModel):
    """Fields shared by every intent variant."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: str
    item_number: NumberRef | None = None
    repo: str | None = None
    body: str | None = None
    temporary_id: str | None = None


class CreateIssueIntent(IntentBase):
    type: Literal["create_issue"] = "create_issue"
    title: str = ""
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)


class AddCommentIntent(IntentBase):
    type: Literal["add_comment"] = "add_comment"


class CloseIssueIntent(IntentBase):
    type: Literal["close_issue"] = "close_issue"
    issue_number: NumberRef | None = None
    state_reason: Literal["completed", "not_planned", "duplicate"] = "completed"


class ClosePullRequestIntent(IntentBase):
    type: Literal["close_pull_request"] = "close_pull_request"
    pull_request_number: NumberRef | None = None


class LinkSubIssueIntent(IntentBase):
    type: Literal["link_sub_issue"] = "link_sub_issue"
    parent_issue_number: NumberRef | None = None
    sub_issue_number: NumberRef | None = None


class CreatePullRequestReviewCommentIntent(IntentBase):
    type: Literal["create_pull_request_review_comment"] = "create_pull_request_review_comment"
    path: str = ""
    line: NumberRef | None = None
    start_line: NumberRef | None = None
    side: str | None = None
    pull_request_number: NumberRef | None = None


class SubmitPullRequestReviewIntent(IntentBase):
    type: Literal["submit_pull_request_review"] = "submit_pull_request_review"
    event: str | None = None
    pull_request_number: NumberRef | None = None


class UpdateProjectIntent(IntentBase):
    type: Literal["update_project"] = "update_project"
    project: str = ""
    content_type: Literal["issue", "pull_request", "draft_issue"] | None = None
    content_number: NumberRef | None = None
    draft_title: str = ""
    draft_body: str | None = None
    draft_issue_id: str | None = None
    fields: dict[str, str] = Field(default_factory=dict)


class AssignMilestoneIntent(IntentBase):
    type: Literal["assign_milestone"] = "assign_milestone"
    issue_number: NumberRef | None = None
    milestone_number: NumberRef | None = None
    milestone_title: str = ""


class AddReviewerIntent(IntentBase):
    type: Literal["add_reviewer"] = "add_reviewer"
    pull_request_number: NumberRef | None = None
    reviewers: list[str] = Field(default_factory=list)


class HideCommentIntent(IntentBase):
    type: Literal["hide_comment"] = "hide_comment"
    comment_id: str = ""
    reason: str = "spam"


class UnknownIntent(IntentBase):
    """Intent whose ``type`` has no registered handler."""


class MalformedIntent(IntentBase):
    """Intent of a known type whose fields failed schema validation."""

    errors: list[dict[str, Any]] = Field(default_factory=list)


KnownIntent = Annotated[
    Union[
        CreateIssueIntent,
        AddCommentIntent,
        CloseIssueIntent,
        ClosePullRequestIntent,
        LinkSubIssueIntent,
        CreatePullRequestReviewCommentIntent,
        SubmitPullRequestReviewIntent,
        UpdateProjectIntent,
        AssignMilestoneIntent,
        AddReviewerIntent,
        HideCommentIntent,
    ],
    Field(discriminator="type"),
]
Intent = Union[KnownIntent, UnknownIntent, MalformedIntent]

INTENT_TYPES: tuple[str, ...] = (
    "create_issue",
    "add_comment",
    "close_issue",
    "close_pull_request",
    "link_sub_issue",
    "create_pull_request_review_comment",
    "submit_pull_request_review",
    "update_project",
    "assign_milestone",
    "add_reviewer",
    "hide_comment",
)

_KNOWN_ADAPTER: TypeAdapter[Any] = TypeAdapter(KnownIntent)


def parse_intent(raw: dict[str, Any]) -> Intent:
    """Parse one raw agent record into its intent variant.

    Records with an unrecognised ``type`` become :class:`UnknownIntent`; records
    of a known type that fail validation become :class:`MalformedIntent` so the
    dispatcher can report them per intent instead of aborting the batch.
    """
    intent_type = str(raw.get("type", "")).strip()
    if intent_type not in INTENT_TYPES:
        extras = {key: value for key, value in raw.items() if key not in IntentBase.model_fields}
        return UnknownIntent(**{**extras, **_base_fields(raw), "type": intent_type})
    try:
        return _KNOWN_ADAPTER.validate_python({**raw, "type": intent_type})
    except ValidationError as exc:
        errors = [
            {
                "code": "SCHEMA_" + str(err.get("type", "invalid")).upper(),
                "path": "$." + ".".join(str(part) for part in err.get("loc", ()) if part != intent_type),
                "message": str(err.get("msg", "")),
            }
            for err in exc.errors()
        ]
        return MalformedIntent(**{**_base_fields(raw), "type": intent_type, "errors": errors})


def _base_fields(raw: dict[str, Any]) -> dict[str, Any]:
    base: dict[str, Any] = {}
    for key in ("item_number", "repo", "body", "temporary_id"):
        value = raw.get(key)
        if isinstance(value, bool) or value is None:
            continue
        if key == "item_number" and isinstance(value, (int, str)):
            base[key] = value
        elif isinstance(value, str):
            base[key] = value
    return base
