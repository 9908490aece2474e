"""Intent type -> handler class registry."""

from __future__ import annotations

from safe_outputs.handlers.add_comment import AddCommentHandler
from safe_outputs.handlers.add_reviewer import AddReviewerHandler
from safe_outputs.handlers.assign_milestone import AssignMilestoneHandler
from safe_outputs.handlers.base import BaseHandler
from safe_outputs.handlers.close_entity import CloseIssueHandler, ClosePullRequestHandler
from safe_outputs.handlers.create_issue import CreateIssueHandler
from safe_outputs.handlers.hide_comment import HideCommentHandler
from safe_outputs.handlers.link_sub_issue import LinkSubIssueHandler
from safe_outputs.handlers.review import ReviewCommentHandler, SubmitReviewHandler
from safe_outputs.handlers.update_project import UpdateProjectHandler

HANDLER_CLASSES: dict[str, type[BaseHandler]] = {
    handler.intent_type: handler
    for handler in (
        CreateIssueHandler,
        AddCommentHandler,
        CloseIssueHandler,
        ClosePullRequestHandler,
        LinkSubIssueHandler,
        ReviewCommentHandler,
        SubmitReviewHandler,
        UpdateProjectHandler,
        AssignMilestoneHandler,
        AddReviewerHandler,
        HideCommentHandler,
    )
}
