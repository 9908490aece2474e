"""link_sub_issue: attach one issue as a sub-issue of another."""

from __future__ import annotations

from safe_outputs.failures import guarded_call
from safe_outputs.handlers.base import BaseHandler, filter_mismatch
from safe_outputs.models.intents import LinkSubIssueIntent
from safe_outputs.models.results import HandlerResult
from safe_outputs.temporary_id import TemporaryIdMap, resolve


class LinkSubIssueHandler(BaseHandler):
    intent_type = "link_sub_issue"

    def handle(self, intent: LinkSubIssueIntent, id_map: TemporaryIdMap) -> HandlerResult:
        owner, _, name = self.default_repo().partition("/")
        parent = resolve(intent.parent_issue_number, id_map, owner, name)
        sub = resolve(intent.sub_issue_number, id_map, owner, name)
        refs = {
            "parent_issue_number": intent.parent_issue_number,
            "sub_issue_number": intent.sub_issue_number,
        }

        unresolved = []
        if parent.is_deferred:
            unresolved.append(f"parent: {intent.parent_issue_number}")
        if sub.is_deferred:
            unresolved.append(f"sub: {intent.sub_issue_number}")
        if unresolved:
            self.log.info("intent_deferred", unresolved=unresolved)
            return HandlerResult.defer(f"Unresolved temporary IDs: {', '.join(unresolved)}", **refs)
        if parent.resolved is None:
            return HandlerResult.failure(parent.error_message, **refs)
        if sub.resolved is None:
            return HandlerResult.failure(sub.error_message, **refs)

        parent_target, sub_target = parent.resolved, sub.resolved
        if parent_target.repo_slug != sub_target.repo_slug:
            return HandlerResult.failure(
                "Parent and sub-issue must be in the same repository for link_sub_issue "
                f"(got {parent_target.repo_slug} and {sub_target.repo_slug})",
                **refs,
            )
        repo = parent_target.repo_slug
        numbers = {
            "parent_issue_number": parent_target.number,
            "sub_issue_number": sub_target.number,
        }

        parent_issue, failure = guarded_call(
            lambda: self.client.get_issue(repo, parent_target.number), describe="get_parent_issue"
        )
        if failure or parent_issue is None:
            return failure or HandlerResult.not_found(f"parent issue #{parent_target.number} in {repo}")
        mismatch = filter_mismatch(
            parent_issue,
            self.config.parent_required_labels,
            self.config.parent_title_prefix,
            "Parent issue",
        )
        if mismatch:
            return HandlerResult.failure(mismatch, **numbers)

        sub_issue, failure = guarded_call(
            lambda: self.client.get_issue(repo, sub_target.number), describe="get_sub_issue"
        )
        if failure or sub_issue is None:
            return failure or HandlerResult.not_found(f"sub-issue #{sub_target.number} in {repo}")

        existing, failure = guarded_call(
            lambda: self.client.get_issue_parent(repo, sub_target.number), describe="get_issue_parent"
        )
        if failure is not None:
            self.log.warning("parent_check_unavailable", repo=repo, number=sub_target.number)
        elif existing:
            return HandlerResult.failure(
                f"Sub-issue is already a sub-issue of #{existing.get('number')}", **numbers
            )

        mismatch = filter_mismatch(
            sub_issue,
            self.config.sub_required_labels,
            self.config.sub_title_prefix,
            "Sub-issue",
        )
        if mismatch:
            return HandlerResult.failure(mismatch, **numbers)

        if self.staged:
            return HandlerResult.staged_preview(repo=repo, **numbers)

        _, failure = guarded_call(
            lambda: self.client.add_sub_issue(repo, parent_target.number, sub_target.number),
            describe="add_sub_issue",
        )
        if failure:
            return failure.with_payload(**numbers)
        self.log.info("sub_issue_linked", repo=repo, **numbers)
        return HandlerResult.ok(repo=repo, **numbers)
