"""update_project: add issues, pull requests, or draft issues to a project."""

from __future__ import annotations

from safe_outputs.failures import guarded_call
from safe_outputs.github.client_api import PROJECT_URL_RE
from safe_outputs.handlers.base import BaseHandler
from safe_outputs.models.intents import UpdateProjectIntent
from safe_outputs.models.results import HandlerResult
from safe_outputs.sanitize import sanitize_title
from safe_outputs.temporary_id import (
    DraftItemReference,
    TemporaryIdMap,
    generate_temporary_id,
    is_temporary_id,
    normalize_temporary_id,
    validate_declared_temporary_id,
)


class UpdateProjectHandler(BaseHandler):
    intent_type = "update_project"

    def handle(self, intent: UpdateProjectIntent, id_map: TemporaryIdMap) -> HandlerResult:
        project_ref = (intent.project or self.config.project or "").strip()
        if not project_ref:
            return HandlerResult.failure('Missing required field "project"')
        if self.config.project and project_ref != self.config.project.strip():
            return HandlerResult.failure(f"Project '{project_ref}' is not the configured project")
        if not PROJECT_URL_RE.match(project_ref):
            return HandlerResult.failure(
                f"Invalid project URL: \"{project_ref}\". Expected https://github.com/orgs/<org>/projects/<number> "
                "or https://github.com/users/<user>/projects/<number>"
            )

        content_type = intent.content_type or ("issue" if intent.content_number is not None else "draft_issue")
        if content_type == "draft_issue":
            return self._handle_draft(intent, project_ref, id_map)
        return self._handle_content(intent, project_ref, content_type, id_map)

    def _handle_content(
        self, intent: UpdateProjectIntent, project_ref: str, content_type: str, id_map: TemporaryIdMap
    ) -> HandlerResult:
        if intent.content_number is None:
            return HandlerResult.failure(f'content_type "{content_type}" requires content_number')
        repo = self.resolve_repo(intent)
        if isinstance(repo, HandlerResult):
            return repo
        target = self.resolve_ref(intent.content_number, repo, id_map, "content_number")
        if isinstance(target, HandlerResult):
            return target

        if self.staged:
            return HandlerResult.staged_preview(
                project=project_ref,
                content_type=content_type,
                content_number=target.number,
                repo=target.repo_slug,
                fields=dict(intent.fields),
            )

        project, failure = guarded_call(lambda: self.client.resolve_project(project_ref), describe="resolve_project")
        if failure or project is None:
            return failure or HandlerResult.not_found(f"project {project_ref}")
        if content_type == "pull_request":
            fetch = lambda: self.client.get_pull_request(target.repo_slug, target.number)  # noqa: E731
        else:
            fetch = lambda: self.client.get_issue(target.repo_slug, target.number)  # noqa: E731
        content, failure = guarded_call(fetch, describe=f"get_{content_type}")
        if failure or content is None:
            return failure or HandlerResult.not_found(f"{content_type} #{target.number}")

        item_id, failure = guarded_call(
            lambda: self.client.add_project_item(project["id"], str(content.get("node_id", ""))),
            describe="add_project_item",
        )
        if failure or not item_id:
            return failure or HandlerResult.failure("Project item was not created")
        failure = self._update_fields(project["id"], item_id, intent.fields)
        if failure:
            return failure
        self.log.info("project_item_added", project=project_ref, item_id=item_id, content_number=target.number)
        return HandlerResult.ok(
            project=project_ref,
            item_id=item_id,
            content_type=content_type,
            content_number=target.number,
            content_repo=target.repo_slug,
        )

    def _handle_draft(self, intent: UpdateProjectIntent, project_ref: str, id_map: TemporaryIdMap) -> HandlerResult:
        temporary_id, error = validate_declared_temporary_id(intent.temporary_id)
        if error:
            return HandlerResult.failure(error)

        draft_ref = (intent.draft_issue_id or "").strip()
        existing_item = ""
        if draft_ref:
            if not is_temporary_id(normalize_temporary_id(draft_ref)):
                return HandlerResult.failure(
                    f'Invalid draft_issue_id format: "{draft_ref}". Expected format: aw_ followed by '
                    "3 to 8 alphanumeric characters"
                )
            reference = id_map.get(draft_ref)
            if reference is None:
                self.log.info("intent_deferred", field="draft_issue_id", ref=draft_ref)
                return HandlerResult.defer(f"Temporary ID '{draft_ref}' not found in map")
            if not isinstance(reference, DraftItemReference):
                return HandlerResult.failure(f"draft_issue_id '{draft_ref}' does not refer to a project draft item")
            existing_item = reference.draft_item_id
            temporary_id = temporary_id or normalize_temporary_id(draft_ref)

        title = sanitize_title(intent.draft_title)
        if not existing_item and not title:
            return HandlerResult.failure(
                'Invalid draft_title. When content_type is "draft_issue" and draft_issue_id is not '
                "provided, draft_title is required and must be a non-empty string."
            )
        temporary_id = temporary_id or generate_temporary_id()
        failure = self.check_limits(intent.draft_body or "")
        if failure:
            return failure
        draft_body = self.prepare_text(intent.draft_body, self.default_repo(), id_map)
        failure = self.check_limits(draft_body)
        if failure:
            return failure

        if self.staged:
            return HandlerResult.staged_preview(
                project=project_ref,
                content_type="draft_issue",
                draft_title=title,
                temporary_id=temporary_id,
                fields=dict(intent.fields),
            )

        project, failure = guarded_call(lambda: self.client.resolve_project(project_ref), describe="resolve_project")
        if failure or project is None:
            return failure or HandlerResult.not_found(f"project {project_ref}")

        item_id = existing_item
        if not item_id:
            item_id, failure = guarded_call(
                lambda: self.client.add_project_draft_issue(project["id"], title, draft_body),
                describe="add_project_draft_issue",
            )
            if failure or not item_id:
                return failure or HandlerResult.failure("Draft issue was not created")
            self.log.info("project_draft_created", project=project_ref, item_id=item_id, temporary_id=temporary_id)

        failure = self._update_fields(project["id"], item_id, intent.fields)
        if failure:
            return failure
        return HandlerResult.ok(
            project=project_ref,
            content_type="draft_issue",
            temporary_id=temporary_id,
            draft_item_id=item_id,
        )

    def _update_fields(self, project_id: str, item_id: str, fields: dict[str, str]) -> HandlerResult | None:
        for name, value in fields.items():
            _, failure = guarded_call(
                lambda: self.client.update_project_item_field(project_id, item_id, name, str(value)),
                describe="update_project_item_field",
            )
            if failure:
                return failure
        return None
