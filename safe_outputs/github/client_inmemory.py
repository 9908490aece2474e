"""In-memory GitHub client for deterministic tests and staged demos."""

from __future__ import annotations

from typing import Any, Iterable

from safe_outputs.errors import PlatformError


class InMemoryGitHubClient:
    """In-memory client that records every call and supports injected failures."""

    def __init__(self) -> None:
        self.issues: dict[tuple[str, int], dict[str, Any]] = {}
        self.pull_requests: dict[tuple[str, int], dict[str, Any]] = {}
        self.discussions: dict[tuple[str, int], dict[str, Any]] = {}
        self.comments: dict[tuple[str, int], list[dict[str, Any]]] = {}
        self.milestones: dict[str, list[dict[str, Any]]] = {}
        self.projects: dict[str, dict[str, Any]] = {}
        self.parents: dict[tuple[str, int], tuple[str, int]] = {}
        self.reviews: list[dict[str, Any]] = []
        self.minimized: dict[str, str] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._failures: dict[str, list[PlatformError]] = {}
        self._next_id = 1000

    # Seeding helpers

    def add_issue(
        self,
        repo: str,
        number: int,
        title: str = "",
        body: str = "",
        labels: Iterable[str] = (),
        state: str = "open",
    ) -> dict[str, Any]:
        issue = {
            "number": number,
            "title": title,
            "body": body,
            "state": state,
            "labels": [{"name": label} for label in labels],
            "node_id": f"I_{repo}#{number}",
            "html_url": f"https://github.com/{repo}/issues/{number}",
        }
        self.issues[(repo, number)] = issue
        return issue

    def add_pull_request(
        self,
        repo: str,
        number: int,
        title: str = "",
        head_sha: str = "deadbeef",
        labels: Iterable[str] = (),
        state: str = "open",
    ) -> dict[str, Any]:
        pull = {
            "number": number,
            "title": title,
            "state": state,
            "labels": [{"name": label} for label in labels],
            "head": {"sha": head_sha},
            "node_id": f"PR_{repo}#{number}",
            "html_url": f"https://github.com/{repo}/pull/{number}",
        }
        self.pull_requests[(repo, number)] = pull
        return pull

    def add_discussion(self, repo: str, number: int) -> dict[str, Any]:
        discussion = {"id": f"D_{repo}#{number}", "number": number, "comments": []}
        self.discussions[(repo, number)] = discussion
        return discussion

    def add_milestone(self, repo: str, number: int, title: str) -> dict[str, Any]:
        milestone = {"number": number, "title": title, "state": "open"}
        self.milestones.setdefault(repo, []).append(milestone)
        return milestone

    def add_project(self, url: str, fields: dict[str, list[str] | None] | None = None) -> dict[str, Any]:
        project = {
            "id": f"PVT_{len(self.projects) + 1}",
            "title": url.rsplit("/", 1)[-1],
            "url": url,
            "fields": dict(fields or {}),
            "items": {},
        }
        self.projects[url] = project
        return project

    def fail_next(self, method: str, error: PlatformError) -> None:
        """Queue an error raised by the next call to ``method``."""
        self._failures.setdefault(method, []).append(error)

    def calls_for(self, method: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    # PlatformClient

    def create_issue(self, repo: str, payload: dict[str, Any]) -> dict[str, Any]:
        self._record("create_issue", repo=repo, payload=payload)
        number = self._next_number(repo)
        return self.add_issue(
            repo,
            number,
            title=str(payload.get("title", "")),
            body=str(payload.get("body", "")),
            labels=payload.get("labels") or (),
        )

    def get_issue(self, repo: str, number: int) -> dict[str, Any]:
        self._record("get_issue", repo=repo, number=number)
        if (repo, number) in self.issues:
            return dict(self.issues[(repo, number)])
        if (repo, number) in self.pull_requests:
            return {**self.pull_requests[(repo, number)], "pull_request": {}}
        raise _not_found(f"Issue #{number} not found in {repo}")

    def update_issue(self, repo: str, number: int, payload: dict[str, Any]) -> dict[str, Any]:
        self._record("update_issue", repo=repo, number=number, payload=payload)
        issue = self.issues.get((repo, number)) or self.pull_requests.get((repo, number))
        if issue is None:
            raise _not_found(f"Issue #{number} not found in {repo}")
        issue.update(payload)
        return dict(issue)

    def create_comment(self, repo: str, number: int, body: str) -> dict[str, Any]:
        self._record("create_comment", repo=repo, number=number, body=body)
        if (repo, number) not in self.issues and (repo, number) not in self.pull_requests:
            raise _not_found(f"Issue #{number} not found in {repo}")
        comment_id = self._new_id()
        comment = {
            "id": comment_id,
            "node_id": f"IC_{comment_id}",
            "body": body,
            "html_url": f"https://github.com/{repo}/issues/{number}#issuecomment-{comment_id}",
        }
        self.comments.setdefault((repo, number), []).append(comment)
        return dict(comment)

    def list_comments(self, repo: str, number: int) -> list[dict[str, Any]]:
        self._record("list_comments", repo=repo, number=number)
        return [dict(comment) for comment in self.comments.get((repo, number), [])]

    def get_pull_request(self, repo: str, number: int) -> dict[str, Any]:
        self._record("get_pull_request", repo=repo, number=number)
        if (repo, number) not in self.pull_requests:
            raise _not_found(f"Pull request #{number} not found in {repo}")
        return dict(self.pull_requests[(repo, number)])

    def update_pull_request(self, repo: str, number: int, payload: dict[str, Any]) -> dict[str, Any]:
        self._record("update_pull_request", repo=repo, number=number, payload=payload)
        if (repo, number) not in self.pull_requests:
            raise _not_found(f"Pull request #{number} not found in {repo}")
        self.pull_requests[(repo, number)].update(payload)
        return dict(self.pull_requests[(repo, number)])

    def request_reviewers(self, repo: str, number: int, reviewers: list[str]) -> dict[str, Any]:
        self._record("request_reviewers", repo=repo, number=number, reviewers=list(reviewers))
        if (repo, number) not in self.pull_requests:
            raise _not_found(f"Pull request #{number} not found in {repo}")
        pull = self.pull_requests[(repo, number)]
        requested = pull.setdefault("requested_reviewers", [])
        requested.extend({"login": login} for login in reviewers)
        return dict(pull)

    def create_pull_request_review(
        self, repo: str, number: int, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self._record("create_pull_request_review", repo=repo, number=number, payload=payload)
        if (repo, number) not in self.pull_requests:
            raise _not_found(f"Pull request #{number} not found in {repo}")
        review_id = self._new_id()
        review = {
            "id": review_id,
            "repo": repo,
            "number": number,
            "html_url": f"https://github.com/{repo}/pull/{number}#pullrequestreview-{review_id}",
            **payload,
        }
        self.reviews.append(review)
        return dict(review)

    def list_milestones(self, repo: str) -> list[dict[str, Any]]:
        self._record("list_milestones", repo=repo)
        return [dict(milestone) for milestone in self.milestones.get(repo, [])]

    def get_discussion_id(self, repo: str, number: int) -> str | None:
        self._record("get_discussion_id", repo=repo, number=number)
        discussion = self.discussions.get((repo, number))
        return discussion["id"] if discussion else None

    def add_discussion_comment(self, discussion_id: str, body: str) -> dict[str, Any]:
        self._record("add_discussion_comment", discussion_id=discussion_id, body=body)
        for (repo, number), discussion in self.discussions.items():
            if discussion["id"] == discussion_id:
                comment_id = self._new_id()
                comment = {
                    "id": f"DC_{comment_id}",
                    "node_id": f"DC_{comment_id}",
                    "body": body,
                    "html_url": f"https://github.com/{repo}/discussions/{number}#discussioncomment-{comment_id}",
                }
                discussion["comments"].append(comment)
                return dict(comment)
        raise _not_found(f"Discussion {discussion_id} not found")

    def list_discussion_comments(self, repo: str, number: int) -> list[dict[str, Any]]:
        self._record("list_discussion_comments", repo=repo, number=number)
        discussion = self.discussions.get((repo, number))
        if discussion is None:
            raise _not_found(f"Discussion #{number} not found in {repo}")
        return [dict(comment) for comment in discussion["comments"]]

    def get_issue_parent(self, repo: str, number: int) -> dict[str, Any] | None:
        self._record("get_issue_parent", repo=repo, number=number)
        parent = self.parents.get((repo, number))
        if parent is None:
            return None
        return {"repo": parent[0], "number": parent[1]}

    def add_sub_issue(self, repo: str, parent_number: int, sub_number: int) -> dict[str, Any]:
        self._record("add_sub_issue", repo=repo, parent_number=parent_number, sub_number=sub_number)
        for number in (parent_number, sub_number):
            if (repo, number) not in self.issues:
                raise _not_found(f"Issue #{number} not found in {repo}")
        self.parents[(repo, sub_number)] = (repo, parent_number)
        return {"issue": {"number": parent_number}, "subIssue": {"number": sub_number}}

    def minimize_comment(self, node_id: str, reason: str) -> dict[str, Any]:
        self._record("minimize_comment", node_id=node_id, reason=reason)
        self.minimized[node_id] = reason
        return {"node_id": node_id, "minimized": True}

    def resolve_project(self, project: str) -> dict[str, Any]:
        self._record("resolve_project", project=project)
        found = self.projects.get(project.strip())
        if found is None:
            raise _not_found(f"Project not found: {project}")
        return {"id": found["id"], "title": found["title"], "url": found["url"]}

    def add_project_item(self, project_id: str, content_node_id: str) -> str:
        self._record("add_project_item", project_id=project_id, content_node_id=content_node_id)
        project = self._project_by_id(project_id)
        item_id = f"PVTI_{self._new_id()}"
        project["items"][item_id] = {"content": content_node_id, "fields": {}}
        return item_id

    def add_project_draft_issue(self, project_id: str, title: str, body: str) -> str:
        self._record("add_project_draft_issue", project_id=project_id, title=title, body=body)
        project = self._project_by_id(project_id)
        item_id = f"PVTI_{self._new_id()}"
        project["items"][item_id] = {"draft": {"title": title, "body": body}, "fields": {}}
        return item_id

    def update_project_item_field(
        self, project_id: str, item_id: str, field_name: str, value: str
    ) -> dict[str, Any]:
        self._record(
            "update_project_item_field",
            project_id=project_id,
            item_id=item_id,
            field_name=field_name,
            value=value,
        )
        project = self._project_by_id(project_id)
        if item_id not in project["items"]:
            raise _not_found(f"Project item {item_id} not found")
        fields = {name.lower(): (name, options) for name, options in project["fields"].items()}
        if field_name.lower() not in fields:
            raise PlatformError(f"Project field '{field_name}' does not exist", reason_code="github_field_missing")
        name, options = fields[field_name.lower()]
        if options is not None and value.lower() not in {option.lower() for option in options}:
            raise PlatformError(
                f"Option '{value}' does not exist for project field '{field_name}'",
                reason_code="github_field_option_missing",
            )
        project["items"][item_id]["fields"][name] = value
        return {"item_id": item_id, "field": name, "value": value}

    def _project_by_id(self, project_id: str) -> dict[str, Any]:
        for project in self.projects.values():
            if project["id"] == project_id:
                return project
        raise _not_found(f"Project {project_id} not found")

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append((method, kwargs))
        queued = self._failures.get(method)
        if queued:
            raise queued.pop(0)

    def _next_number(self, repo: str) -> int:
        used = [number for (issue_repo, number) in self.issues if issue_repo == repo]
        used += [number for (pr_repo, number) in self.pull_requests if pr_repo == repo]
        return max(used, default=0) + 1

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id


def _not_found(message: str) -> PlatformError:
    return PlatformError(f"Not Found: {message}", status=404, reason_code="github_404")
