"""GitHub REST + GraphQL client implementation."""

from __future__ import annotations

import re
from typing import Any

import requests
import structlog

from safe_outputs.errors import PlatformError
from safe_outputs.github.auth import GitHubAuth, TokenScope

logger = structlog.get_logger(__name__)

PROJECT_URL_RE = re.compile(
    r"^https://github\.com/(?P<scope>orgs|users)/(?P<owner>[A-Za-z0-9_.-]+)/projects/(?P<number>\d+)(?:[/?#].*)?$"
)

MINIMIZE_CLASSIFIERS = {"spam", "abuse", "off_topic", "outdated", "duplicate", "resolved"}

_DISCUSSION_ID_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    discussion(number: $number) { id }
  }
}
"""

_DISCUSSION_COMMENTS_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    discussion(number: $number) {
      comments(first: 100) { nodes { id body isMinimized } }
    }
  }
}
"""

_ISSUE_PARENT_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) {
      id
      parent { number repository { nameWithOwner } }
    }
  }
}
"""

_ISSUE_NODE_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) { id }
  }
}
"""

_PROJECT_QUERY = """
query($owner: String!, $number: Int!) {
  %s(login: $owner) {
    projectV2(number: $number) { id title number }
  }
}
"""

_PROJECT_FIELDS_QUERY = """
query($projectId: ID!) {
  node(id: $projectId) {
    ... on ProjectV2 {
      fields(first: 50) {
        nodes {
          ... on ProjectV2FieldCommon { id name dataType }
          ... on ProjectV2SingleSelectField { id name options { id name } }
        }
      }
    }
  }
}
"""


class GitHubAPIClient:
    def __init__(
        self,
        auth: GitHubAuth | None = None,
        base_url: str = "https://api.github.com",
        session: requests.Session | None = None,
        timeout_s: float = 15,
    ) -> None:
        self.auth = auth or GitHubAuth(read_token=None, write_token=None)
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout_s = timeout_s

    def create_issue(self, repo: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", f"/repos/{repo}/issues", token=self.auth.write_token, json=payload)

    def get_issue(self, repo: str, number: int) -> dict[str, Any]:
        return self._request("GET", f"/repos/{repo}/issues/{number}", token=self.auth.read_token)

    def update_issue(self, repo: str, number: int, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request(
            "PATCH", f"/repos/{repo}/issues/{number}", token=self.auth.write_token, json=payload
        )

    def create_comment(self, repo: str, number: int, body: str) -> dict[str, Any]:
        return self._request(
            "POST",
            f"/repos/{repo}/issues/{number}/comments",
            token=self.auth.write_token,
            json={"body": body},
        )

    def list_comments(self, repo: str, number: int) -> list[dict[str, Any]]:
        response = self._request(
            "GET",
            f"/repos/{repo}/issues/{number}/comments",
            token=self.auth.read_token,
            params={"per_page": "100"},
        )
        return response if isinstance(response, list) else []

    def get_pull_request(self, repo: str, number: int) -> dict[str, Any]:
        return self._request("GET", f"/repos/{repo}/pulls/{number}", token=self.auth.read_token)

    def update_pull_request(self, repo: str, number: int, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request(
            "PATCH", f"/repos/{repo}/pulls/{number}", token=self.auth.write_token, json=payload
        )

    def request_reviewers(self, repo: str, number: int, reviewers: list[str]) -> dict[str, Any]:
        return self._request(
            "POST",
            f"/repos/{repo}/pulls/{number}/requested_reviewers",
            token=self.auth.write_token,
            json={"reviewers": reviewers},
        )

    def create_pull_request_review(
        self, repo: str, number: int, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            f"/repos/{repo}/pulls/{number}/reviews",
            token=self.auth.write_token,
            json=payload,
        )

    def list_milestones(self, repo: str) -> list[dict[str, Any]]:
        response = self._request(
            "GET",
            f"/repos/{repo}/milestones",
            token=self.auth.read_token,
            params={"state": "all", "per_page": "100"},
        )
        return response if isinstance(response, list) else []

    def get_discussion_id(self, repo: str, number: int) -> str | None:
        owner, name = _split_repo(repo)
        data = self.graphql(
            _DISCUSSION_ID_QUERY, {"owner": owner, "repo": name, "number": number}, scope="read"
        )
        discussion = ((data.get("repository") or {}).get("discussion")) or {}
        return discussion.get("id") or None

    def add_discussion_comment(self, discussion_id: str, body: str) -> dict[str, Any]:
        data = self.graphql(
            """
            mutation($discussionId: ID!, $body: String!) {
              addDiscussionComment(input: {discussionId: $discussionId, body: $body}) {
                comment { id url }
              }
            }
            """,
            {"discussionId": discussion_id, "body": body},
        )
        comment = (data.get("addDiscussionComment") or {}).get("comment") or {}
        return {"id": comment.get("id"), "node_id": comment.get("id"), "html_url": comment.get("url", "")}

    def list_discussion_comments(self, repo: str, number: int) -> list[dict[str, Any]]:
        owner, name = _split_repo(repo)
        data = self.graphql(
            _DISCUSSION_COMMENTS_QUERY, {"owner": owner, "repo": name, "number": number}, scope="read"
        )
        discussion = ((data.get("repository") or {}).get("discussion")) or {}
        nodes = ((discussion.get("comments") or {}).get("nodes")) or []
        return [
            {"node_id": node.get("id"), "body": node.get("body", ""), "minimized": bool(node.get("isMinimized"))}
            for node in nodes
            if isinstance(node, dict)
        ]

    def get_issue_parent(self, repo: str, number: int) -> dict[str, Any] | None:
        owner, name = _split_repo(repo)
        data = self.graphql(
            _ISSUE_PARENT_QUERY, {"owner": owner, "repo": name, "number": number}, scope="read"
        )
        issue = ((data.get("repository") or {}).get("issue")) or {}
        parent = issue.get("parent")
        if not parent:
            return None
        return {
            "number": parent.get("number"),
            "repo": ((parent.get("repository") or {}).get("nameWithOwner")) or repo,
        }

    def add_sub_issue(self, repo: str, parent_number: int, sub_number: int) -> dict[str, Any]:
        parent_id = self._issue_node_id(repo, parent_number)
        sub_id = self._issue_node_id(repo, sub_number)
        data = self.graphql(
            """
            mutation($issueId: ID!, $subIssueId: ID!) {
              addSubIssue(input: {issueId: $issueId, subIssueId: $subIssueId}) {
                issue { id number }
                subIssue { id number }
              }
            }
            """,
            {"issueId": parent_id, "subIssueId": sub_id},
        )
        return data.get("addSubIssue") or {}

    def minimize_comment(self, node_id: str, reason: str) -> dict[str, Any]:
        classifier = reason.strip().lower()
        if classifier not in MINIMIZE_CLASSIFIERS:
            raise ValueError(f"Unsupported minimize reason: {reason}")
        data = self.graphql(
            """
            mutation($subjectId: ID!, $classifier: ReportedContentClassifiers!) {
              minimizeComment(input: {subjectId: $subjectId, classifier: $classifier}) {
                minimizedComment { isMinimized }
              }
            }
            """,
            {"subjectId": node_id, "classifier": classifier.upper()},
        )
        minimized = (data.get("minimizeComment") or {}).get("minimizedComment") or {}
        return {"node_id": node_id, "minimized": bool(minimized.get("isMinimized"))}

    def resolve_project(self, project: str) -> dict[str, Any]:
        match = PROJECT_URL_RE.match(project.strip())
        if not match:
            raise ValueError(
                "Unsupported project reference. Expected: "
                "https://github.com/orgs/<org>/projects/<number> or "
                "https://github.com/users/<user>/projects/<number>"
            )
        scope = "organization" if match.group("scope") == "orgs" else "user"
        owner = match.group("owner")
        data = self.graphql(
            _PROJECT_QUERY % scope,
            {"owner": owner, "number": int(match.group("number"))},
            scope="project",
        )
        node = ((data.get(scope) or {}).get("projectV2")) or {}
        if not node.get("id"):
            raise PlatformError(f"Project not found: {project}", status=404, reason_code="github_404")
        return {"id": node["id"], "title": node.get("title", ""), "number": node.get("number"), "owner": owner}

    def add_project_item(self, project_id: str, content_node_id: str) -> str:
        data = self.graphql(
            """
            mutation($projectId: ID!, $contentId: ID!) {
              addProjectV2ItemById(input: {projectId: $projectId, contentId: $contentId}) {
                item { id }
              }
            }
            """,
            {"projectId": project_id, "contentId": content_node_id},
            scope="project",
        )
        return str(((data.get("addProjectV2ItemById") or {}).get("item") or {}).get("id", ""))

    def add_project_draft_issue(self, project_id: str, title: str, body: str) -> str:
        data = self.graphql(
            """
            mutation($projectId: ID!, $title: String!, $body: String) {
              addProjectV2DraftIssue(input: {projectId: $projectId, title: $title, body: $body}) {
                projectItem { id }
              }
            }
            """,
            {"projectId": project_id, "title": title, "body": body},
            scope="project",
        )
        return str(((data.get("addProjectV2DraftIssue") or {}).get("projectItem") or {}).get("id", ""))

    def update_project_item_field(
        self, project_id: str, item_id: str, field_name: str, value: str
    ) -> dict[str, Any]:
        data = self.graphql(_PROJECT_FIELDS_QUERY, {"projectId": project_id}, scope="project")
        nodes = ((((data.get("node") or {}).get("fields")) or {}).get("nodes")) or []
        field = next(
            (
                node
                for node in nodes
                if isinstance(node, dict) and str(node.get("name", "")).lower() == field_name.lower()
            ),
            None,
        )
        if field is None:
            raise PlatformError(f"Project field '{field_name}' does not exist", reason_code="github_field_missing")

        field_value: dict[str, Any]
        if "options" in field:
            option = next(
                (opt for opt in field["options"] if str(opt.get("name", "")).lower() == value.lower()),
                None,
            )
            if option is None:
                raise PlatformError(
                    f"Option '{value}' does not exist for project field '{field_name}'",
                    reason_code="github_field_option_missing",
                )
            field_value = {"singleSelectOptionId": option["id"]}
        else:
            field_value = {"text": value}

        self.graphql(
            """
            mutation($projectId: ID!, $itemId: ID!, $fieldId: ID!, $value: ProjectV2FieldValue!) {
              updateProjectV2ItemFieldValue(
                input: {projectId: $projectId, itemId: $itemId, fieldId: $fieldId, value: $value}
              ) { projectV2Item { id } }
            }
            """,
            {"projectId": project_id, "itemId": item_id, "fieldId": field["id"], "value": field_value},
            scope="project",
        )
        return {"item_id": item_id, "field": field["name"], "value": value}

    def graphql(self, query: str, variables: dict[str, Any], scope: TokenScope = "write") -> dict[str, Any]:
        token = self.auth.token_for(scope)
        payload = self._request("POST", "/graphql", token=token, json={"query": query, "variables": variables})
        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            first = errors[0] if isinstance(errors[0], dict) else {}
            message = str(first.get("message", "GraphQL request failed"))
            if first.get("type") == "NOT_FOUND":
                raise PlatformError(message, status=404, reason_code="github_graphql_not_found")
            raise PlatformError(message, reason_code="github_graphql_error")
        return (payload or {}).get("data") or {}

    def _issue_node_id(self, repo: str, number: int) -> str:
        owner, name = _split_repo(repo)
        data = self.graphql(_ISSUE_NODE_QUERY, {"owner": owner, "repo": name, "number": number}, scope="read")
        issue = ((data.get("repository") or {}).get("issue")) or {}
        if not issue.get("id"):
            raise PlatformError(f"Issue #{number} not found in {repo}", status=404, reason_code="github_404")
        return str(issue["id"])

    def _request(
        self,
        method: str,
        path: str,
        token: str | None,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self.session.request(
                method=method,
                url=f"{self.base_url}{path}",
                headers=headers,
                json=json,
                params=params,
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            raise PlatformError(
                f"GitHub API {method} {path} failed: {exc}", reason_code="github_unreachable"
            ) from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.debug("github_api_error", method=method, path=path, status=response.status_code)
            raise PlatformError(
                f"GitHub API {method} {path} failed with {response.status_code}: {message}",
                status=response.status_code,
                reason_code=_reason_code_for_status(response),
            )

        if not response.content:
            return {}
        return response.json()


def _split_repo(repo: str) -> tuple[str, str]:
    owner, _, name = repo.partition("/")
    if not owner or not name:
        raise ValueError(f"Unsupported repo slug: {repo}")
    return owner, name


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return ""
    if isinstance(payload, dict):
        return str(payload.get("message", ""))
    return ""


def _looks_like_rate_limit(response: requests.Response) -> bool:
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    return "rate limit" in _error_message(response).lower()


def _reason_code_for_status(response: requests.Response) -> str:
    if _looks_like_rate_limit(response):
        return "github_rate_limited"
    return f"github_{response.status_code}"
