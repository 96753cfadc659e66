"""GitLab Issues backend over the v4 REST API."""
from typing import Any
from urllib.parse import quote

from loguru import logger

from track.core.constants import DEFAULT_MAX_RESULTS, DEFAULT_TIMEOUT
from track.core.exceptions import (
    ConfigurationError,
    InvalidInputError,
    IssueNotFoundError,
    NotFoundError,
    ProjectNotFoundError,
    UnsupportedError,
)
from track.core.pagination import fetch_all_pages, fetch_window
from track.core.types import (
    Comment,
    CreateIssue,
    CreateProject,
    CreateTag,
    Issue,
    IssueLink,
    IssueLinkType,
    LinkDirection,
    Project,
    ProjectCustomField,
    SearchResult,
    Tag,
    UpdateIssue,
    User,
)
from track.trackers.base import IssueTracker
from track.trackers.gitlab import convert
from track.trackers.transport import HttpTransport


MAX_PER_PAGE = 100


def api_url(url: str) -> str:
    """Append ``/api/v4`` to a GitLab host URL unless it is already there."""
    url = url.rstrip("/")
    return url if url.endswith("/api/v4") else f"{url}/api/v4"


def parse_iid(issue_id: str) -> int:
    stripped = issue_id.strip().rsplit("#", 1)[-1]
    if not stripped.isdigit():
        raise InvalidInputError(
            "issue_id", f"'{issue_id}' must be a number, optionally prefixed with #"
        )
    return int(stripped)


class GitlabTracker(IssueTracker):
    """Issues, labels, links and notes of one GitLab project.

    Args:
        url: GitLab host, e.g. https://gitlab.com.
        token: Personal access token sent as PRIVATE-TOKEN.
        project_id: Numeric id or namespaced path of the default project.
    """

    name = "gitlab"

    def __init__(
        self,
        url: str,
        token: str,
        project_id: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self.project_id = project_id
        self.max_results = max_results
        self.transport = HttpTransport(api_url(url), headers={"PRIVATE-TOKEN": token}, timeout=timeout)

    def _project_path(self, path: str = "", project_id: str | None = None) -> str:
        project = project_id or self.project_id
        if not project:
            raise ConfigurationError("GitLab project is not configured (set project_id or use -p)")
        return f"/projects/{quote(str(project), safe='')}{path}"

    def get_issue(self, issue_id: str) -> Issue:
        data = self.transport.get(
            self._project_path(f"/issues/{parse_iid(issue_id)}"),
            not_found=IssueNotFoundError(issue_id),
        )
        return convert.issue_from_gitlab(data, str(self.project_id))

    def _list_issues(self, params: dict[str, Any]) -> tuple[list[dict[str, Any]], int | None]:
        response = self.transport.request("GET", self._project_path("/issues"), params=params)
        total = response.headers.get("x-total")
        return self.transport.decode(response) or [], int(total) if total and total.isdigit() else None

    def search_issues(self, query: str, limit: int, skip: int) -> SearchResult[Issue]:
        total: int | None = None

        def fetch_page(page: int, per_page: int) -> list[dict[str, Any]]:
            nonlocal total
            issues, total = self._list_issues({**convert.search_params(query), "per_page": per_page, "page": page})
            return issues

        items = [
            convert.issue_from_gitlab(i, str(self.project_id))
            for i in fetch_window(fetch_page, skip, limit, MAX_PER_PAGE)
        ]
        return SearchResult(items=items, total=total)

    def get_issue_count(self, query: str) -> int | None:
        _, total = self._list_issues({**convert.search_params(query), "per_page": 1, "page": 1})
        return total

    def _user_ids(self, logins: list[str] | None) -> list[int] | None:
        if logins is None:
            return None
        ids = []
        for login in logins:
            matches = self.transport.get("/users", params={"username": login})
            if not matches:
                raise InvalidInputError("assignee", f"unknown GitLab user '{login}'")
            ids.append(matches[0]["id"])
        return ids

    def create_issue(self, issue: CreateIssue) -> Issue:
        payload = convert.create_payload(issue, self._user_ids(issue.requested_assignees()))
        data = self.transport.post(
            self._project_path("/issues", issue.project_id),
            json=payload,
            not_found=ProjectNotFoundError(issue.project_id),
        )
        return convert.issue_from_gitlab(data, issue.project_id)

    def update_issue(self, issue_id: str, update: UpdateIssue) -> Issue:
        payload = convert.update_payload(update, self._user_ids(update.requested_assignees()))
        data = self.transport.put(
            self._project_path(f"/issues/{parse_iid(issue_id)}"),
            json=payload,
            not_found=IssueNotFoundError(issue_id),
        )
        return convert.issue_from_gitlab(data, str(self.project_id))

    def delete_issue(self, issue_id: str) -> None:
        self.transport.delete(
            self._project_path(f"/issues/{parse_iid(issue_id)}"),
            not_found=IssueNotFoundError(issue_id),
        )

    def list_projects(self) -> list[Project]:
        def fetch_page(skip: int, limit: int) -> list[dict[str, Any]]:
            return self.transport.get(
                "/projects",
                params={
                    "membership": "true",
                    "per_page": MAX_PER_PAGE,
                    "page": skip // MAX_PER_PAGE + 1,
                    "order_by": "updated_at",
                },
            )

        projects = fetch_all_pages(fetch_page, MAX_PER_PAGE, self.max_results)
        return [convert.project_from_gitlab(p) for p in projects]

    def get_project(self, project_id: str) -> Project:
        data = self.transport.get(
            f"/projects/{quote(project_id, safe='')}",
            not_found=ProjectNotFoundError(project_id),
        )
        return convert.project_from_gitlab(data)

    def create_project(self, project: CreateProject) -> Project:
        payload: dict[str, Any] = {"name": project.name, "path": project.short_name}
        if project.description is not None:
            payload["description"] = project.description
        return convert.project_from_gitlab(self.transport.post("/projects", json=payload))

    def resolve_project_id(self, identifier: str) -> str:
        """Numeric ids pass through; a namespaced path is looked up directly."""
        if identifier.isdigit():
            return identifier
        return self.get_project(identifier).id

    def get_project_custom_fields(self, project_id: str) -> list[ProjectCustomField]:
        return convert.standard_fields()

    def list_project_users(self, project_id: str) -> list[User]:
        data = self.transport.get(
            self._project_path("/members/all", project_id),
            params={"per_page": MAX_PER_PAGE},
            not_found=ProjectNotFoundError(project_id),
        )
        return [user for user in map(convert.user_from_gitlab, data) if user is not None]

    def _labels(self) -> list[dict[str, Any]]:
        return self.transport.get(
            self._project_path("/labels"),
            params={"per_page": MAX_PER_PAGE, "with_counts": "true"},
        )

    def _label_id(self, name: str) -> int:
        for label in self._labels():
            if label.get("name") == name:
                return label["id"]
        raise NotFoundError(f"tag '{name}'")

    def list_tags(self) -> list[Tag]:
        return [convert.tag_from_label(label) for label in self._labels()]

    def create_tag(self, tag: CreateTag) -> Tag:
        data = self.transport.post(self._project_path("/labels"), json=convert.label_payload(tag))
        return convert.tag_from_label(data)

    def update_tag(self, current_name: str, tag: CreateTag) -> Tag:
        label_id = self._label_id(current_name)
        data = self.transport.put(
            self._project_path(f"/labels/{label_id}"),
            json=convert.label_update_payload(tag),
        )
        return convert.tag_from_label(data)

    def delete_tag(self, name: str) -> None:
        label_id = self._label_id(name)
        self.transport.delete(self._project_path(f"/labels/{label_id}"))

    def list_link_types(self) -> list[IssueLinkType]:
        return list(convert.LINK_TYPES.values())

    def get_issue_links(self, issue_id: str) -> list[IssueLink]:
        data = self.transport.get(
            self._project_path(f"/issues/{parse_iid(issue_id)}/links"),
            not_found=IssueNotFoundError(issue_id),
        )
        return [convert.link_from_gitlab(link) for link in data]

    def link_issues(self, source: str, target: str, link_type: str, direction: str) -> None:
        """Link within the configured project.

        GitLab link types carry their own direction, so an INWARD link posts
        the inverse type from the source issue.
        """
        kind = convert.gitlab_link_type(link_type)
        if direction.upper() == LinkDirection.INWARD:
            kind = convert.INVERSE_LINK_TYPES[kind]
        logger.debug("Linking issues", source=source, target=target, link_type=kind)
        self.transport.post(
            self._project_path(f"/issues/{parse_iid(source)}/links"),
            json={
                "target_project_id": str(self.project_id),
                "target_issue_iid": parse_iid(target),
                "link_type": kind,
            },
            not_found=IssueNotFoundError(source),
        )

    def link_subtask(self, child: str, parent: str) -> None:
        raise UnsupportedError("link_subtask")

    def add_comment(self, issue_id: str, text: str) -> Comment:
        data = self.transport.post(
            self._project_path(f"/issues/{parse_iid(issue_id)}/notes"),
            json={"body": text},
            not_found=IssueNotFoundError(issue_id),
        )
        return convert.comment_from_note(data)

    def get_comments(self, issue_id: str) -> list[Comment]:
        """Notes on the issue, without the system notes GitLab generates for events."""
        data = self.transport.get(
            self._project_path(f"/issues/{parse_iid(issue_id)}/notes"),
            params={"per_page": MAX_PER_PAGE, "sort": "asc"},
            not_found=IssueNotFoundError(issue_id),
        )
        comments = [convert.comment_from_note(note) for note in data]
        return [comment for comment in comments if not comment.is_system]
