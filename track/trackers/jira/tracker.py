"""Jira Cloud backend over REST API v3."""
from typing import Any

from loguru import logger

from track.core.constants import DEFAULT_MAX_RESULTS, DEFAULT_TIMEOUT
from track.core.exceptions import (
    InvalidInputError,
    IssueNotFoundError,
    ProjectNotFoundError,
)
from track.core.pagination import fetch_all_pages
from track.core.types import (
    Comment,
    CreateIssue,
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
from track.trackers.jira import convert
from track.trackers.transport import HttpTransport


PAGE_SIZE = 50
MAX_SEARCH_RESULTS = 100
LABEL_PAGE_SIZE = 1000


class JiraTracker(IssueTracker):
    """Fetches and edits issues in Jira Cloud.

    Args:
        url: Site URL, e.g. https://example.atlassian.net.
        email: Account email used for basic auth.
        token: API token paired with the email.
    """

    name = "jira"

    def __init__(
        self,
        url: str,
        email: str,
        token: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self.max_results = max_results
        self.transport = HttpTransport(
            f"{url.rstrip('/')}/rest/api/3",
            auth=(email, token),
            timeout=timeout,
            error_message=convert.error_message,
        )

    def _fetch_issue(self, issue_id: str) -> dict[str, Any]:
        return self.transport.get(
            f"/issue/{issue_id}",
            params={"fields": ",".join(convert.ISSUE_FIELDS)},
            not_found=IssueNotFoundError(issue_id),
        )

    def get_issue(self, issue_id: str) -> Issue:
        return convert.issue_from_jira(self._fetch_issue(issue_id))

    def search_issues(self, query: str, limit: int, skip: int) -> SearchResult[Issue]:
        data = self.transport.get(
            "/search/jql",
            params={
                "jql": query,
                "startAt": skip,
                "maxResults": max(1, min(limit, MAX_SEARCH_RESULTS)),
                "fields": ",".join(convert.ISSUE_FIELDS),
            },
        )
        items = [convert.issue_from_jira(issue) for issue in data.get("issues", [])]
        return SearchResult(items=items[:limit], total=data.get("total"))

    def get_issue_count(self, query: str) -> int | None:
        data = self.transport.post("/search/approximate-count", json={"jql": query})
        return (data or {}).get("count")

    def create_issue(self, issue: CreateIssue) -> Issue:
        """Create, then re-fetch; Jira answers a create with only ``{id, key}``."""
        created = self.transport.post(
            "/issue",
            json=convert.create_payload(issue),
            not_found=ProjectNotFoundError(issue.project_id),
        )
        key = created["key"]
        state = issue.requested_state()
        if state:
            self._transition(key, state)
        return self.get_issue(key)

    def update_issue(self, issue_id: str, update: UpdateIssue) -> Issue:
        payload = convert.update_payload(update)
        if payload:
            self.transport.put(f"/issue/{issue_id}", json=payload, not_found=IssueNotFoundError(issue_id))
        state = update.requested_state()
        if state:
            self._transition(issue_id, state)
        return self.get_issue(issue_id)

    def _transition(self, issue_id: str, state: str) -> None:
        """Move an issue into ``state`` through the workflow transitions API.

        Raises:
            InvalidInputError: If no available transition leads to the state.
        """
        data = self.transport.get(f"/issue/{issue_id}/transitions", not_found=IssueNotFoundError(issue_id))
        transitions = data.get("transitions", [])
        transition = convert.pick_transition(transitions, state)
        if transition is None:
            available = ", ".join((t.get("to") or {}).get("name", "") for t in transitions)
            raise InvalidInputError(
                "state", f"no transition to '{state}' (available: {available or 'none'})"
            )
        logger.debug("Transitioning issue", issue_id=issue_id, transition=transition.get("name"))
        self.transport.post(
            f"/issue/{issue_id}/transitions",
            json={"transition": {"id": transition["id"]}},
            not_found=IssueNotFoundError(issue_id),
        )

    def delete_issue(self, issue_id: str) -> None:
        self.transport.delete(f"/issue/{issue_id}", not_found=IssueNotFoundError(issue_id))

    def list_projects(self) -> list[Project]:
        def fetch_page(skip: int, limit: int) -> list[dict[str, Any]]:
            data = self.transport.get("/project/search", params={"startAt": skip, "maxResults": limit})
            return data.get("values", [])

        return [convert.project_from_jira(p) for p in fetch_all_pages(fetch_page, PAGE_SIZE, self.max_results)]

    def get_project(self, project_id: str) -> Project:
        data = self.transport.get(f"/project/{project_id}", not_found=ProjectNotFoundError(project_id))
        return convert.project_from_jira(data)

    def resolve_project_id(self, identifier: str) -> str:
        """Numeric ids pass through; a project key is looked up by GET /project/{key}."""
        if identifier.isdigit():
            return identifier
        return self.get_project(identifier).id

    def get_project_custom_fields(self, project_id: str) -> list[ProjectCustomField]:
        return convert.standard_fields()

    def list_project_users(self, project_id: str) -> list[User]:
        project = project_id if not project_id.isdigit() else self.get_project(project_id).short_name
        data = self.transport.get("/user/assignable/search", params={"project": project})
        return [user for user in map(convert.user_from_jira, data) if user is not None]

    def list_tags(self) -> list[Tag]:
        """Labels exist only by use in Jira, so the tag list is the instance's label list."""
        def fetch_page(skip: int, limit: int) -> list[str]:
            data = self.transport.get("/label", params={"startAt": skip, "maxResults": limit})
            return data.get("values", [])

        return convert.tags_from_labels(fetch_all_pages(fetch_page, LABEL_PAGE_SIZE, self.max_results))

    def list_link_types(self) -> list[IssueLinkType]:
        data = self.transport.get("/issueLinkType")
        return [convert.link_type_from_jira(t) for t in data.get("issueLinkTypes", [])]

    def get_issue_links(self, issue_id: str) -> list[IssueLink]:
        fields = self._fetch_issue(issue_id).get("fields") or {}
        return [convert.link_from_jira(link) for link in fields.get("issuelinks") or []]

    def link_issues(self, source: str, target: str, link_type: str, direction: str) -> None:
        type_name = convert.jira_link_type(link_type)
        if type_name == "Subtask":
            self.link_subtask(source, target)
            return
        if direction.upper() == LinkDirection.INWARD:
            source, target = target, source
        self.transport.post(
            "/issueLink",
            json={
                "type": {"name": type_name},
                "inwardIssue": {"key": target},
                "outwardIssue": {"key": source},
            },
        )

    def link_subtask(self, child: str, parent: str) -> None:
        self.transport.put(
            f"/issue/{child}",
            json={"fields": {"parent": {"key": parent}}},
            not_found=IssueNotFoundError(child),
        )

    def add_comment(self, issue_id: str, text: str) -> Comment:
        data = self.transport.post(
            f"/issue/{issue_id}/comment",
            json={"body": convert.text_to_adf(text)},
            not_found=IssueNotFoundError(issue_id),
        )
        return convert.comment_from_jira(data)

    def get_comments(self, issue_id: str) -> list[Comment]:
        data = self.transport.get(
            f"/issue/{issue_id}/comment",
            params={"maxResults": 100},
            not_found=IssueNotFoundError(issue_id),
        )
        return [convert.comment_from_jira(comment) for comment in data.get("comments", [])]
