"""GitHub Issues backend over the REST API."""
import re
from typing import Any
from urllib.parse import quote

from loguru import logger

from track.core.constants import DEFAULT_MAX_RESULTS, DEFAULT_TIMEOUT, GITHUB_API_URL
from track.core.exceptions import (
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
from track.trackers.github import convert
from track.trackers.transport import HttpTransport


MAX_PER_PAGE = 100

ISSUE_REF_PATTERN = re.compile(r"^(?:(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+))?#?(?P<number>\d+)$")


class GithubTracker(IssueTracker):
    """Issues, labels and comments of one GitHub repository.

    Issues and pull requests share a number space on GitHub; pull requests
    are flagged on read, rejected by get_issue and filtered out of searches.
    """

    name = "github"

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str,
        base_url: str = GITHUB_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self.owner = owner
        self.max_results = max_results
        self.repo = repo
        self.transport = HttpTransport(
            base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
        )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _repo_path(self, path: str = "") -> str:
        return f"/repos/{self.owner}/{self.repo}{path}"

    def _number(self, issue_id: str) -> int:
        """Extract the issue number from '42', '#42' or 'owner/repo#42'.

        Raises:
            InvalidInputError: If the reference names another repository or is malformed.
        """
        match = ISSUE_REF_PATTERN.match(issue_id.strip())
        if not match:
            raise InvalidInputError("issue_id", f"expected a number or owner/repo#number, got '{issue_id}'")
        if match.group("owner") and f"{match.group('owner')}/{match.group('repo')}" != self.full_name:
            raise InvalidInputError("issue_id", f"'{issue_id}' is not in {self.full_name}")
        return int(match.group("number"))

    def _fetch_issue(self, issue_id: str) -> dict[str, Any]:
        number = self._number(issue_id)
        return self.transport.get(
            self._repo_path(f"/issues/{number}"),
            not_found=IssueNotFoundError(issue_id),
        )

    def get_issue(self, issue_id: str) -> Issue:
        data = self._fetch_issue(issue_id)
        if "pull_request" in data:
            raise IssueNotFoundError(issue_id)
        return convert.issue_from_github(data, self.owner, self.repo)

    def _search(self, query: str, per_page: int, page: int) -> dict[str, Any]:
        q = f"repo:{self.full_name} is:issue {query}".strip()
        return self.transport.get(
            "/search/issues",
            params={"q": q, "per_page": per_page, "page": page},
        )

    def search_issues(self, query: str, limit: int, skip: int) -> SearchResult[Issue]:
        total: int | None = None

        def fetch_page(page: int, per_page: int) -> list[dict[str, Any]]:
            nonlocal total
            data = self._search(query, per_page, page)
            total = data.get("total_count")
            return data.get("items", [])

        items = [
            convert.issue_from_github(item, self.owner, self.repo)
            for item in fetch_window(fetch_page, skip, limit, MAX_PER_PAGE)
            if "pull_request" not in item
        ]
        return SearchResult(items=items, total=total)

    def get_issue_count(self, query: str) -> int | None:
        return self._search(query, 1, 1).get("total_count")

    def create_issue(self, issue: CreateIssue) -> Issue:
        data = self.transport.post(self._repo_path("/issues"), json=convert.create_payload(issue))
        created = convert.issue_from_github(data, self.owner, self.repo)
        if issue.parent:
            self.link_subtask(created.id, issue.parent)
        return created

    def update_issue(self, issue_id: str, update: UpdateIssue) -> Issue:
        number = self._number(issue_id)
        data = self.transport.patch(
            self._repo_path(f"/issues/{number}"),
            json=convert.update_payload(update),
            not_found=IssueNotFoundError(issue_id),
        )
        return convert.issue_from_github(data, self.owner, self.repo)

    def list_projects(self) -> list[Project]:
        def fetch_page(skip: int, limit: int) -> list[dict[str, Any]]:
            return self.transport.get(
                "/user/repos",
                params={"per_page": MAX_PER_PAGE, "page": skip // MAX_PER_PAGE + 1, "sort": "updated"},
            )

        repos = fetch_all_pages(fetch_page, MAX_PER_PAGE, self.max_results)
        return [convert.project_from_repo(repo) for repo in repos]

    def get_project(self, project_id: str) -> Project:
        if project_id.isdigit():
            path = f"/repositories/{project_id}"
        elif "/" in project_id:
            path = f"/repos/{project_id}"
        else:
            path = f"/repos/{self.owner}/{project_id}"
        data = self.transport.get(path, not_found=ProjectNotFoundError(project_id))
        return convert.project_from_repo(data)

    def resolve_project_id(self, identifier: str) -> str:
        if identifier.isdigit():
            return identifier
        for project in self.list_projects():
            if project.short_name == identifier:
                return project.id
        raise ProjectNotFoundError(identifier)

    def get_project_custom_fields(self, project_id: str) -> list[ProjectCustomField]:
        return convert.standard_fields()

    def list_project_users(self, project_id: str) -> list[User]:
        data = self.transport.get(self._repo_path("/assignees"), params={"per_page": MAX_PER_PAGE})
        return [user for user in (convert.user_from_github(u) for u in data) if user is not None]

    def list_tags(self) -> list[Tag]:
        data = self.transport.get(self._repo_path("/labels"), params={"per_page": MAX_PER_PAGE})
        return [convert.tag_from_label(label) for label in data]

    def create_tag(self, tag: CreateTag) -> Tag:
        data = self.transport.post(self._repo_path("/labels"), json=convert.label_payload(tag))
        return convert.tag_from_label(data)

    def update_tag(self, current_name: str, tag: CreateTag) -> Tag:
        data = self.transport.patch(
            self._repo_path(f"/labels/{quote(current_name, safe='')}"),
            json=convert.label_update_payload(tag),
            not_found=NotFoundError(f"tag '{current_name}'"),
        )
        return convert.tag_from_label(data)

    def delete_tag(self, name: str) -> None:
        self.transport.delete(
            self._repo_path(f"/labels/{quote(name, safe='')}"),
            not_found=NotFoundError(f"tag '{name}'"),
        )

    def list_link_types(self) -> list[IssueLinkType]:
        return [
            IssueLinkType(
                id="subtask",
                name="Subtask",
                source_to_target="parent of",
                target_to_source="subtask of",
                directed=True,
            )
        ]

    def get_issue_links(self, issue_id: str) -> list[IssueLink]:
        """Sub-issues are the only issue relation GitHub models."""
        number = self._number(issue_id)
        children = self.transport.get(
            self._repo_path(f"/issues/{number}/sub_issues"),
            params={"per_page": MAX_PER_PAGE},
            not_found=IssueNotFoundError(issue_id),
        )
        if not children:
            return []
        return [
            IssueLink(
                id=f"{number}/sub_issues",
                direction=LinkDirection.OUTWARD,
                link_type=self.list_link_types()[0],
                issues=[convert.linked_from_github(child, self.owner, self.repo) for child in children],
            )
        ]

    def link_issues(self, source: str, target: str, link_type: str, direction: str) -> None:
        if link_type.lower() in ("subtask", "parent", "child"):
            if direction.upper() == LinkDirection.OUTWARD:
                self.link_subtask(target, source)
            else:
                self.link_subtask(source, target)
            return
        raise UnsupportedError("link_issues")

    def link_subtask(self, child: str, parent: str) -> None:
        """Attach ``child`` as a sub-issue of ``parent``.

        The sub-issues endpoint wants the child's global issue id, not its
        number, so the child is fetched first.
        """
        child_data = self._fetch_issue(child)
        parent_number = self._number(parent)
        logger.debug("Linking sub-issue", child=child, parent=parent)
        self.transport.post(
            self._repo_path(f"/issues/{parent_number}/sub_issues"),
            json={"sub_issue_id": child_data["id"]},
            not_found=IssueNotFoundError(parent),
        )

    def add_comment(self, issue_id: str, text: str) -> Comment:
        number = self._number(issue_id)
        data = self.transport.post(
            self._repo_path(f"/issues/{number}/comments"),
            json={"body": text},
            not_found=IssueNotFoundError(issue_id),
        )
        return convert.comment_from_github(data)

    def get_comments(self, issue_id: str) -> list[Comment]:
        number = self._number(issue_id)
        data = self.transport.get(
            self._repo_path(f"/issues/{number}/comments"),
            params={"per_page": MAX_PER_PAGE},
            not_found=IssueNotFoundError(issue_id),
        )
        return [convert.comment_from_github(comment) for comment in data]
