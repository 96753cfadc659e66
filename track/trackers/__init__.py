"""Issue tracker backends.

Each backend implements the IssueTracker protocol (and optionally
KnowledgeBase) over its own REST API so that commands never branch on
backend identity.

Exports:
    IssueTracker: Protocol defining the tracker contract.
    KnowledgeBase: Protocol for backends with an article store.
    GithubTracker: Tracker for GitHub Issues.
    GitlabTracker: Tracker for GitLab issues.
    JiraTracker: Tracker for Atlassian Jira.
    YoutrackTracker: Tracker for JetBrains YouTrack.
"""

from track.trackers.base import IssueTracker, KnowledgeBase
from track.trackers.github import GithubTracker
from track.trackers.gitlab import GitlabTracker
from track.trackers.jira import JiraTracker
from track.trackers.youtrack import YoutrackTracker


__all__ = [
    "GithubTracker",
    "GitlabTracker",
    "IssueTracker",
    "JiraTracker",
    "KnowledgeBase",
    "YoutrackTracker",
]
