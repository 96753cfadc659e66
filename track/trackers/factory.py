"""Factory module for creating issue tracker instances.

Pick the backend named by the merged configuration. When TRACK_MOCK_DIR
points at a scenario directory the mock harness answers instead,
whatever backend was requested.
"""

from loguru import logger

from track.config import TrackConfig
from track.core.exceptions import ConfigurationError, UnsupportedError
from track.mock import MockTracker
from track.trackers.base import IssueTracker, KnowledgeBase
from track.trackers.github import GithubTracker, GithubWiki
from track.trackers.gitlab import GitlabTracker
from track.trackers.jira import ConfluenceKnowledgeBase, JiraTracker
from track.trackers.youtrack import YoutrackTracker


def create_tracker(config: TrackConfig) -> IssueTracker:
    """Factory to create a tracker from the effective configuration.

    Args:
        config: Merged configuration from load_config.

    Returns:
        A tracker instance implementing the IssueTracker protocol.

    Raises:
        ConfigurationError: If the selected backend is not properly configured
            or the mock scenario directory does not exist.
    """
    if config.mock_dir is not None:
        if not config.mock_dir.is_dir():
            raise ConfigurationError(f"Mock scenario directory not found: {config.mock_dir}")
        logger.debug("Using mock tracker", scenario=str(config.mock_dir))
        return MockTracker(config.mock_dir)

    config.validate_backend()
    logger.debug("Using tracker", backend=config.backend, url=config.url)

    # validate_backend guarantees the fields each constructor needs
    if config.backend == "youtrack":
        return YoutrackTracker(
            config.url or "", config.token or "", timeout=config.timeout, max_results=config.max_results
        )
    elif config.backend == "jira":
        return JiraTracker(
            config.url or "",
            config.email or "",
            config.token or "",
            timeout=config.timeout,
            max_results=config.max_results,
        )
    elif config.backend == "github":
        return GithubTracker(
            config.owner or "",
            config.repo or "",
            config.token or "",
            base_url=config.url or "",
            timeout=config.timeout,
            max_results=config.max_results,
        )
    elif config.backend == "gitlab":
        return GitlabTracker(
            config.url or "",
            config.token or "",
            project_id=config.project_id or config.default_project,
            timeout=config.timeout,
            max_results=config.max_results,
        )
    else:
        raise ConfigurationError(f"Unknown tracker type: {config.backend}")


def create_knowledge_base(config: TrackConfig, tracker: IssueTracker) -> KnowledgeBase:
    """Knowledge base that goes with a tracker.

    YouTrack and the mock harness serve articles themselves. A Jira site
    pairs with the Confluence space under the same host, and a GitHub
    repository with its wiki.

    Raises:
        UnsupportedError: If the backend has no knowledge base.
    """
    if isinstance(tracker, KnowledgeBase):
        return tracker
    if isinstance(tracker, JiraTracker):
        return ConfluenceKnowledgeBase(
            config.url or "", config.email or "", config.token or "", timeout=config.timeout
        )
    if isinstance(tracker, GithubTracker):
        return GithubWiki(config.owner or "", config.repo or "", config.token or "")
    raise UnsupportedError("knowledge_base")
