"""GitHub Issues backend, with the repository wiki as its knowledge base."""
from track.trackers.github.tracker import GithubTracker
from track.trackers.github.wiki import GithubWiki


__all__ = ["GithubTracker", "GithubWiki"]
