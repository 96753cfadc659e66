"""GitLab Issues backend."""
from track.trackers.gitlab.tracker import GitlabTracker


__all__ = ["GitlabTracker"]
