"""YouTrack backend."""
from track.trackers.youtrack.tracker import YoutrackTracker


__all__ = ["YoutrackTracker"]
