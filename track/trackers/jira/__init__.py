"""Jira Cloud backend, with Confluence as its knowledge base."""
from track.trackers.jira.confluence import ConfluenceKnowledgeBase
from track.trackers.jira.tracker import JiraTracker


__all__ = ["ConfluenceKnowledgeBase", "JiraTracker"]
