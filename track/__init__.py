"""track: one command line for GitHub, GitLab, Jira and YouTrack issues."""

__version__ = "0.1.0"
