"""Command groups for the ``track`` CLI."""
