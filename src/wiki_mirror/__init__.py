"""Mirror wiki pages into Markdown files under git, and push edits back."""

__version__ = "0.1.0"
