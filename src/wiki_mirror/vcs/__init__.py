"""Version control of the sync root."""

from .git import GitVersionControl

__all__ = ["GitVersionControl"]
