"""Remote wiki access."""

from .client import ConfluenceClient

__all__ = ["ConfluenceClient"]
