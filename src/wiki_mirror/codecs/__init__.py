"""Parse-tree codecs: HTML (lxml) and Markdown (mistune)."""

from . import html_tree, markdown_tree

__all__ = ["html_tree", "markdown_tree"]
