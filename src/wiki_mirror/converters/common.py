"""Shared helpers for the node converters."""

import re
import unicodedata

# =============================================================================
# Code Block Language Mapping
# =============================================================================
#
# Bidirectional mapping between Markdown code fence language identifiers and
# the wiki code macro's ``language`` parameter.
#
# Markdown: ```js
# Wiki:     <ac:parameter ac:name="language">javascript</ac:parameter>
#
# - Markdown->wiki is the canonical direction
# - The wiki->Markdown table picks one Markdown name per wiki name
# - Unknown languages pass through unchanged
# =============================================================================

# Markdown language identifier -> wiki code macro language
_MARKDOWN_TO_WIKI_MAP: dict[str, str] = {
    # Shell scripting: the wiki macro only knows "bash"
    "sh": "bash",
    "shell": "bash",
    "zsh": "bash",
    "console": "bash",
    # JavaScript / TypeScript
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    # Others with a short Markdown alias
    "py": "python",
    "rb": "ruby",
    "cs": "csharp",
    "c#": "csharp",
    "c++": "cpp",
    "yml": "yaml",
    "ps1": "powershell",
    "kt": "kotlin",
    # Text/plaintext normalization
    "text": "none",
    "plaintext": "none",
    "plain": "none",
    "txt": "none",
}

# Wiki code macro language -> Markdown language identifier (canonical form)
_WIKI_TO_MARKDOWN_CANONICAL: dict[str, str] = {
    "bash": "sh",
    "javascript": "javascript",
    "typescript": "typescript",
    "csharp": "csharp",
    "cpp": "cpp",
    "none": "text",
}


def markdown_to_wiki_lang(lang: str) -> str:
    """
    Convert a Markdown code fence language to the wiki macro language.

    Args:
        lang: Markdown language identifier (e.g., 'sh', 'python', 'js')

    Returns:
        Wiki code macro language. Returns input unchanged if no mapping exists.

    Examples:
        >>> markdown_to_wiki_lang("sh")
        'bash'
        >>> markdown_to_wiki_lang("js")
        'javascript'
        >>> markdown_to_wiki_lang("python")
        'python'
    """
    return _MARKDOWN_TO_WIKI_MAP.get(lang.lower(), lang)


def wiki_to_markdown_lang(language: str) -> str:
    """
    Convert a wiki code macro language to a Markdown fence language.

    Examples:
        >>> wiki_to_markdown_lang("bash")
        'sh'
        >>> wiki_to_markdown_lang("none")
        'text'
        >>> wiki_to_markdown_lang("unknown")
        'unknown'
    """
    return _WIKI_TO_MARKDOWN_CANONICAL.get(language.lower(), language)


# =============================================================================
# Page paths
# =============================================================================

_SLUG_MAX_LENGTH = 100


def slugify(title: str) -> str:
    """Turn a page title into a file-system friendly slug.

    Lower-cases, strips diacritics, collapses every run of other
    characters into ``-``.  Empty results become ``untitled``.

    Examples:
        >>> slugify("Getting Started!")
        'getting-started'
        >>> slugify("Café Menü")
        'cafe-menu'
    """
    normalized = unicodedata.normalize("NFD", title)
    ascii_only = "".join(
        ch for ch in normalized if unicodedata.category(ch) != "Mn"
    )
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_only.lower()).strip("-")
    slug = slug[:_SLUG_MAX_LENGTH].rstrip("-")
    return slug or "untitled"
