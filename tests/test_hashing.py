"""Tests for content hashing of page documents."""

from wiki_mirror.ast import Document, Paragraph, Text
from wiki_mirror.converters import canonical_document, markdown_to_document
from wiki_mirror.hashing import content_hash, is_content_hash


class TestContentHash:
    def test_empty_document(self):
        value = content_hash(Document())
        assert is_content_hash(value)
        assert value == content_hash(Document())

    def test_markdown_text_is_decoded_first(self):
        text = "# Title\n\nBody\n"
        assert content_hash(text) == content_hash(markdown_to_document(text))

    def test_formatting_noise_ignored(self):
        assert content_hash("Hello *world*\n") == content_hash("Hello _world_\n")
        assert content_hash("# A\n\n\n\nb\n") == content_hash("# A\n\nb")
        assert content_hash("* one\n* two\n") == content_hash("- one\n- two\n")

    def test_content_changes_hash(self):
        assert content_hash("Hello\n") != content_hash("Hello!\n")

    def test_order_changes_hash(self):
        first = Document(
            children=(
                Paragraph(children=(Text(value="a"),)),
                Paragraph(children=(Text(value="b"),)),
            )
        )
        second = Document(children=tuple(reversed(first.children)))
        assert content_hash(first) != content_hash(second)

    def test_remote_and_local_comparable(self):
        remote = canonical_document("<h2>Setup</h2><p>Run <code>make</code></p>")
        assert content_hash(remote) == content_hash("## Setup\n\nRun `make`\n")


class TestIsContentHash:
    def test_accepts_hex_sha256(self):
        assert is_content_hash("0" * 64)

    def test_rejects_other_values(self):
        assert not is_content_hash("abc")
        assert not is_content_hash("G" * 64)
        assert not is_content_hash("A" * 64)
