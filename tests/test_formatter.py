"""Tests for outbound text composition."""

from crossrelay.relay.formatter import MessageFormatter


def test_plain_compose():
    assert MessageFormatter.compose("Bob", "hi") == "Bob: hi"


def test_markdown_bolds_author():
    assert MessageFormatter.compose("Bob", "hi", markdown=True) == "**Bob**: hi"


def test_handle_and_scope_marker():
    text = MessageFormatter.compose("Alice", "ship it", handle="@alice_tg", scope="release")
    assert text == "[#release] Alice (@alice_tg): ship it"


def test_truncation_respects_limit():
    text = MessageFormatter.compose("Bob", "x" * 500, limit=100)
    assert len(text) == 100
    assert text.endswith("...(truncated)")


def test_short_text_is_not_truncated():
    assert MessageFormatter.truncate("hello", 10) == "hello"


def test_ack_and_error_texts_are_single_line():
    ack = MessageFormatter.ack_text("Discord", "100")
    assert "100" in ack and "Discord" in ack
    assert "\n" not in ack
    assert "\n" not in MessageFormatter.error_text()
