"""Tests for preview trigger detection in streamed stylist speech."""

from livestylist.relay.triggers import (
    PreviewTriggerScanner,
    extract_style_description,
    matches_trigger,
    split_sentences,
)


def test_matches_trigger_case_insensitive():
    assert matches_trigger("LET ME SHOW YOU a bold red lip.")
    assert matches_trigger("Here's a preview of that cut.")
    assert matches_trigger("Heres a preview of that cut.")
    assert matches_trigger("Wie wäre es mit einem Pony?")
    assert not matches_trigger("You look great today.")


def test_extract_style_description():
    assert (
        extract_style_description("Picture this — a sleek bob with bangs.")
        == "a sleek bob with bangs"
    )
    assert (
        extract_style_description("Stell dir vor, ein warmer Kupferton im Haar!")
        == "ein warmer Kupferton im Haar"
    )


def test_extract_rejects_short_description():
    assert extract_style_description("Let me show you this.") is None
    assert extract_style_description("Let me show you this.", min_length=4) == "this"


def test_split_sentences_keeps_remainder():
    sentences, remainder = split_sentences("Hello there. How are you? I was")

    assert sentences == ["Hello there.", " How are you?"]
    assert remainder == " I was"


def test_scanner_joins_fragments():
    scanner = PreviewTriggerScanner()

    assert scanner.feed("Let me show ") is None
    assert scanner.feed("you a soft pink lip look.") == "a soft pink lip look"
    assert scanner.buffer == ""


def test_scanner_skips_short_and_continues():
    scanner = PreviewTriggerScanner()

    result = scanner.feed("Let me show you this. Picture this: a warm copper balayage.")

    assert result == "a warm copper balayage"


def test_scanner_one_trigger_per_scan():
    scanner = PreviewTriggerScanner()

    result = scanner.feed(
        "Let me show you a sleek low bun. Picture this: a sharp winged liner. And"
    )

    assert result == "a sleek low bun"
    assert scanner.buffer == " And"


def test_scanner_ignores_plain_speech():
    scanner = PreviewTriggerScanner()

    assert scanner.feed("Your jacket works well with that scarf. It") is None
    assert scanner.buffer == " It"


def test_flush_scans_unterminated_tail():
    scanner = PreviewTriggerScanner()
    scanner.feed("Picture this a dramatic winged liner")

    assert scanner.flush() == "a dramatic winged liner"
    assert scanner.buffer == ""
    assert scanner.flush() is None


def test_reset_clears_buffer():
    scanner = PreviewTriggerScanner()
    scanner.feed("Let me show you")
    scanner.reset()

    assert scanner.feed(" a bold red lip.") is None
