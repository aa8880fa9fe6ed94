"""Tests for log formatting."""

import json
import logging

from livestylist.core.logging import ColorFormatter, LogSettings, StructuredFormatter, setup_logging


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "livestylist.relay.session", logging.INFO, __file__, 1, "Preview delivered", None, None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_formatter_lifts_extras():
    line = StructuredFormatter().format(
        make_record(session_id="s-1", trigger="agent", duration_ms=1840, other="x")
    )
    entry = json.loads(line)

    assert entry["msg"] == "Preview delivered"
    assert entry["level"] == "INFO"
    assert entry["session_id"] == "s-1"
    assert entry["trigger"] == "agent"
    assert entry["duration_ms"] == 1840
    assert "other" not in entry


def test_color_formatter_renders_context_without_touching_record():
    record = make_record(session_id="s-1", trigger="agent")
    line = ColorFormatter(use_color=True).format(record)

    assert "Preview delivered" in line
    assert "session_id=s-1" in line
    assert "trigger=agent" in line
    assert record.levelname == "INFO"
    assert record.name == "livestylist.relay.session"


def test_plain_formatter_has_no_escape_codes():
    line = ColorFormatter(use_color=False).format(make_record())

    assert "\033[" not in line
    assert line.endswith("livestylist.relay.session: Preview delivered")


def test_settings_pick_formatter():
    assert isinstance(LogSettings(format="json").formatter(), StructuredFormatter)
    assert LogSettings(color="false").use_color() is False


def test_setup_logging_installs_one_handler():
    root = logging.getLogger()
    saved = (root.handlers[:], root.level)
    try:
        setup_logging(LogSettings(level="DEBUG", format="json"))

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:], level = saved
        root.setLevel(level)
