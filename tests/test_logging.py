import io

import pytest

from srv.utils import logging
from srv.utils.logging import LogLevel, debug, info, logged, parseLevel, warning


@pytest.fixture
def stream(monkeypatch: pytest.MonkeyPatch) -> io.StringIO:
	out = io.StringIO()
	monkeypatch.setattr(logging, "ERR", out)
	monkeypatch.setattr(logging, "LOG_LEVEL", LogLevel.Info)
	return out


def test_parse_level():
	assert parseLevel("debug") is LogLevel.Debug
	assert parseLevel(" WARNING ") is LogLevel.Warning
	assert parseLevel("chatty") is LogLevel.Info
	assert parseLevel(None, LogLevel.Error) is LogLevel.Error


def test_messages_above_threshold(stream: io.StringIO):
	info("Serving files", Root="/var/www")
	assert "Serving files" in stream.getvalue()
	assert "/var/www" in stream.getvalue()


def test_messages_below_threshold(stream: io.StringIO):
	debug("Candidate skipped")
	assert stream.getvalue() == ""
	assert not logged(debug)
	assert logged(info)


def test_set_level(stream: io.StringIO):
	logging.setLevel("warning")
	assert not logged(info)
	info("Hidden")
	warning("Shown")
	assert "Hidden" not in stream.getvalue()
	assert "Shown" in stream.getvalue()
	logging.setLevel(LogLevel.Debug)
	assert logged(debug)


def test_exception(stream: io.StringIO):
	try:
		raise RuntimeError("Boom")
	except RuntimeError as e:
		assert logging.exception(e, "Failed") is e
	assert "Failed: [RuntimeError] Boom" in stream.getvalue()


# EOF
