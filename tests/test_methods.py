from pathlib import Path

import pytest

import srv.sources
from srv import FileServer, HTTPRequest, HTTPResponse, Source

METHODS: list[str] = ["POST", "PUT", "PATCH", "DELETE", "CONNECT", "TRACE", "PROPFIND"]
PATHS: list[str] = ["/", "/about", "/archive.zip/public", "/nowhere", "/docs/"]


class RecordingSource(Source):
	"""Records every call made by the file server."""

	def __init__(self) -> None:
		super().__init__("/nonexistent")
		self.calls: list[str] = []

	def locate(self, path: str) -> str:
		self.calls.append(f"locate {path}")
		return super().locate(path)

	def exists(self, candidate: str) -> bool:
		self.calls.append(f"exists {candidate}")
		return False

	def serve(self, request: HTTPRequest, candidate: str) -> HTTPResponse:
		self.calls.append(f"serve {candidate}")
		raise AssertionError("Should not be served")


@pytest.fixture
def untouchable(monkeypatch: pytest.MonkeyPatch) -> None:
	def fail(path: str) -> bool:
		raise AssertionError(f"The filesystem should not be accessed: {path}")

	monkeypatch.setattr(srv.sources, "isFile", fail)


@pytest.mark.parametrize("method", ["HEAD", "OPTIONS", "head"])
@pytest.mark.parametrize("path", PATHS)
def test_head_and_options_do_not_resolve(untouchable: None, method: str, path: str):
	source = RecordingSource()
	res = FileServer("/nonexistent", [source]).handle(method, path)
	assert res.status == 200
	assert res.body is None
	assert res.read() == b""
	assert source.calls == []


def test_options_lists_methods():
	res = FileServer("/nonexistent").handle("OPTIONS", "/")
	assert res.getHeader("Allow") == "GET, HEAD, OPTIONS"


@pytest.mark.parametrize("method", METHODS)
@pytest.mark.parametrize("path", PATHS)
def test_other_methods_are_not_allowed(
	untouchable: None, site: Path, method: str, path: str
):
	source = RecordingSource()
	res = FileServer(site, [source]).handle(method, path)
	assert res.status == 405
	assert res.body is None
	assert res.getHeader("Allow") == "GET, HEAD, OPTIONS"
	assert source.calls == []


def test_get_goes_through_sources(tmp_path: Path):
	source = RecordingSource()
	FileServer(tmp_path, [source]).handle("GET", "/page")
	assert source.calls[0] == "locate /page"
	assert [_.split(" ", 1)[0] for _ in source.calls[1:]] == ["exists"] * 3


def test_empty_response_head():
	res = FileServer("/nonexistent").handle("HEAD", "/")
	assert res.head() == b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n"


def test_not_allowed_response_head():
	res = FileServer("/nonexistent").handle("DELETE", "/")
	assert res.head() == (
		b"HTTP/1.1 405 Method Not Allowed\r\n"
		b"Allow: GET, HEAD, OPTIONS\r\n"
		b"Content-Length: 0\r\n"
		b"\r\n"
	)


# EOF
