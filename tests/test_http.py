import time
from email.utils import formatdate
from pathlib import Path

import pytest

import srv.http.model
from srv import FileServer
from srv.http.api import RangeNotSatisfiable, parseRange
from srv.http.model import (
	HEADER_NAMES_MAX,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)
from srv.http.parser import HTTPParser
from srv.utils.files import contentType, extension

# -----------------------------------------------------------------------------
#
# PARSER
#
# -----------------------------------------------------------------------------


def requests(*chunks: bytes) -> list[HTTPRequest]:
	parser = HTTPParser()
	return [
		atom
		for chunk in chunks
		for atom in parser.feed(chunk)
		if isinstance(atom, HTTPRequest)
	]


def test_parse_request():
	parser = HTTPParser()
	atoms = list(
		parser.feed(b"GET /docs/intro?lang=en HTTP/1.1\r\nHost: localhost\r\n\r\n")
	)
	assert atoms[0] == HTTPRequestLine("GET", "/docs/intro", "lang=en", "HTTP/1.1")
	assert isinstance(atoms[1], HTTPHeaders)
	req = atoms[2]
	assert isinstance(req, HTTPRequest)
	assert req.method == "GET"
	assert req.path == "/docs/intro"
	assert req.param("lang") == "en"
	assert req.header("host") == "localhost"
	assert req.protocol == "HTTP/1.1"


def test_parse_pipelined_requests():
	reqs = requests(
		b"GET /a HTTP/1.1\r\nHost: x\r\n\r\nHEAD /b HTTP/1.1\r\nHost: x\r\n\r\n"
	)
	assert [(_.method, _.path) for _ in reqs] == [("GET", "/a"), ("HEAD", "/b")]


def test_parse_byte_by_byte():
	data = b"GET /a HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n"
	reqs = requests(*(data[i : i + 1] for i in range(len(data))))
	assert len(reqs) == 1
	assert reqs[0].path == "/a"
	assert reqs[0].header("Connection") == "close"


def test_parse_body_with_length():
	reqs = requests(
		b"POST /form HTTP/1.1\r\nContent-Length: 3\r\n\r\nab",
		b"cGET /next HTTP/1.1\r\n\r\n",
	)
	assert [_.path for _ in reqs] == ["/form", "/next"]
	assert reqs[0].body.raw == b"abc"
	assert reqs[0].contentLength == 3


def test_parse_malformed_request():
	atoms = list(HTTPParser().feed(b"GARBAGE\r\n\r\n"))
	assert atoms == [HTTPProcessingStatus.BadFormat]


def test_header_names():
	assert headername("content-type") == "Content-Type"
	assert headername("IF-MODIFIED-SINCE") == "If-Modified-Since"


def test_header_names_cache_is_bounded(monkeypatch: pytest.MonkeyPatch):
	monkeypatch.setattr(srv.http.model, "HEADER_NAMES", {})
	data = b"".join(
		f"GET /{i} HTTP/1.1\r\nX-Junk-{i}: 1\r\n\r\n".encode() for i in range(2_000)
	)
	reqs = requests(data)
	assert len(reqs) == 2_000
	assert reqs[-1].header("x-junk-1999") == "1"
	assert "X-Junk-1999" in reqs[-1].headers
	assert len(srv.http.model.HEADER_NAMES) == HEADER_NAMES_MAX


def test_parser_signals():
	assert [_.name for _ in HTTPProcessingStatus] == ["Body", "BadFormat"]


# -----------------------------------------------------------------------------
#
# FILES
#
# -----------------------------------------------------------------------------


def test_content_types():
	assert contentType("index.html") == "text/html; charset=utf-8"
	assert contentType("public/app.js") == "text/javascript; charset=utf-8"
	assert contentType("logo.PNG") == "image/png"
	assert contentType("backup.tar.gz") == "application/x-gzip"
	assert contentType("data.unknownext") is None
	assert contentType("Makefile") is None


def test_extension():
	assert extension("archive.zip") == ".zip"
	assert extension(".zip") == ".zip"
	assert extension("a/b.c/d") == ""
	assert extension("a.tar.gz") == ".gz"


@pytest.mark.parametrize(
	"header,expected",
	[
		("bytes=0-3", (0, 3)),
		("bytes=5-", (5, 9)),
		("bytes=-4", (6, 9)),
		("bytes=-40", (0, 9)),
		("bytes=2-100", (2, 9)),
		("bytes=0-1,4-5", None),
		("bytes=4-2", None),
		("bytes=a-b", None),
		("items=0-3", None),
		(None, None),
	],
)
def test_parse_range(header: str | None, expected: tuple[int, int] | None):
	assert parseRange(header, 10) == expected


@pytest.mark.parametrize("header", ["bytes=10-", "bytes=20-30", "bytes=-0"])
def test_parse_range_not_satisfiable(header: str):
	with pytest.raises(RangeNotSatisfiable):
		parseRange(header, 10)


def test_range_request(site: Path):
	res = FileServer(site).handle("GET", "/about", {"Range": "bytes=4-8"})
	assert res.status == 206
	assert res.read() == b"About"
	assert res.getHeader("Content-Range") == "bytes 4-8/14"
	assert res.getHeader("Content-Length") == "5"


def test_range_not_satisfiable(site: Path):
	res = FileServer(site).handle("GET", "/about", {"Range": "bytes=100-"})
	assert res.status == 416
	assert res.getHeader("Content-Range") == "bytes */14"
	assert res.body is None


def test_not_modified(site: Path):
	later = formatdate(time.time() + 3600, usegmt=True)
	res = FileServer(site).handle("GET", "/about", {"If-Modified-Since": later})
	assert res.status == 304
	assert res.body is None


def test_modified(site: Path):
	earlier = formatdate(0, usegmt=True)
	res = FileServer(site).handle("GET", "/about", {"If-Modified-Since": earlier})
	assert res.status == 200
	assert res.read() == b"<h1>About</h1>"


def test_not_found_page_ignores_conditionals(site: Path):
	later = formatdate(time.time() + 3600, usegmt=True)
	res = FileServer(site).handle(
		"GET", "/nowhere", {"If-Modified-Since": later, "Range": "bytes=0-1"}
	)
	assert res.status == 404
	assert res.read() == b"<h1>Not here</h1>"


# EOF
