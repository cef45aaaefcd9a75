import os.path
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, Literal, NamedTuple, TypeAlias, Union

from ..utils.io import DEFAULT_ENCODING
from .api import ResponseFactory
from .status import HTTP_STATUS

# -----------------------------------------------------------------------------
#
# HEADER NAMES
#
# -----------------------------------------------------------------------------

# Header names are sent by clients, so the cache of normalized names is
# bounded. Names past the limit are normalized on each call.
HEADER_NAMES_MAX: int = 512
HEADER_NAMES: dict[str, str] = {
	_.lower(): _
	for _ in (
		"Accept",
		"Accept-Encoding",
		"Accept-Ranges",
		"Allow",
		"Connection",
		"Content-Length",
		"Content-Range",
		"Content-Type",
		"Host",
		"If-Modified-Since",
		"Last-Modified",
		"Range",
		"User-Agent",
	)
}


def headername(name: str) -> str:
	"""Normalizes the header name as `Kebab-Case`, `content-type` giving
	`Content-Type`."""
	key: str = name.lower()
	res: str | None = HEADER_NAMES.get(key)
	if res is None:
		res = "-".join(_.capitalize() for _ in key.split("-"))
		if len(HEADER_NAMES) < HEADER_NAMES_MAX:
			HEADER_NAMES[key] = res
	return res


# -----------------------------------------------------------------------------
#
# PARSER ATOMS
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""The first line of a request, with the query string split off."""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Normalized headers, with the values that drive body parsing and
	content negotiation extracted."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Parser signals that are neither a request line, headers nor a
	request."""

	# Headers announced a body, which is being read
	Body = 1
	# The input is not an HTTP request, the connection should be closed
	BadFormat = 12


HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	"HTTPRequest",
]

# -----------------------------------------------------------------------------
#
# BODIES
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""A body held in memory."""

	payload: bytes = b""
	length: int = 0

	@staticmethod
	def FromBytes(data: bytes) -> "HTTPBodyBlob":
		return HTTPBodyBlob(data, len(data))

	@property
	def raw(self) -> bytes:
		return self.payload


class HTTPBodyFile(NamedTuple):
	"""A body read from a file when written, optionally restricted to the
	`size` bytes starting at `start`."""

	path: Path
	start: int = 0
	size: int | None = None

	@property
	def length(self) -> int:
		if self.size is not None:
			return self.size
		return os.path.getsize(self.path) - self.start


class HTTPBodyStream(NamedTuple):
	"""A body of `length` bytes produced when written. `chunks` is called
	once per write and the returned iterator is closed afterwards, so
	that it can hold resources open in the meantime."""

	chunks: Callable[[], Iterator[bytes]]
	length: int

	def read(self) -> bytes:
		iterator = self.chunks()
		try:
			return b"".join(iterator)
		finally:
			close = getattr(iterator, "close", None)
			if close:
				close()


THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile | HTTPBodyStream


class HTTPBodyWriter(ABC):
	"""Writes bodies to a transport, which subclasses implement with
	`_writeBytes`."""

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		if body is None:
			return True
		elif isinstance(body, (bytes, bytearray)):
			return await self._writeBytes(bytes(body))
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif isinstance(body, HTTPBodyFile):
			return await self._writeFile(body)
		elif isinstance(body, HTTPBodyStream):
			return await self._writeStream(body)
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _writeFile(self, body: HTTPBodyFile, size: int = 64_000) -> bool:
		left: int = body.length
		with open(body.path, "rb") as f:
			f.seek(body.start)
			while left > 0:
				chunk = f.read(min(size, left))
				if not chunk:
					break
				left -= len(chunk)
				await self._writeBytes(chunk, True)
		return True

	async def _writeStream(self, body: HTTPBodyStream) -> bool:
		iterator = body.chunks()
		try:
			for chunk in iterator:
				await self._writeBytes(chunk, True)
		finally:
			close = getattr(iterator, "close", None)
			if close:
				close()
		return True

	@abstractmethod
	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUEST
#
# -----------------------------------------------------------------------------


def parseQuery(text: str) -> dict[str, str]:
	"""Parses a query string, a key without `=` having an empty value."""
	res: dict[str, str] = {}
	for item in text.split("&"):
		if item:
			key, _, value = item.partition("=")
			res[key] = value
	return res


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""A parsed request, which is also the factory for its responses."""

	__slots__ = ["method", "path", "query", "protocol", "_headers", "_body"]

	@staticmethod
	def FromPath(
		method: str,
		url: str,
		headers: dict[str, str] | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPRequest":
		"""Creates a request from a method and a URL path, which may have
		a query string."""
		path, _, query = url.partition("?")
		normalized: dict[str, str] = {
			headername(k): v for k, v in (headers or {}).items()
		}
		return HTTPRequest(
			method.upper(),
			path or "/",
			parseQuery(query) if query else None,
			HTTPHeaders(normalized, normalized.get("Content-Type")),
			protocol=protocol,
		)

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None,
		headers: HTTPHeaders,
		body: HTTPBodyBlob | None = None,
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		self._headers: HTTPHeaders = headers
		self._body: HTTPBodyBlob | None = body

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	def param(self, name: str, default: str | None = None) -> str | None:
		return self.query.get(name, default) if self.query else default

	@property
	def contentType(self) -> str | None:
		return self._headers.contentType

	@property
	def contentLength(self) -> int | None:
		return self._headers.contentLength

	@property
	def body(self) -> HTTPBodyBlob:
		return self._body or HTTPBodyBlob()

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			content,
			contentType=contentType,
			contentLength=contentLength,
			headers=headers,
			status=status,
			message=message,
			protocol=self.protocol,
		)

	def __str__(self) -> str:
		query: str = f"?{self.query}" if self.query else ""
		return f"Request({self.method} {self.path}{query} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


def asBody(content: Any) -> THTTPBody | None:
	"""Wraps response content in the matching body type."""
	if content is None or isinstance(
		content, (HTTPBodyBlob, HTTPBodyFile, HTTPBodyStream)
	):
		return content
	elif isinstance(content, str):
		return HTTPBodyBlob.FromBytes(content.encode(DEFAULT_ENCODING))
	elif isinstance(content, bytes):
		return HTTPBodyBlob.FromBytes(content)
	elif isinstance(content, Path):
		return HTTPBodyFile(content.absolute())
	else:
		raise ValueError(f"Unsupported content {type(content)}:{content}")


class HTTPResponse:
	"""A response status, its headers and an optional body."""

	__slots__ = ["protocol", "status", "message", "headers", "body"]

	@staticmethod
	def Create(
		content: Any = None,
		*,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		body: THTTPBody | None = asBody(content)
		length: int | None = (
			contentLength
			if contentLength is not None or body is None
			else body.length
		)
		values: dict[str, str] = {
			headername(k): v for k, v in (headers or {}).items()
		}
		if contentType is not None:
			values["Content-Type"] = contentType
		if length is not None:
			values["Content-Length"] = str(length)
		return HTTPResponse(
			protocol,
			status,
			message or HTTP_STATUS.get(status, "Unknown status"),
			HTTPHeaders(values, contentType, length),
			body,
		)

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body

	@property
	def contentType(self) -> str | None:
		return self.getHeader("Content-Type")

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def read(self) -> bytes:
		"""Returns the body as bytes, reading file and stream bodies."""
		body = self.body
		if body is None:
			return b""
		elif isinstance(body, HTTPBodyBlob):
			return body.payload
		elif isinstance(body, HTTPBodyStream):
			return body.read()
		with open(body.path, "rb") as f:
			f.seek(body.start)
			return f.read(body.length)

	def head(self) -> bytes:
		"""Serializes the status line and headers, with the blank line that
		ends them."""
		headers: dict[str, str] = dict(self.headers.headers)
		# Statuses that can't have a body don't get a length either
		if self.status not in (204, 304):
			headers.setdefault("Content-Length", "0")
		reason: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [f"{self.protocol} {self.status} {reason}"]
		lines.extend(f"{k}: {v}" for k, v in headers.items())
		# Header values are latin-1 per RFC 9110, file names may not be ASCII
		return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1", "replace")

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.headers} {self.body})"


# EOF
