from typing import Iterator, Literal

from ..utils.io import LineParser
from .model import (
	HTTPAtom,
	HTTPBodyBlob,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
	parseQuery,
)


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		"""Returns `True` when a request line was parsed, `False` when the line
		is malformed and `None` when more data is needed."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return (False if self.line.overflow else None), read
		elif not line:
			# Empty lines before a request line are tolerated (RFC 9112 §2.2)
			return None, read
		try:
			ln = line.decode("ascii")
		except UnicodeDecodeError:
			return False, read
		i = ln.find(" ")
		j = ln.rfind(" ")
		if i == -1 or j == i:
			return False, read
		p: list[str] = ln[i + 1 : j].split("?", 1)
		self.value = HTTPRequestLine(
			ln[0:i], p[0], p[1] if len(p) > 1 else "", ln[j + 1 :]
		)
		return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the number of bytes read. When the value is `None`, no
		header has been extracted, when the value is `False` it's the empty
		line ending the headers, otherwise it's the name of the parsed
		header."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			return False, read
		# Header values may be latin-1 encoded
		ln: str = line.decode("latin-1")
		i = ln.find(":")
		if i == -1:
			return None, read
		h = ln[:i].lower().strip()
		v = ln[i + 1 :].strip()
		if h == "content-length":
			try:
				n = int(v)
				self.contentLength = n if n >= 0 else None
			except ValueError:
				self.contentLength = None
		elif h == "content-type":
			self.contentType = v
		name: str = headername(h)
		self.headers[name] = v
		return name, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyLengthParser:
	"""Reads exactly `expected` bytes of body."""

	__slots__ = ["expected", "read", "data"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0
		self.data: list[bytes] = []

	def flush(self) -> HTTPBodyBlob:
		res = HTTPBodyBlob(b"".join(self.data), self.read)
		self.reset()
		return res

	def reset(self, length: int = 0) -> "BodyLengthParser":
		self.expected = length
		self.read = 0
		self.data.clear()
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		to_read: int = min(len(chunk) - start, self.expected - self.read)
		self.data.append(chunk[start : start + to_read])
		self.read += to_read
		return (True if self.read >= self.expected else None), to_read


class HTTPParser:
	"""A stateful HTTP request parser. Chunks are fed as they are received,
	and the parser yields atoms as they are complete: the request line,
	the headers and finally the request itself."""

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.body: BodyLengthParser = BodyLengthParser()
		self.parser: MessageParser | HeadersParser | BodyLengthParser = self.message
		self.requestLine: HTTPRequestLine | None = None
		self.requestHeaders: HTTPHeaders | None = None

	def reset(self) -> "HTTPParser":
		self.message.reset()
		self.headers.reset()
		self.body.reset()
		self.parser = self.message
		self.requestLine = None
		self.requestHeaders = None
		return self

	def request(self, body: HTTPBodyBlob | None = None) -> HTTPRequest:
		line = self.requestLine
		headers = self.requestHeaders
		if line is None:
			raise RuntimeError("Parser has no request line")
		self.parser = self.message.reset()
		return HTTPRequest(
			method=line.method,
			path=line.path,
			query=parseQuery(line.query) if line.query else None,
			headers=headers or HTTPHeaders({}),
			body=body or HTTPBodyBlob(),
			protocol=line.protocol,
		)

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			# A partially read chunk doesn't need to be fed again, the
			# underlying parsers buffer until they are flushed.
			value, read = self.parser.feed(chunk, offset)
			offset += read
			if self.parser is self.message:
				if value is False:
					self.reset()
					yield HTTPProcessingStatus.BadFormat
					return
				elif value:
					line = self.message.flush()
					self.requestLine = line
					self.requestHeaders = None
					if line is not None:
						yield line
						self.parser = self.headers.reset()
			elif self.parser is self.headers:
				if value is None and self.headers.line.overflow:
					self.reset()
					yield HTTPProcessingStatus.BadFormat
					return
				elif value is False:
					headers = self.headers.flush()
					self.requestHeaders = headers
					yield headers
					if headers.contentLength:
						# The body is read so that the next pipelined
						# request starts at the right offset.
						self.parser = self.body.reset(headers.contentLength)
						yield HTTPProcessingStatus.Body
					else:
						yield self.request()
			elif self.parser is self.body:
				if value:
					yield self.request(self.body.flush())
			else:
				raise RuntimeError(f"Unsupported parser: {self.parser}")


# EOF
