from abc import ABC, abstractmethod
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import Any, Callable, Generic, Iterator, TypeVar

from ..utils.files import sniffContentType
from .status import HTTP_STATUS

T = TypeVar("T")

# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------

# --
# == HTTP Request Response API
#
# Defines the high level API functions (orthogonal to the underlying model)
# to create responses from a request.


class RangeNotSatisfiable(ValueError):
	pass


def parseRange(value: str | None, size: int) -> tuple[int, int] | None:
	"""Parses a `Range` header for a resource of `size` bytes, returning the
	first and last (inclusive) byte offsets. Returns `None` when the header
	is absent, malformed or asks for several ranges, in which case the full
	content is sent. Raises `RangeNotSatisfiable` when the range is outside
	the resource."""
	if not value or not value.startswith("bytes="):
		return None
	ranges = value[6:].strip()
	if "," in ranges or "-" not in ranges:
		return None
	first, last = (_.strip() for _ in ranges.split("-", 1))
	if not first:
		# Suffix range, ie. the last N bytes
		if not last.isdigit():
			return None
		n = int(last)
		if n == 0 or size == 0:
			raise RangeNotSatisfiable(value)
		return max(0, size - n), size - 1
	elif not first.isdigit() or (last and not last.isdigit()):
		return None
	start = int(first)
	end = int(last) if last else size - 1
	if end < start:
		return None
	if start >= size:
		raise RangeNotSatisfiable(value)
	return start, min(end, size - 1)


def isNotModified(value: str | None, mtime: float) -> bool:
	"""Tells if an `If-Modified-Since` header value is at or after `mtime`,
	at the second resolution HTTP dates have."""
	if not value:
		return False
	try:
		since = parsedate_to_datetime(value)
	except (TypeError, ValueError, IndexError):
		return False
	return int(mtime) <= since.timestamp()


class ResponseFactory(ABC, Generic[T]):
	@abstractmethod
	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> T: ...

	@abstractmethod
	def header(self, name: str) -> str | None: ...

	def empty(
		self,
		status: int = 200,
		headers: dict[str, str] | None = None,
	) -> T:
		return self.respond(
			content=None,
			contentType=None,
			status=status,
			headers=headers,
		)

	def error(
		self,
		status: int,
		content: str | None = None,
		contentType: str = "text/plain; charset=utf-8",
		headers: dict[str, str] | None = None,
	) -> T:
		message = HTTP_STATUS.get(status, "Server Error")
		return self.respond(
			content=message if content is None else content,
			contentType=contentType,
			status=status,
			message=message,
			headers=headers,
		)

	def notFound(
		self,
		content: str = "404 page not found",
		contentType: str = "text/plain; charset=utf-8",
		*,
		status: int = 404,
	) -> T:
		return self.error(status, content=content, contentType=contentType)

	def notAllowed(self, allowed: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")) -> T:
		"""A 405 response with no body, listing the allowed methods."""
		return self.empty(status=405, headers={"Allow": ", ".join(allowed)})

	def notModified(self, headers: dict[str, str] | None = None) -> T:
		return self.empty(status=304, headers=headers)

	def respondBytes(
		self,
		data: bytes,
		contentType: str | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
	) -> T:
		return self.respond(
			content=data,
			contentType=contentType,
			contentLength=len(data),
			status=status,
			headers=headers,
		)

	def respondStream(
		self,
		chunks: Callable[[], Iterator[bytes]],
		length: int,
		contentType: str | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
	) -> T:
		"""Responds with the `length` bytes yielded by `chunks()`, which is
		only called when the body is written."""
		# NOTE: Imported here as the model imports this module
		from .model import HTTPBodyStream

		return self.respond(
			content=HTTPBodyStream(chunks, length),
			contentType=contentType,
			contentLength=length,
			status=status,
			headers=headers,
		)

	def respondFile(
		self,
		path: Path | str,
		headers: dict[str, str] | None = None,
		status: int = 200,
		contentType: str | None = None,
	) -> T:
		"""Serves the file at `path`, supporting `If-Modified-Since` and single
		byte ranges. Raises `OSError` (typically `FileNotFoundError`) when
		the file can't be accessed."""
		# NOTE: Imported here as the model imports this module
		from .model import HTTPBodyFile

		p: Path = (path if isinstance(path, Path) else Path(path)).absolute()
		st = p.stat()
		size: int = st.st_size
		base_headers: dict[str, str] = {"Accept-Ranges": "bytes"}
		if st.st_mtime > 0:
			base_headers["Last-Modified"] = formatdate(st.st_mtime, usegmt=True)
		if headers:
			base_headers.update(headers)
		# Conditional requests only apply to successful responses
		if status == 200 and isNotModified(
			self.header("If-Modified-Since"), st.st_mtime
		):
			return self.notModified(base_headers)
		content_type: str = contentType or sniffContentType(p)
		try:
			byte_range = (
				parseRange(self.header("Range"), size) if status == 200 else None
			)
		except RangeNotSatisfiable:
			return self.respond(
				status=416,
				headers=base_headers | {"Content-Range": f"bytes */{size}"},
			)
		if byte_range:
			start, end = byte_range
			return self.respond(
				content=HTTPBodyFile(p, start, end - start + 1),
				contentType=content_type,
				contentLength=end - start + 1,
				status=206,
				headers=base_headers | {"Content-Range": f"bytes {start}-{end}/{size}"},
			)
		# The body is opened when written, so there is a window in which the
		# file may change after this stat.
		return self.respond(
			content=HTTPBodyFile(p),
			contentType=content_type,
			contentLength=size,
			status=status,
			headers=base_headers,
		)


# EOF
