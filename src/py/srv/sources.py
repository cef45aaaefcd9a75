"""Sources are the strategies the file server uses to satisfy a candidate
path. Each source has its own root, tells if a candidate exists and serves
it, and the file server tries its sources in order.

Serving signals failures with the `ResolutionError` hierarchy:
`ResourceNotFound` and `ResourceForbidden` make the file server move on to
the next candidate, while `ResourceFailure` aborts the request."""

import os
import zipfile
import zlib
from abc import ABC, abstractmethod
from contextlib import contextmanager
from functools import partial
from pathlib import Path
from typing import Iterator

from mypy_extensions import mypyc_attr

from .http.model import HTTPRequest, HTTPResponse
from .utils.files import contentType, extension, isFile
from .utils.logging import debug, logged

ARCHIVE_EXT: str = ".zip"

# Raised by `zipfile` for corrupt containers, corrupt or truncated
# compressed data and unsupported compression methods
ARCHIVE_ERRORS: tuple[type[Exception], ...] = (
	zipfile.BadZipFile,
	zlib.error,
	EOFError,
	NotImplementedError,
)

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class ResolutionError(Exception):
	"""Base class for errors raised when serving a candidate."""

	def __init__(self, path: str, cause: BaseException | None = None):
		super().__init__(
			f"{self.__class__.__name__}: {path}" + (f" ({cause})" if cause else "")
		)
		self.path: str = path
		self.cause: BaseException | None = cause

	@staticmethod
	def FromOSError(error: OSError, path: str | None = None) -> "ResolutionError":
		"""Maps an `OSError` to the matching resolution error."""
		p: str = path or str(error.filename or "")
		if isinstance(
			error, (FileNotFoundError, NotADirectoryError, IsADirectoryError)
		):
			return ResourceNotFound(p, error)
		elif isinstance(error, PermissionError):
			return ResourceForbidden(p, error)
		else:
			return ResourceFailure(p, error)

	@property
	def isRecoverable(self) -> bool:
		return False


class ResourceNotFound(ResolutionError):
	"""The resource is absent, resolution continues."""

	@property
	def isRecoverable(self) -> bool:
		return True


class ResourceForbidden(ResolutionError):
	"""The resource can't be read. Handled like an absent resource, so that
	its existence is not disclosed."""

	@property
	def isRecoverable(self) -> bool:
		return True


class ResourceFailure(ResolutionError):
	"""An unexpected I/O error or a corrupt resource, which aborts the
	request."""


# -----------------------------------------------------------------------------
#
# PATHS
#
# -----------------------------------------------------------------------------


def localPath(root: str, path: str) -> str:
	"""Joins the URL `path` onto the `root` directory using the host path
	semantics, normalizing redundant separators, `.` and `..`. This is not
	a security boundary: `..` segments can still go above the root."""
	parts: list[str] = [_ for _ in path.split("/") if _]
	return os.path.normpath(os.path.join(root, *parts))


def entryName(parts: list[str]) -> str:
	"""Joins path segments as an archive entry name, which always uses
	forward slashes and has no leading slash."""
	return "/".join(_ for _ in parts if _ and _ != ".")


def splitArchivePath(path: str, ext: str = ARCHIVE_EXT) -> tuple[str, str]:
	"""Splits a local path at the first segment that has the `ext`
	extension, returning the archive path (up to and including that
	segment) and the entry name within the archive:

	>>> splitArchivePath("/report/archive.zip/public/index.html")
	('/report/archive.zip', 'public/index.html')

	Both values are empty when no segment matches."""
	parts: list[str] = path.split(os.sep)
	for i, part in enumerate(parts):
		if extension(part) == ext:
			# A leading empty part keeps absolute paths absolute
			return os.sep.join(parts[: i + 1]), entryName(parts[i + 1 :])
	return "", ""


@contextmanager
def openArchive(archive: str) -> Iterator[zipfile.ZipFile]:
	"""Opens the zip `archive`, mapping the errors raised while it is open to
	`ResolutionError`s."""
	try:
		with zipfile.ZipFile(archive, "r") as zf:
			yield zf
	except OSError as e:
		raise ResolutionError.FromOSError(e, archive) from e
	except ARCHIVE_ERRORS as e:
		raise ResourceFailure(archive, e) from e


# -----------------------------------------------------------------------------
#
# SOURCES
#
# -----------------------------------------------------------------------------


@mypyc_attr(allow_interpreted_subclasses=True)
class Source(ABC):
	"""A strategy to resolve candidate paths, backed by a root directory.
	Subclasses implement `exists` and `serve`, and may override `locate`."""

	def __init__(self, root: str | Path = "."):
		self.root: str = str(root)

	def locate(self, path: str) -> str:
		"""Returns the base candidate for the given URL path."""
		return localPath(self.root, path)

	@abstractmethod
	def exists(self, candidate: str) -> bool:
		"""Tells if the candidate can be served by this source."""

	@abstractmethod
	def serve(self, request: HTTPRequest, candidate: str) -> HTTPResponse:
		"""Serves the candidate, raising a `ResolutionError` on failure."""

	def __repr__(self) -> str:
		return f"({self.__class__.__name__} {self.root!r})"


class PlainSource(Source):
	"""Serves regular files from the filesystem."""

	def exists(self, candidate: str) -> bool:
		# Directories are never served, so that `index.html` is looked up
		return isFile(candidate)

	def serve(self, request: HTTPRequest, candidate: str) -> HTTPResponse:
		return self.serveFile(request, candidate)

	def serveFile(
		self, request: HTTPRequest, path: str, status: int = 200
	) -> HTTPResponse:
		"""Serves the file at `path` with the given status. Conditional and
		range requests are only honored for a 200 status."""
		if not os.access(path, os.R_OK):
			if not os.path.exists(path):
				raise ResourceNotFound(path)
			raise ResourceForbidden(path)
		try:
			return request.respondFile(path, status=status)
		except OSError as e:
			raise ResolutionError.FromOSError(e, path) from e


class ArchiveSource(Source):
	"""Serves entries of zip archives found along the candidate path, so that
	`/docs.zip/public/index.html` serves the `public/index.html` entry of
	`docs.zip`. Archives are opened for each request.

	Entries up to `maxBuffered` bytes are decompressed when served, larger
	ones are streamed while the response is written."""

	def __init__(
		self,
		root: str | Path = ".",
		extension: str = ARCHIVE_EXT,
		*,
		maxBuffered: int = 1_000_000,
	):
		super().__init__(root)
		self.extension: str = extension
		self.maxBuffered: int = maxBuffered

	def split(self, candidate: str) -> tuple[str, str]:
		return splitArchivePath(candidate, self.extension)

	def exists(self, candidate: str) -> bool:
		archive, _ = self.split(candidate)
		return bool(archive) and isFile(archive)

	def serve(self, request: HTTPRequest, candidate: str) -> HTTPResponse:
		archive, name = self.split(candidate)
		if not archive:
			raise ResourceNotFound(candidate)
		content_type: str | None = contentType(name)
		with openArchive(archive) as zf:
			info = self.entry(zf, name, candidate)
			if info.file_size <= self.maxBuffered:
				data: bytes = zf.read(info)
				logged(debug) and debug(
					"Serving archive entry",
					Archive=archive,
					Entry=name,
					Size=len(data),
				)
				return request.respondBytes(data, contentType=content_type)
		logged(debug) and debug(
			"Streaming archive entry",
			Archive=archive,
			Entry=name,
			Size=info.file_size,
		)
		return request.respondStream(
			partial(self.chunks, archive, info.filename),
			info.file_size,
			contentType=content_type,
		)

	def entry(
		self, zf: zipfile.ZipFile, name: str, candidate: str
	) -> zipfile.ZipInfo:
		"""Returns the file entry `name` from the archive, raising
		`ResourceNotFound` when there is no such file entry."""
		try:
			info = zf.getinfo(name)
		except KeyError:
			raise ResourceNotFound(candidate) from None
		if info.is_dir():
			raise ResourceNotFound(candidate)
		# Encrypted entries can't be read without a password
		if info.flag_bits & 0x1:
			raise ResourceForbidden(candidate)
		return info

	def chunks(self, archive: str, name: str, size: int = 64_000) -> Iterator[bytes]:
		"""Yields the decompressed bytes of the entry `name`, keeping the
		archive open until the iterator is exhausted or closed."""
		with openArchive(archive) as zf, zf.open(self.entry(zf, name, name)) as f:
			while True:
				chunk = f.read(size)
				if not chunk:
					break
				yield chunk


# EOF
