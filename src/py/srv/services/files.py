import os.path
from pathlib import Path
from typing import ClassVar, Iterable, Iterator
from urllib.parse import unquote

from mypy_extensions import mypyc_attr

from ..http.model import HTTPRequest, HTTPResponse
from ..model import Service
from ..sources import PlainSource, ResolutionError, Source, localPath
from ..utils.logging import debug, logged


@mypyc_attr(allow_interpreted_subclasses=True)
class FileServer(Service):
	"""Serves static files out of a root directory, resolving URL paths like
	GitHub Pages, Netlify or the default Nginx configuration do. For each
	source, in order, the following candidates are tried:

	- the exact path, `/docs/intro` → `docs/intro`
	- the path with an `.html` suffix → `docs/intro.html`
	- the path as a directory with an index → `docs/intro/index.html`

	The first source is always a plain source over the root, extra sources
	are tried after it in the order they were added. When nothing matches,
	`404.html` from the root is served.

	Checking that a file exists and serving it are separate operations, a
	file changed in between is served as it is when read."""

	METHODS: ClassVar[tuple[str, ...]] = ("GET", "HEAD", "OPTIONS")

	def __init__(
		self,
		root: str | Path = ".",
		sources: Iterable[Source] = (),
		*,
		rejectTrailingSlash: bool = False,
		notFoundStatus: int = 404,
		notFoundPage: str = "404.html",
		name: str | None = None,
	):
		self.root: str = str(root)
		self.rootSource: PlainSource = PlainSource(self.root)
		self.extraSources: list[Source] = list(sources)
		self.rejectTrailingSlash: bool = rejectTrailingSlash
		self.notFoundStatus: int = notFoundStatus
		self.notFoundPage: str = notFoundPage
		super().__init__(name)

	@property
	def sources(self) -> tuple[Source, ...]:
		"""The sources in the order they are tried, root source first."""
		return (self.rootSource, *self.extraSources)

	def add(self, source: Source) -> "FileServer":
		"""Adds a source, tried after the ones already there. Sources should
		not be added while requests are processed."""
		self.extraSources.append(source)
		return self

	def remove(self, source: Source) -> bool:
		if source is self.rootSource:
			raise ValueError(f"The root source can't be removed: {source}")
		if source in self.extraSources:
			self.extraSources.remove(source)
			return True
		return False

	@staticmethod
	def candidates(base: str) -> Iterator[str]:
		yield base
		yield base + ".html"
		yield os.path.join(base, "index.html")

	def handle(
		self, method: str, path: str, headers: dict[str, str] | None = None
	) -> HTTPResponse:
		"""Processes a request given as a method and a URL path."""
		return self.process(HTTPRequest.FromPath(method, path, headers))

	def process(self, request: HTTPRequest) -> HTTPResponse:
		method: str = request.method.upper()
		if method == "GET":
			return self.resolve(request)
		elif method == "HEAD":
			return request.empty()
		elif method == "OPTIONS":
			return request.empty(headers={"Allow": ", ".join(self.METHODS)})
		else:
			return request.notAllowed(self.METHODS)

	def resolve(self, request: HTTPRequest) -> HTTPResponse:
		"""Returns the response for the first candidate of the first source
		that has one, or the not-found page. Raises `ResourceFailure` when
		a source fails with anything else than a missing or unreadable
		resource."""
		path: str = unquote(request.path)
		if self.rejectTrailingSlash and len(path) > 1 and path.endswith("/"):
			return self.notFound(request)
		for source in self.sources:
			res = self.resolveWith(source, request, path)
			if res is not None:
				return res
		return self.notFound(request)

	def resolveWith(
		self, source: Source, request: HTTPRequest, path: str
	) -> HTTPResponse | None:
		for candidate in self.candidates(source.locate(path)):
			if not source.exists(candidate):
				continue
			try:
				res = source.serve(request, candidate)
			except ResolutionError as e:
				if not e.isRecoverable:
					raise
				logged(debug) and debug(
					"Candidate skipped", Source=repr(source), Reason=str(e)
				)
				continue
			logged(debug) and debug(
				"Candidate served",
				Path=path,
				Source=repr(source),
				Candidate=candidate,
			)
			return res
		return None

	def notFound(self, request: HTTPRequest) -> HTTPResponse:
		"""Serves the not-found page from the root, bypassing the extra
		sources. Answers a plain text 404 when the page is missing."""
		page: str = localPath(self.root, self.notFoundPage)
		if self.rootSource.exists(page):
			try:
				return self.rootSource.serveFile(
					request, page, status=self.notFoundStatus
				)
			except ResolutionError as e:
				if not e.isRecoverable:
					raise
		return request.notFound()

	def __repr__(self) -> str:
		return f"(FileServer {' '.join(repr(_) for _ in self.sources)})"


# EOF
