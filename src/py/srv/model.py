from typing import Any, Coroutine, Optional

from mypy_extensions import mypyc_attr

from .http.model import HTTPRequest, HTTPResponse

# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


@mypyc_attr(allow_interpreted_subclasses=True)
class Service:
	"""A service processes requests into responses. The server drives a
	single service, calling `start` before accepting connections and
	`stop` after the last one."""

	def __init__(self, name: Optional[str] = None) -> None:
		self.name: str = name or self.__class__.__name__
		self.isRunning: bool = False
		self.init()

	def init(self) -> None:
		pass

	async def start(self) -> None:
		"""Can be overridden to do asynchronous pre-start work"""
		self.isRunning = True

	async def stop(self) -> None:
		"""Can be overridden to do asynchronous post-stop work"""
		self.isRunning = False

	def process(
		self, request: HTTPRequest
	) -> HTTPResponse | Coroutine[Any, Any, HTTPResponse]:
		raise NotImplementedError

	def __repr__(self) -> str:
		return f"(Service {self.name}{' :running' if self.isRunning else ''})"


# EOF
