import asyncio

from ..bridge import Bridge
from ..http.model import HTTPResponse
from ..model import Service


class PythonBridge(Bridge):
	"""Processes raw HTTP requests within the current process, which is
	useful to test services or embed them without a server."""

	def request(self, data: bytes) -> bytes:
		"""Processes the raw HTTP request(s) in `data` and returns the raw
		responses, concatenated."""
		return asyncio.run(self.arequest(data))

	async def arequest(self, data: bytes) -> bytes:
		res = bytearray()
		for req in self.parse(data):
			res += await self.write(req, await self.process(req))
		return bytes(res)

	def response(self, data: bytes) -> HTTPResponse:
		"""Processes the first raw HTTP request in `data` and returns the
		response object."""
		requests = self.parse(data)
		if not requests:
			raise ValueError(f"No complete request in: {data[:80]!r}")
		return asyncio.run(self.process(requests[0]))


def run(service: Service) -> PythonBridge:
	"""Wraps the given service in a bridge processing requests in-process."""
	return PythonBridge(service)


# EOF
