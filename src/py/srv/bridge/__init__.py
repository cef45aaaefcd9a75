from typing import Literal

from ..http.model import HTTPBodyWriter, HTTPProcessingStatus, HTTPRequest, HTTPResponse
from ..http.parser import HTTPParser
from ..model import Service


class BufferBodyWriter(HTTPBodyWriter):
	"""A body writer that accumulates what is written in memory."""

	def __init__(self) -> None:
		super().__init__()
		self.data: bytearray = bytearray()

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk:
			self.data += chunk
		return True


class Bridge:
	"""Bridges a service with another transport than sockets."""

	def __init__(self, service: Service):
		if not service:
			raise ValueError("Bridge has not been given a service")
		self.service: Service = service

	async def process(self, request: HTTPRequest) -> HTTPResponse:
		r = self.service.process(request)
		return r if isinstance(r, HTTPResponse) else await r

	def parse(self, data: bytes) -> list[HTTPRequest]:
		"""Parses the requests contained in the given raw HTTP payload."""
		requests: list[HTTPRequest] = []
		for atom in HTTPParser().feed(data):
			if atom is HTTPProcessingStatus.BadFormat:
				raise ValueError(f"Malformed request: {data[:80]!r}")
			elif isinstance(atom, HTTPRequest):
				requests.append(atom)
		return requests

	async def write(self, request: HTTPRequest, response: HTTPResponse) -> bytes:
		"""Serializes the response as it would be sent over a socket."""
		writer = BufferBodyWriter()
		await writer.write(response.head())
		if request.method != "HEAD":
			await writer.write(response.body)
		return bytes(writer.data)


# EOF
