import asyncio
import errno
import socket
import threading
from signal import SIGINT, SIGTERM
from typing import Any, Callable, Coroutine, Literal, NamedTuple

from .config import HOST, LOG_REQUESTS, PORT
from .http.model import (
	HTTPBodyFile,
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .http.status import HTTP_STATUS
from .model import Service
from .utils.logging import debug, error, event, exception, info, logged, warning


class ServerOptions(NamedTuple):
	host: str = HOST
	port: int = PORT
	backlog: int = 1_000
	# How often the accept loop checks if it should stop, in seconds
	polling: float = 1.0
	readsize: int = 4_096
	# How long an idle connection is kept open, in seconds
	keepalive: float = 60.0
	logRequests: bool = LOG_REQUESTS
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()


def closingResponse(status: int, text: str = "") -> bytes:
	"""A complete response, sent right before the connection is closed."""
	lines: list[str] = [f"HTTP/1.1 {status} {HTTP_STATUS[status]}"]
	if text:
		lines += ["Content-Type: text/plain", f"Content-Length: {len(text)}"]
	lines += ["Connection: close", "", text]
	return "\r\n".join(lines).encode("ascii")


SERVER_NOCONTENT: bytes = closingResponse(204)
SERVER_BADREQUEST: bytes = closingResponse(400, "Bad Request")
SERVER_ERROR: bytes = closingResponse(500, "Internal Server Error")


def onLoopException(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
	e = context.get("exception")
	if e:
		exception(e)
	else:
		warning("Event loop error", Message=context.get("message"))


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Writes bodies to a non-blocking socket, files being sent with
	`sendfile` where the platform has it."""

	def __init__(self, client: socket.socket, loop: asyncio.AbstractEventLoop):
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True

	async def _writeFile(self, body: HTTPBodyFile, size: int = 64_000) -> bool:
		with open(body.path, "rb") as f:
			await self.loop.sock_sendfile(self.client, f, body.start, body.size)
		return True


class Connection:
	"""Keeps count of the requests received and answered on a client
	connection."""

	__slots__ = ["requests", "responses", "isOpen"]

	def __init__(self) -> None:
		self.requests: int = 0
		self.responses: int = 0
		self.isOpen: bool = True

	@property
	def isPending(self) -> bool:
		return self.requests != self.responses

	@staticmethod
	def KeepsAlive(request: HTTPRequest) -> bool:
		"""Tells if the client expects the connection to stay open after the
		response to `request`."""
		if (request.header("Connection") or "").lower() == "close":
			return False
		return request.protocol != "HTTP/1.0"


class AIOSocketServer:
	"""An HTTP/1.1 server working directly with non-blocking sockets."""

	@classmethod
	async def OnRequest(
		cls,
		service: Service,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		"""Serves the requests of `client` until it closes the connection,
		stays idle for longer than the keep-alive or asks to close."""
		conn = Connection()
		parser = HTTPParser()
		writer = AIOSocketBodyWriter(client, loop)
		buffer = bytearray(options.readsize)
		try:
			while conn.isOpen:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer), timeout=options.keepalive
					)
				except asyncio.TimeoutError:
					if conn.isPending:
						warning(
							"Client timed out",
							Requests=conn.requests,
							Responses=conn.responses,
						)
					break
				# Receiving nothing means the client closed its side
				if not n:
					break
				# Pipelined requests may arrive in the same read
				for atom in parser.feed(bytes(buffer[:n])):
					if atom is HTTPProcessingStatus.BadFormat:
						warning("Malformed request", Requests=conn.requests)
						await writer.write(SERVER_BADREQUEST)
						conn.isOpen = False
					elif isinstance(atom, HTTPRequest):
						conn.requests += 1
						if options.logRequests:
							event(atom.method, atom.path)
						if await cls.SendResponse(atom, service, writer) is None:
							conn.isOpen = False
							break
						conn.responses += 1
						if not Connection.KeepsAlive(atom):
							conn.isOpen = False
							break
		except (BrokenPipeError, ConnectionResetError):
			# Client did an early close
			pass
		except Exception as e:
			exception(e)
		finally:
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		service: Service,
		writer: HTTPBodyWriter,
	) -> HTTPResponse | None:
		"""Processes the request with the service and sends the response
		using the given writer. Returns `None` when processing failed, in
		which case a 500 error has been sent."""
		try:
			r: HTTPResponse | Coroutine[Any, Any, HTTPResponse] = service.process(
				request
			)
			res: HTTPResponse | None = r if isinstance(r, HTTPResponse) else await r
		except Exception as e:
			exception(e, f"Failed to process {request.method} {request.path}")
			await writer.write(SERVER_ERROR)
			return None
		if res is None:
			warning(
				"Service did not return a response",
				Method=request.method,
				Path=request.path,
			)
			await writer.write(SERVER_NOCONTENT)
			return None
		logged(debug) and debug(
			"Sending response", Path=request.path, Status=res.status
		)
		await writer.write(res.head())
		# Responses to HEAD requests have no body
		if request.method != "HEAD":
			await writer.write(res.body)
		return res

	@staticmethod
	def Bind(options: ServerOptions) -> tuple[socket.socket, int]:
		"""Returns a socket bound to the configured port, or to one of the
		four following ports when it is taken."""
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		failure: OSError | None = None
		for port in range(options.port, options.port + 5):
			try:
				server.bind((options.host, port))
			except OSError as e:
				if failure is None:
					warning(
						f"Could not bind to {options.host}:{port}, trying other ports."
					)
					failure = e
				continue
			if failure:
				info("Found alternate available port", Port=port)
			return server, port
		error(
			f"Unable to bind to {options.host}:{options.port}, aborting.", "HOSTPORTERR"
		)
		server.close()
		raise OSError(f"No port available from {options.port}") from failure

	@classmethod
	async def Serve(
		cls,
		service: Service,
		options: ServerOptions = OPTIONS,
	) -> None:
		"""Accepts connections until stopped by a signal or by the options'
		condition, serving each client in its own task."""
		server, port = cls.Bind(options)
		server.listen(options.backlog)
		server.setblocking(False)

		loop = asyncio.get_running_loop()
		stopping = asyncio.Event()
		# Signal handlers can only be set from the main thread
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			for sig in (SIGINT, SIGTERM):
				loop.add_signal_handler(sig, stopping.set)
		loop.set_exception_handler(onLoopException)

		tasks: set[asyncio.Task[None]] = set()
		await service.start()
		info("Server listening", Host=options.host, Port=port, Service=repr(service))
		try:
			while not stopping.is_set():
				if options.condition and not options.condition():
					break
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
				except asyncio.TimeoutError:
					continue
				except OSError as e:
					# Out of file descriptors, open connections need to close
					if e.errno == errno.EMFILE:
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				task = loop.create_task(
					cls.OnRequest(service, client, loop=loop, options=options)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
			info("Server stopping…")
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)
			await service.stop()


def run(
	service: Service,
	host: str = HOST,
	port: int = PORT,
	*,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	polling: float = OPTIONS.polling,
	logRequests: bool = LOG_REQUESTS,
	keepalive: float = OPTIONS.keepalive,
) -> None:
	"""Runs the service on an HTTP server until interrupted."""
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
	)
	try:
		asyncio.run(AIOSocketServer.Serve(service, options))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
