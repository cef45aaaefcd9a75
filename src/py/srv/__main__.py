import argparse
import os
import sys

from . import config
from .server import run
from .services.files import FileServer
from .sources import ArchiveSource, PlainSource
from .utils.logging import LogLevel, info, setLevel


def parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="srv",
		description="Serves static files, resolving paths like static hosting platforms",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument(
		"root",
		metavar="ROOT",
		nargs="?",
		default=config.ROOT,
		help="The directory to serve",
	)
	parser.add_argument(
		"-H", "--host", action="store", dest="host", default=config.HOST
	)
	parser.add_argument(
		"-p",
		"--port",
		action="store",
		dest="port",
		type=int,
		help="Specifies the port",
		default=config.PORT,
	)
	parser.add_argument(
		"-s",
		"--source",
		action="append",
		dest="sources",
		metavar="DIR",
		help="Directory to look into after the root (can be repeated)",
	)
	parser.add_argument(
		"--no-archives",
		action="store_false",
		dest="archives",
		default=config.ARCHIVES,
		help="Don't serve the contents of .zip archives",
	)
	parser.add_argument(
		"--reject-trailing-slash",
		action="store_true",
		dest="rejectTrailingSlash",
		default=config.REJECT_TRAILING_SLASH,
		help="Serve the not-found page for paths ending with a slash",
	)
	parser.add_argument(
		"--not-found-status",
		action="store",
		dest="notFoundStatus",
		type=int,
		default=config.NOT_FOUND_STATUS,
		help="Status of the not-found page",
	)
	parser.add_argument(
		"-q",
		"--quiet",
		action="store_true",
		dest="quiet",
		help="Only log warnings and errors",
	)
	return parser


def server(options: argparse.Namespace) -> FileServer:
	"""Creates the file server configured by the parsed command line options."""
	if options.quiet:
		setLevel(LogLevel.Warning)
	if not os.path.isdir(options.root):
		raise SystemExit(f"srv: root is not a directory: {options.root}")
	service = FileServer(
		options.root,
		rejectTrailingSlash=options.rejectTrailingSlash,
		notFoundStatus=options.notFoundStatus,
	)
	# Archives in the root are looked up before the extra directories
	if options.archives:
		service.add(ArchiveSource(options.root))
	for path in options.sources or ():
		service.add(PlainSource(path))
		if options.archives:
			service.add(ArchiveSource(path))
	return service


def main(args: list[str] | None = None) -> None:
	options = parser().parse_args(args=sys.argv[1:] if args is None else args)
	service = server(options)
	info(
		"Serving files",
		Root=os.path.abspath(service.root),
		Sources=len(service.sources),
	)
	run(
		service,
		host=options.host,
		port=options.port,
		logRequests=config.LOG_REQUESTS and not options.quiet,
	)


if __name__ == "__main__":
	main()

# EOF
