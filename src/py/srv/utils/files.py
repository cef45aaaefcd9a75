import mimetypes
import os
import stat
from pathlib import Path

mimetypes.init()

# Overrides for the system table, which varies across platforms and
# misses a few types that matter for static sites.
MIME_TYPES: dict[str, str] = dict(
	avif="image/avif",
	bz2="application/x-bzip",
	css="text/css; charset=utf-8",
	gz="application/x-gzip",
	htm="text/html; charset=utf-8",
	html="text/html; charset=utf-8",
	js="text/javascript; charset=utf-8",
	json="application/json",
	md="text/markdown; charset=utf-8",
	mjs="text/javascript; charset=utf-8",
	svg="image/svg+xml",
	txt="text/plain; charset=utf-8",
	wasm="application/wasm",
	webmanifest="application/manifest+json",
	webp="image/webp",
	xml="text/xml; charset=utf-8",
)

TEXT_PLAIN: str = "text/plain; charset=utf-8"
OCTET_STREAM: str = "application/octet-stream"


def extension(name: str) -> str:
	"""Returns the extension of the last segment of `name`, starting at the
	last dot (`archive.zip` and `.zip` both give `.zip`), or an empty
	string."""
	base = name.rsplit("/", 1)[-1].rsplit(os.sep, 1)[-1]
	i = base.rfind(".")
	return base[i:] if i != -1 else ""


def contentType(path: Path | str) -> str | None:
	"""Guesses the content type from the extension of the given path,
	returning `None` for unknown extensions."""
	ext = extension(str(path))
	if not ext:
		return None
	return MIME_TYPES.get(ext[1:].lower()) or mimetypes.guess_type(f"_{ext}")[0]


def isText(path: Path | str, size: int = 1024) -> bool:
	"""Check if a file is likely a text file by examining its content."""
	with open(path, "rb") as f:
		s = f.read(size)
	if b"\x00" in s:
		return False
	try:
		s.decode("utf-8")
		return True
	except UnicodeDecodeError as e:
		# The sample may cut a multibyte sequence at the end
		return e.start >= len(s) - 3 and e.reason == "unexpected end of data"


def sniffContentType(path: Path | str) -> str:
	"""Returns the content type from the extension, falling back on sniffing
	the first bytes of the file."""
	return contentType(path) or (TEXT_PLAIN if isText(path) else OCTET_STREAM)


def isFile(path: Path | str) -> bool:
	"""Tells if `path` exists and is a regular file (following symlinks)."""
	try:
		return stat.S_ISREG(os.stat(path).st_mode)
	except (OSError, ValueError):
		return False


# EOF
