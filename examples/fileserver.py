"""
Static File Server Example

This serves the current directory the way static hosting does, so that
`/docs/intro` serves `docs/intro.html` or `docs/intro/index.html`.
Features shown:
- A file server with the default root source
- Zip archives browsable as directories
- A custom not-found page

Usage:
    python fileserver.py [ROOT]

Test with:
    curl http://localhost:8000/              # Serves index.html
    curl http://localhost:8000/about         # Serves about.html
    curl http://localhost:8000/site.zip/docs # Serves docs/index.html from site.zip
"""

import sys

from srv import ArchiveSource, FileServer, run
from srv.utils.logging import info


class StaticFileServer(FileServer):
	"""A file server that also looks into zip archives under its root."""

	def __init__(self, root: str = "."):
		super().__init__(root, [ArchiveSource(root)])
		info("Static file server initialized", Root=root)


if __name__ == "__main__":
	root = sys.argv[1] if len(sys.argv) > 1 else "."
	info("Starting static file server")
	info("Access examples: http://localhost:8000/about")
	run(StaticFileServer(root))

# EOF
