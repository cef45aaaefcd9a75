"""
Layered Sources Example

This serves a site built out of several directories: files from the
root win, then the theme directory is tried, then archives under it.

Usage:
    python layered.py SITE THEME

Test with:
    curl http://localhost:8000/style.css     # From SITE, else from THEME
"""

import sys

from srv import ArchiveSource, FileServer, PlainSource, run
from srv.utils.logging import info

if __name__ == "__main__":
	site: str = sys.argv[1] if len(sys.argv) > 1 else "."
	theme: str = sys.argv[2] if len(sys.argv) > 2 else "theme"
	service = FileServer(site).add(PlainSource(theme)).add(ArchiveSource(theme))
	info("Serving layered sources", Sources=[repr(_) for _ in service.sources])
	run(service)

# EOF
