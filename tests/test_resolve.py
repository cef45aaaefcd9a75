from pathlib import Path

import pytest

from srv import ArchiveSource, FileServer, PlainSource, ResourceFailure
from conftest import archive, corruptEntry, write


def body(server: FileServer, path: str) -> bytes:
	res = server.handle("GET", path)
	assert res.status == 200, f"{path} → {res.status}"
	return res.read()


def test_exact_match(site: Path):
	server = FileServer(site)
	assert body(server, "/about.html") == b"<h1>About</h1>"
	assert body(server, "/style.css") == b"body{}"


def test_html_suffix(site: Path):
	server = FileServer(site)
	assert body(server, "/about") == b"<h1>About</h1>"


def test_html_suffix_is_tried_with_an_extension(site: Path):
	# There is no shortcut for paths that already have an extension
	assert body(FileServer(site), "/v1.2") == b"<h1>Version</h1>"


def test_directory_index(site: Path):
	server = FileServer(site)
	assert body(server, "/notes") == b"<h1>Notes</h1>"
	assert body(server, "/") == b"<h1>Home</h1>"


def test_html_suffix_before_directory_index(site: Path):
	assert body(FileServer(site), "/docs/intro") == b"<h1>Intro</h1>"


def test_directories_are_not_served(site: Path):
	# `docs` is a directory, so its index is served instead
	assert body(FileServer(site), "/docs") == b"<h1>Docs</h1>"


def test_not_found_page(site: Path):
	res = FileServer(site).handle("GET", "/nowhere/to/be/found")
	assert res.status == 404
	assert res.read() == b"<h1>Not here</h1>"
	assert (res.contentType or "").startswith("text/html")


def test_not_found_page_legacy_status(site: Path):
	res = FileServer(site, notFoundStatus=200).handle("GET", "/nowhere")
	assert res.status == 200
	assert res.read() == b"<h1>Not here</h1>"


def test_not_found_without_page(tmp_path: Path):
	root = write(tmp_path / "empty", {"index.html": "home"})
	res = FileServer(root).handle("GET", "/nowhere")
	assert res.status == 404
	assert res.read() == b"404 page not found"


def test_not_found_page_only_comes_from_root(tmp_path: Path):
	root = write(tmp_path / "root", {"index.html": "home"})
	extra = write(tmp_path / "extra", {"404.html": "extra 404"})
	res = FileServer(root, [PlainSource(extra)]).handle("GET", "/nowhere")
	assert res.status == 404
	assert res.read() == b"404 page not found"


def test_trailing_slash_allowed_by_default(site: Path):
	assert body(FileServer(site), "/notes/") == b"<h1>Notes</h1>"


def test_trailing_slash_rejected(site: Path):
	server = FileServer(site, rejectTrailingSlash=True)
	res = server.handle("GET", "/notes/")
	assert res.status == 404
	assert res.read() == b"<h1>Not here</h1>"
	# The root itself is not affected
	assert body(server, "/") == b"<h1>Home</h1>"


def test_percent_decoding(site: Path):
	assert body(FileServer(site), "/with%20space") == b"<h1>Space</h1>"


def test_query_is_ignored(site: Path):
	assert body(FileServer(site), "/about?utm=1") == b"<h1>About</h1>"


def test_dot_segments_are_normalized(site: Path):
	server = FileServer(site)
	assert body(server, "/docs/../about") == b"<h1>About</h1>"
	assert body(server, "//docs///intro") == b"<h1>Intro</h1>"


def test_idempotence(site: Path):
	server = FileServer(site, [ArchiveSource(site)])
	for path in ("/about", "/docs/intro", "/archive.zip/public", "/nowhere"):
		a = server.handle("GET", path)
		b = server.handle("GET", path)
		assert (a.status, a.read()) == (b.status, b.read())


def test_archive_entry(site: Path):
	server = FileServer(site, [ArchiveSource(site)])
	res = server.handle("GET", "/archive.zip/public/index.html")
	assert res.status == 200
	assert res.read() == b"<h1>Archived</h1>"
	assert (res.contentType or "").startswith("text/html")


def test_archive_entry_with_suffix_resolution(site: Path):
	server = FileServer(site, [ArchiveSource(site)])
	assert body(server, "/archive.zip/public") == b"<h1>Archived</h1>"
	assert body(server, "/archive.zip/public/guide") == b"<h1>Guide</h1>"


def test_archive_entry_content_type(site: Path):
	server = FileServer(site, [ArchiveSource(site)])
	res = server.handle("GET", "/archive.zip/public/app.js")
	assert (res.contentType or "").startswith("text/javascript")
	res = server.handle("GET", "/archive.zip/public/data.unknownext")
	assert res.status == 200
	assert res.contentType is None


def test_archive_itself_is_served_by_root(site: Path):
	server = FileServer(site, [ArchiveSource(site)])
	res = server.handle("GET", "/archive.zip")
	assert res.status == 200
	assert res.read() == (site / "archive.zip").read_bytes()


def test_archive_missing_entry_falls_through(site: Path):
	server = FileServer(site, [ArchiveSource(site)])
	res = server.handle("GET", "/archive.zip/nothing")
	assert res.status == 404
	assert res.read() == b"<h1>Not here</h1>"


def test_archives_need_an_archive_source(site: Path):
	res = FileServer(site).handle("GET", "/archive.zip/public/index.html")
	assert res.status == 404


def test_nested_archive_path(tmp_path: Path):
	root = write(tmp_path / "root", {})
	archive(root / "reports" / "2024.zip", {"q1/index.html": "Q1"})
	server = FileServer(root, [ArchiveSource(root)])
	assert body(server, "/reports/2024.zip/q1") == b"Q1"


def test_corrupt_archive_aborts(tmp_path: Path):
	root = write(tmp_path / "root", {"broken.zip": b"this is not a zip file"})
	server = FileServer(root, [ArchiveSource(root)])
	with pytest.raises(ResourceFailure):
		server.handle("GET", "/broken.zip/index.html")


def test_corrupt_archive_entry_aborts(tmp_path: Path):
	root = write(tmp_path / "root", {})
	page = "".join(f"<li>Item {i}</li>" for i in range(200))
	corruptEntry(archive(root / "bad.zip", {"index.html": page}), "index.html")
	server = FileServer(root, [ArchiveSource(root)])
	with pytest.raises(ResourceFailure):
		server.handle("GET", "/bad.zip/index.html")


def test_source_precedence(tmp_path: Path):
	root = write(tmp_path / "root", {})
	first = write(tmp_path / "first", {"x.html": "first"})
	second = write(tmp_path / "second", {"x": "second"})
	server = FileServer(root, [PlainSource(first), PlainSource(second)])
	assert body(server, "/x") == b"first"


def test_root_source_comes_first(tmp_path: Path):
	root = write(tmp_path / "root", {"x/index.html": "root"})
	extra = write(tmp_path / "extra", {"x": "extra"})
	assert body(FileServer(root, [PlainSource(extra)]), "/x") == b"root"


def test_lower_priority_source_supplies_index(tmp_path: Path):
	root = write(tmp_path / "root", {})
	first = write(tmp_path / "first", {"other.html": "other"})
	second = write(tmp_path / "second", {"x/index.html": "index"})
	server = FileServer(root, [PlainSource(first), PlainSource(second)])
	assert body(server, "/x") == b"index"


def test_add_and_remove_sources(tmp_path: Path):
	root = write(tmp_path / "root", {})
	extra = PlainSource(write(tmp_path / "extra", {"x.html": "extra"}))
	server = FileServer(root)
	assert server.handle("GET", "/x").status == 404
	assert server.add(extra) is server
	assert server.sources == (server.rootSource, extra)
	assert body(server, "/x") == b"extra"
	assert server.remove(extra) is True
	assert server.remove(extra) is False
	assert server.handle("GET", "/x").status == 404
	with pytest.raises(ValueError):
		server.remove(server.rootSource)


# EOF
