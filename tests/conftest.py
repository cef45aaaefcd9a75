import zipfile
from pathlib import Path

import pytest


def write(root: Path, files: dict[str, str | bytes]) -> Path:
	"""Creates the given files under `root`, with their parent directories."""
	root.mkdir(parents=True, exist_ok=True)
	for name, content in files.items():
		path = root / name
		path.parent.mkdir(parents=True, exist_ok=True)
		if isinstance(content, str):
			path.write_text(content, encoding="utf8")
		else:
			path.write_bytes(content)
	return root


def archive(path: Path, entries: dict[str, str | bytes]) -> Path:
	"""Creates a zip archive at `path` with the given entries."""
	path.parent.mkdir(parents=True, exist_ok=True)
	with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
		for name, content in entries.items():
			zf.writestr(name, content)
	return path


def corruptEntry(path: Path, name: str) -> Path:
	"""Overwrites the start of the compressed data of the entry `name` in
	the archive at `path`."""
	with zipfile.ZipFile(path) as zf:
		info = zf.getinfo(name)
	data = bytearray(path.read_bytes())
	# The local header is 30 bytes, followed by the name and extra field
	start = info.header_offset + 30 + len(info.filename.encode()) + len(info.extra)
	data[start : start + 20] = b"\xff" * 20
	path.write_bytes(bytes(data))
	return path


@pytest.fixture
def site(tmp_path: Path) -> Path:
	root = write(
		tmp_path / "site",
		{
			"index.html": "<h1>Home</h1>",
			"about.html": "<h1>About</h1>",
			"404.html": "<h1>Not here</h1>",
			"docs/index.html": "<h1>Docs</h1>",
			"docs/intro.html": "<h1>Intro</h1>",
			"docs/intro/index.html": "<h1>Intro index</h1>",
			"notes/index.html": "<h1>Notes</h1>",
			"v1.2.html": "<h1>Version</h1>",
			"style.css": "body{}",
			"LICENSE": "MIT License\n",
			"blob": b"\x00\x01\x02\x03",
			"with space.html": "<h1>Space</h1>",
		},
	)
	archive(
		root / "archive.zip",
		{
			"public/index.html": "<h1>Archived</h1>",
			"public/app.js": "console.log(1)",
			"public/guide.html": "<h1>Guide</h1>",
			"public/data.unknownext": "?",
		},
	)
	return root


# EOF
