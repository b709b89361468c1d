"""
Tests for folder tree listing
"""

import asyncio
import os

import pytest

from folderview.errors import NotFound
from folderview.models import EntryKind
from folderview.paths import to_slash
from folderview.tree import list_directory, list_roots


def test_list_roots_in_order(tmp_path):
    """Each root becomes a folder entry named after its last segment"""

    a = tmp_path / "data" / "a"
    b = tmp_path / "data" / "b"

    entries = list_roots([str(a), str(b)])
    assert [e.name for e in entries] == ["a", "b"]
    assert all(e.kind is EntryKind.FOLDER for e in entries)
    assert [e.path for e in entries] == [to_slash(a), to_slash(b)]


def test_list_directory(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "file.txt").write_text("x")

    entries = asyncio.run(list_directory(tmp_path, to_slash(tmp_path)))
    by_name = {e.name: e for e in entries}

    assert by_name["sub"].kind is EntryKind.FOLDER
    assert by_name["file.txt"].kind is EntryKind.FILE
    assert by_name["sub"].path == to_slash(tmp_path / "sub")


def test_client_path_is_normalized(tmp_path):
    """Children hang off the normalized client path"""

    (tmp_path / "child").write_text("x")

    entries = asyncio.run(list_directory(tmp_path, to_slash(tmp_path) + "/./"))
    assert entries[0].path == to_slash(tmp_path / "child")


def test_symlinked_directory_listed_as_file(tmp_path):
    target = tmp_path / "target"
    target.mkdir()
    try:
        os.symlink(target, tmp_path / "link")
    except (OSError, NotImplementedError):
        pytest.skip("Symlinks not supported on this system")

    entries = asyncio.run(list_directory(tmp_path, to_slash(tmp_path)))
    assert {e.name: e.kind for e in entries}["link"] is EntryKind.FILE


def test_missing_directory(tmp_path):
    with pytest.raises(NotFound):
        asyncio.run(list_directory(tmp_path / "missing", to_slash(tmp_path / "missing")))
