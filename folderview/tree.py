"""
Tree listing for folderview
"""

import os
import logging
from typing import Iterable, List

import aiofiles.os

from .errors import NotFound
from .models import EntryKind, TreeEntry
from .paths import root_name, to_native, to_slash

logger = logging.getLogger(__name__)


def list_roots(roots: Iterable[str]) -> List[TreeEntry]:
    """One folder entry per configured root, in configuration order"""
    return [
        TreeEntry(
            name=root_name(root),
            kind=EntryKind.FOLDER,
            path=to_slash(os.path.abspath(root)),
        )
        for root in roots
    ]


async def list_directory(dir_path, client_path: str) -> List[TreeEntry]:
    """
    List the immediate children of a directory

    Entries come back in filesystem enumeration order. Child paths are built
    from the path the client asked for, so they stay in the client's terms.

    Args:
        dir_path: Resolved directory path
        client_path: Directory path as sent by the client

    Raises:
        NotFound: If the directory cannot be read
    """
    parent = os.path.normpath(to_native(client_path))
    entries = []

    try:
        with await aiofiles.os.scandir(dir_path) as it:
            for entry in it:
                try:
                    is_dir = entry.is_dir(follow_symlinks=False)
                except OSError:
                    is_dir = False

                entries.append(TreeEntry(
                    name=entry.name,
                    kind=EntryKind.FOLDER if is_dir else EntryKind.FILE,
                    path=to_slash(os.path.join(parent, entry.name)),
                ))
    except OSError as e:
        raise NotFound(f"{client_path}: {e.strerror or e}")

    logger.debug("Listed %d entries in %s", len(entries), dir_path)
    return entries
