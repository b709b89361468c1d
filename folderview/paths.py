"""
Path resolution for folderview

Client paths always use forward slashes. They are converted to the host's
native separator before touching the filesystem and confined to the
configured folder roots.
"""

import os
import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple

from .errors import Forbidden, InvalidInput, NotFound

logger = logging.getLogger(__name__)

VIRTUAL_ROOTS = {"", ".", "/", os.sep}


def to_native(raw_path: str) -> str:
    """Convert a forward-slash path to the host's separator"""
    if os.sep == "/":
        return raw_path
    return raw_path.replace("/", os.sep)


def to_slash(native_path) -> str:
    """Convert a host path to forward-slash form"""
    path = str(native_path)
    if os.sep == "/":
        return path
    return path.replace(os.sep, "/")


def is_virtual_root(raw_path: Optional[str]) -> bool:
    """True when the path names the list of folder roots rather than a directory"""
    if raw_path is None:
        return True
    return raw_path.strip() in VIRTUAL_ROOTS


def root_name(root: str) -> str:
    """Display name of a folder root: its final path segment"""
    name = os.path.basename(os.path.normpath(root))
    return name or to_slash(root)


class PathResolver:
    """Maps client paths to validated filesystem paths"""

    def __init__(self, roots: Iterable[str], confine: bool = True):
        self.roots: Tuple[str, ...] = tuple(roots)
        self.confine = confine
        self._lexical_roots = tuple(Path(os.path.abspath(root)) for root in self.roots)
        self._canonical_roots = tuple(Path(root).resolve() for root in self.roots)

    def resolve(
        self,
        raw_path: str,
        *,
        must_exist: bool = True,
        expect: Optional[str] = None,
    ) -> Path:
        """
        Resolve a client path to a filesystem path

        Args:
            raw_path: Forward-slash path as sent by the client
            must_exist: Raise NotFound when the path is missing
            expect: "dir" or "file" to require an entry type

        Returns:
            Native filesystem path

        Raises:
            InvalidInput: Empty path
            Forbidden: Path escapes every folder root
            NotFound: Path missing or of the wrong type
        """
        if raw_path is None or not raw_path.strip():
            raise InvalidInput("Missing path")

        native = Path(to_native(raw_path))
        if self.confine:
            native = self._confine(native, raw_path)

        if must_exist:
            try:
                st = native.stat()
            except OSError as e:
                raise NotFound(self._os_message(e, raw_path))

            if expect == "dir" and not native.is_dir():
                raise NotFound(f"Not a directory: {raw_path}")
            if expect == "file" and not native.is_file():
                raise NotFound(f"Not a regular file: {raw_path}")
            logger.debug("Resolved %s -> %s (%d bytes)", raw_path, native, st.st_size)

        return native

    def join(self, folder: Path, relative: str) -> Path:
        """
        Join an upload-relative path under an already resolved folder

        The relative part may contain nested directories; it is re-checked
        against the folder roots after joining.
        """
        parts = [p for p in to_native(relative).split(os.sep) if p not in ("", ".")]
        if not parts:
            raise InvalidInput("Missing file name")

        target = folder.joinpath(*parts)
        if self.confine:
            target = self._confine(target, relative)
        return target

    def _confine(self, path: Path, raw_path: str) -> Path:
        try:
            canonical = path.resolve(strict=False)
        except (OSError, RuntimeError) as e:
            raise NotFound(f"Failed to resolve path: {e}")

        if self._within(canonical, self._canonical_roots):
            return canonical

        # ".." segments or a symlink leading out of a root are escapes;
        # anything else is simply not part of the served namespace.
        lexical = Path(os.path.abspath(path))
        if ".." in path.parts or self._within(lexical, self._lexical_roots):
            logger.warning("Rejected path escaping folder roots: %s", raw_path)
            raise Forbidden(f"Path escapes the served folders: {raw_path}")

        if canonical.exists():
            raise NotFound(f"{raw_path}: not inside any served folder")
        raise NotFound(f"{raw_path}: no such file or directory in the served folders")

    @staticmethod
    def _within(path: Path, roots: Tuple[Path, ...]) -> bool:
        return any(path == root or root in path.parents for root in roots)

    @staticmethod
    def _os_message(error: OSError, raw_path: str) -> str:
        reason = error.strerror or str(error)
        return f"{raw_path}: {reason}"
