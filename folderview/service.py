"""Folder service facade composing the resolver and the file services."""

from __future__ import annotations

import logging
from typing import AsyncIterable, List, Optional

from .classifier import view_file
from .delivery import Delivery, prepare
from .errors import InvalidInput, NotFound
from .models import Config, DeliveryMode, FileView, HttpRange, TreeEntry, UploadResult
from .paths import PathResolver, is_virtual_root
from .tree import list_directory, list_roots
from .uploads import ingest

logger = logging.getLogger(__name__)


class FolderService:
    """Encapsulates all operations on the configured folder roots."""

    def __init__(self, config: Config):
        self.config = config
        self.resolver = PathResolver(
            config.folders, confine=config.security.confineToRoots
        )

    @property
    def roots(self):
        return self.config.folders

    async def list_tree(self, raw_path: Optional[str]) -> List[TreeEntry]:
        logger.debug("Listing tree", extra={"path": raw_path})
        if is_virtual_root(raw_path):
            return list_roots(self.roots)

        dir_path = self.resolver.resolve(raw_path, expect="dir")
        return await list_directory(dir_path, raw_path)

    async def view(self, raw_path: Optional[str]) -> FileView:
        logger.debug("Viewing file", extra={"path": raw_path})
        if not raw_path:
            raise InvalidInput("Missing path")

        path = self.resolver.resolve(raw_path, expect="file")
        return await view_file(path, raw_path, self.config.viewer)

    async def upload(
        self,
        folder: Optional[str],
        content_type: Optional[str],
        chunks: AsyncIterable[bytes],
        relative_path: Optional[str] = None,
    ) -> UploadResult:
        logger.debug(
            "Uploading files",
            extra={"folder": folder, "relative_path": relative_path},
        )
        if not folder:
            raise InvalidInput("Missing folder param")

        destination = self.resolver.resolve(folder, must_exist=False)
        return await ingest(
            self.resolver, destination, content_type, chunks, relative_path
        )

    async def deliver(
        self,
        raw_path: Optional[str],
        mode: DeliveryMode,
        http_range: Optional[HttpRange] = None,
    ) -> Delivery:
        logger.debug(
            "Delivering file",
            extra={"path": raw_path, "mode": mode.value},
        )
        if not raw_path:
            raise InvalidInput("Missing path")

        try:
            path = self.resolver.resolve(raw_path, expect="file")
        except NotFound as e:
            raise NotFound(e.message, status_code=404)
        return await prepare(path, mode, http_range)
