"""
Configuration loading and validation for folderview
"""

import os
import yaml
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from .errors import ConfigError
from .models import (
    Config, ServerConfig, LoggingConfig, ViewerConfig, SecurityConfig, StaticConfig
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "folderview.yaml"
CONFIG_ENV_VAR = "FOLDERVIEW_CONFIG"


class ConfigLoader:
    """Loads configuration from a YAML file"""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path).resolve()

    def load_config(self) -> Config:
        """Load configuration from YAML file"""
        if not self.config_path.exists():
            logger.warning(f"Configuration file not found: {self.config_path}")
            return Config()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load configuration {self.config_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping: {self.config_path}")

        config = self._parse_config(data)
        logger.info(f"Configuration loaded from {self.config_path}")
        return config

    def _parse_config(self, data: Dict[str, Any]) -> Config:
        """Parse configuration data into Config object"""

        # Server configuration
        server_data = data.get('server') or {}
        server = ServerConfig(
            addr=server_data.get('addr', '0.0.0.0'),
            port=int(server_data.get('port', 30006)),
        )

        # Folder roots
        folders = data.get('folders') or []
        if isinstance(folders, str):
            folders = [folders]

        # Logging
        logging_data = data.get('logging') or {}
        logging_config = LoggingConfig(
            json=logging_data.get('json', False),
            file=logging_data.get('file', ''),
            level=logging_data.get('level', 'INFO'),
            max_size_mb=logging_data.get('max_size_mb', 100),
            backup_count=logging_data.get('backup_count', 5)
        )

        # Viewer limits
        viewer_data = data.get('viewer') or {}
        defaults = ViewerConfig()
        viewer = ViewerConfig(
            maxViewBytes=int(viewer_data.get('maxViewBytes', defaults.maxViewBytes)),
            maxTextBytes=int(viewer_data.get('maxTextBytes', defaults.maxTextBytes)),
            sniffBytes=int(viewer_data.get('sniffBytes', defaults.sniffBytes)),
        )

        # Security
        security_data = data.get('security') or {}
        security = SecurityConfig(
            confineToRoots=bool(security_data.get('confineToRoots', True))
        )

        # Static client
        static_data = data.get('static') or {}
        static = StaticConfig(dir=static_data.get('dir', 'static'))

        return Config(
            server=server,
            folders=tuple(str(f) for f in folders),
            logging=logging_config,
            viewer=viewer,
            security=security,
            static=static,
        )


def build_folder_roots(folders: Iterable[str]) -> Tuple[str, ...]:
    """
    Validate folder roots and make them absolute

    Blank entries are skipped and duplicates collapse onto their first
    occurrence. Order is preserved.

    Raises:
        ConfigError: If no folder is given or one does not exist
    """
    roots = []
    for folder in folders:
        trimmed = folder.strip()
        if not trimmed:
            continue

        if not os.path.exists(trimmed):
            raise ConfigError(f"Folder does not exist: {trimmed}")
        if not os.path.isdir(trimmed):
            raise ConfigError(f"Folder is not a directory: {trimmed}")

        absolute = os.path.abspath(trimmed)
        if absolute not in roots:
            roots.append(absolute)

    if not roots:
        raise ConfigError("No folders provided. Use --folders or the 'folders' config key.")

    return tuple(roots)


def load_config(
    config_path: Optional[str] = None,
    *,
    folders: Optional[Iterable[str]] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> Config:
    """
    Load configuration, apply command line overrides and validate folder roots

    Args:
        config_path: YAML file; defaults to $FOLDERVIEW_CONFIG or folderview.yaml
        folders: Folder roots replacing the configured ones
        host: Listen address override
        port: Listen port override

    Raises:
        ConfigError: If the configuration cannot be used
    """
    if not config_path:
        config_path = os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)

    config = ConfigLoader(config_path).load_config()
    return finalize_config(config, folders=folders, host=host, port=port)


def finalize_config(
    config: Config,
    *,
    folders: Optional[Iterable[str]] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> Config:
    """Apply overrides to a parsed configuration and validate its folder roots"""
    folder_list = tuple(folders) if folders else config.folders
    server = replace(
        config.server,
        addr=host or config.server.addr,
        port=port or config.server.port,
    )
    return replace(config, server=server, folders=build_folder_roots(folder_list))
