"""
Main application factory for folderview
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from . import __version__
from .api import setup_api_routes
from .config import load_config
from .errors import ConfigError
from .metrics import MetricsManager
from .middleware import setup_middleware
from .models import Config
from .service import FolderService
from .utils import split_csv


logger = logging.getLogger(__name__)


def setup_logging(config: Config):
    """Setup logging configuration"""
    log_config = config.logging

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_config.level.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers.clear()

    # Create formatter
    if log_config.json:
        formatter = logging.Formatter(
            '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","msg":"%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler if configured
    if log_config.file:
        log_file = Path(log_config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=log_config.max_size_mb * 1024 * 1024,
            backupCount=log_config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def setup_static_routes(app: FastAPI, static_dir: Path):
    """Serve the web client, when one is installed next to the server"""
    if not static_dir.is_dir():
        logger.warning(f"Static directory not found, web client disabled: {static_dir}")
        return

    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")
    index_file = static_dir / "index.html"

    @app.get("/", include_in_schema=False)
    async def index():
        if not index_file.is_file():
            return JSONResponse(status_code=404, content={"error": "index.html not found", "kind": "not_found"})
        return FileResponse(index_file)


def create_app(config: Optional[Config] = None, config_path: Optional[str] = None) -> FastAPI:
    """
    Create FastAPI application

    Args:
        config: Ready configuration with validated folder roots; loaded from
            ``config_path`` (or $FOLDERVIEW_CONFIG) when omitted
        config_path: YAML configuration file

    Raises:
        ConfigError: If no usable folder roots are configured
    """
    if config is None:
        config = load_config(config_path)
        setup_logging(config)

    app = FastAPI(
        title="folderview",
        description="Browse, view, upload and download server-local folders",
        version=__version__,
        docs_url="/docs" if os.getenv("FOLDERVIEW_DEBUG") else None,
        redoc_url="/redoc" if os.getenv("FOLDERVIEW_DEBUG") else None,
    )

    # Immutable for the lifetime of the app
    app.state.config = config
    app.state.folder_service = FolderService(config)
    app.state.metrics = MetricsManager()

    setup_middleware(app)
    setup_api_routes(app)
    if config.static.dir:
        setup_static_routes(app, Path(config.static.dir))

    # Health check endpoint
    @app.get("/healthz")
    async def health_check():
        return {"ok": True, "version": __version__}

    # Metrics endpoint
    @app.get("/metrics")
    async def get_metrics():
        return app.state.metrics.get_metrics()

    for root in config.folders:
        logger.info(f"Folder: {root}")

    return app


def main():
    """Main entry point for running the server"""
    import argparse

    parser = argparse.ArgumentParser(description="folderview file server")
    parser.add_argument("--config", "-c", default=None, help="Configuration file path")
    parser.add_argument("--folders", default=None, help="Comma-separated list of folders to serve")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to run the server on")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    # Set debug environment
    if args.debug:
        os.environ["FOLDERVIEW_DEBUG"] = "1"

    try:
        config = load_config(
            args.config,
            folders=split_csv(args.folders),
            host=args.host,
            port=args.port,
        )
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO)
        logger.critical(str(e))
        sys.exit(1)

    setup_logging(config)
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    app = create_app(config)
    logger.info(f"Serving on {config.server.addr}:{config.server.port}")

    uvicorn.run(
        app,
        host=config.server.addr,
        port=config.server.port,
        access_log=False,  # We handle access logging ourselves
        server_header=False,
    )


if __name__ == "__main__":
    main()
