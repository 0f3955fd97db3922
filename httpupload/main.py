"""
Main application factory for httpupload
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI

from . import __version__
from .config import load_config, ConfigurationError
from .handler import UploadHandler, setup_upload_routes
from .middleware import setup_middleware
from .models import Config
from .utils import parse_listen_address


logger = logging.getLogger(__name__)


def setup_logging(config: Config, debug: bool = False):
    """Setup logging configuration"""
    log_config = config.logging

    # Configure root logger
    root_logger = logging.getLogger()
    level = logging.DEBUG if debug else getattr(logging, log_config.level.upper(), logging.INFO)
    root_logger.setLevel(level)

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


def create_directories(config: Config):
    """Create the storage root"""
    storedir = Path(config.storedir)
    storedir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Ensured storage directory exists: {storedir}")


def create_app(config: Optional[Config] = None, config_path: Optional[str] = None) -> FastAPI:
    """
    Create FastAPI application

    Args:
        config: Loaded configuration; read from ``config_path`` when omitted
        config_path: Configuration file, see ``load_config``

    Raises:
        ConfigurationError: If no usable configuration can be loaded
    """
    if config is None:
        config = load_config(config_path)

    create_directories(config)

    app = FastAPI(
        title="httpupload",
        description="HMAC authenticated HTTP upload store",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    handler = UploadHandler(config)

    setup_middleware(app)
    setup_upload_routes(app, handler)

    return app


def main(argv=None):
    """Main entry point for running the server"""
    import argparse

    parser = argparse.ArgumentParser(description="HMAC authenticated HTTP upload server")
    parser.add_argument("--config", "-c", default=None, help="Path to configuration file")
    parser.add_argument("--listen", default=None, help="host:port to bind to, overrides listenport")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        host, port = parse_listen_address(args.listen or config.listenport)
    except (ConfigurationError, ValueError) as e:
        print(f"Configuration error: {e}. Exiting.", file=sys.stderr)
        sys.exit(1)

    # Unwritable log file or storage directory
    try:
        setup_logging(config, debug=args.debug)
        app = create_app(config)
    except OSError as e:
        print(f"Configuration error: {e}. Exiting.", file=sys.stderr)
        sys.exit(1)

    logger.info("Starting up XMPP HTTP upload server ...")
    logger.info(f"Server started on {host}:{port}. Waiting for requests.")

    uvicorn.run(
        app,
        host=host,
        port=port,
        access_log=False,  # We handle access logging ourselves
        server_header=False,
        log_config=None,
    )


if __name__ == "__main__":
    main()
