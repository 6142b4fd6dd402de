"""
PrintQueueWeb - Flask Application Entry Point.

This is a slim app factory that:
1. Opens the database pool and creates the schema (fail-fast)
2. Creates the Ollama client and the invoice extraction pipeline
3. Starts the invoice worker pool
4. Registers route blueprints, the upload rate limit and JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Database initialization (engine + schema)
    ├── Flask request handling
    └── Cleanup on shutdown (worker pool, HTTP session, engine)

    Invoice Worker Threads (INVOICE_WORKERS, bounded pool)
    └── One invoice at a time each: rasterize -> vision model -> store

Request handlers and workers share only the Database pool and the
Ollama client; every queue mutation runs in its own transaction.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

import click
from dotenv import load_dotenv
from flask import Flask, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import setup_logging, get_logger
from core.database import Database, metadata
from core.exceptions import InternalError, PrintQueueError
from core.ollama_client import OllamaClient
from modules.extraction import InvoiceExtractor
from modules.pdf_analyzer import PDFAnalyzer
from modules.rasterizer import PyMuPDFRasterizer
from services.invoice_service import InvoiceService
from services.processing_service import InvoiceProcessingService
from services.queue_service import QueueService
from routes import register_blueprints, upload_bp
from routes.helpers import failure


# Module logger (configured after setup_logging)
logger = get_logger(__name__)

GENERIC_SERVER_ERROR = "An unexpected error occurred"
ATEXIT_EXTENSION = "print_queue_atexit"


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In PyInstaller bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def create_app(
    config_object: str = "config.Config",
    overrides: Optional[Mapping[str, Any]] = None,
    extractor: Optional[InvoiceExtractor] = None,
    ollama_client: Optional[OllamaClient] = None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    FAIL-FAST: If the database cannot be reached, the app will not start.
    Ollama is NOT required at startup; invoices uploaded while it is down
    are recorded as failed and /health reports it.

    Args:
        config_object: Import path of the config class
        overrides: Config values applied after the config class
        extractor: Pipeline to use instead of PyMuPDF + Ollama (tests)
        ollama_client: Client to use instead of one built from config

    Returns:
        Configured Flask application

    Raises:
        SQLAlchemyError: If the database cannot be initialized
    """
    # Load .env from base path (next to executable in production)
    # Use override=True so .env file always takes precedence over shell environment
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    # Create Flask app
    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting PrintQueueWeb in {app.config.get('ENVIRONMENT')} mode")

    # Ensure upload folder exists
    upload_folder = Path(app.config["UPLOAD_FOLDER"])
    upload_folder.mkdir(parents=True, exist_ok=True)

    # =========================================================================
    # CORE INITIALIZATION (FAIL-FAST)
    # =========================================================================

    database = Database(
        app.config["DATABASE_URL"],
        pool_size=app.config.get("DATABASE_POOL_SIZE", 20),
    )

    try:
        database.initialize()
    except SQLAlchemyError as e:
        logger.error(f"FATAL: Cannot start application - {e}")
        raise

    app.config["DATABASE"] = database

    if ollama_client is None:
        ollama_client = OllamaClient(
            app.config["OLLAMA_BASE_URL"],
            app.config["OLLAMA_MODEL"],
            timeout_seconds=app.config["OLLAMA_TIMEOUT_SECONDS"],
        )
    app.config["OLLAMA_CLIENT"] = ollama_client

    if extractor is None:
        extractor = InvoiceExtractor(
            PyMuPDFRasterizer(scale=app.config["RASTER_SCALE"]),
            ollama_client,
            temperature=app.config["OLLAMA_TEMPERATURE"],
            top_p=app.config["OLLAMA_TOP_P"],
        )

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    queue_service = QueueService(database)
    app.config["QUEUE_SERVICE"] = queue_service

    invoice_service = InvoiceService(database)
    app.config["INVOICE_SERVICE"] = invoice_service

    processing_service = InvoiceProcessingService(
        invoice_service,
        extractor,
        max_workers=app.config["INVOICE_WORKERS"],
    )
    app.config["PROCESSING_SERVICE"] = processing_service
    logger.info("Services initialized")

    app.config["PDF_ANALYZER"] = PDFAnalyzer()

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def _cleanup_at_exit():
        shutdown_services(app)

    atexit.register(_cleanup_at_exit)
    app.extensions[ATEXIT_EXTENSION] = _cleanup_at_exit

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    # Limits are read from config at request time (RATELIMIT_* keys)
    limiter = Limiter(get_remote_address, app=app)
    limiter.limit(lambda: app.config["UPLOAD_RATE_LIMIT"], methods=["POST"])(upload_bp)
    app.extensions["print_queue_limiter"] = limiter

    register_blueprints(app)

    @app.before_request
    def log_request():
        logger.info(f"{request.method} {request.path}")

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    def _hide_in_production(message: str) -> Optional[str]:
        if app.config.get("ENVIRONMENT") == "production":
            return GENERIC_SERVER_ERROR
        return message

    @app.errorhandler(PrintQueueError)
    def handle_app_error(e: PrintQueueError):
        if e.status_code >= 500:
            logger.error(f"{e.error_label}: {e}", exc_info=True)
            return failure(e.error_label, _hide_in_production(e.message), e.status_code)
        logger.warning(f"{e.error_label}: {e}")
        return failure(e.error_label, e.message, e.status_code)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 10 * 1024 * 1024) / (1024 * 1024)
        return failure("File too large", f"Maximum upload size is {max_mb:.0f} MB", 413)

    @app.errorhandler(429)
    def handle_rate_limited(e):
        logger.warning(f"Rate limit exceeded for {get_remote_address()}")
        return failure("Too many uploads, please try again later", str(e.description), 429)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return failure(e.name, e.description, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        logger.error(f"Unhandled error: {e}", exc_info=True)
        error = InternalError(str(e) or type(e).__name__)
        return failure(error.error_label, _hide_in_production(error.message), error.status_code)

    # =========================================================================
    # CLI COMMANDS
    # =========================================================================

    @app.cli.command("init-db")
    def init_db_command():
        """Create any missing tables."""
        metadata.create_all(database.engine)
        click.echo(f"Schema ready: {', '.join(sorted(metadata.tables))}")

    @app.cli.command("check-services")
    def check_services_command():
        """Report database and Ollama availability."""
        db_ok = database.ping()
        ollama_ok = ollama_client.test_connection()
        click.echo(f"database: {'ok' if db_ok else 'unavailable'}")
        click.echo(f"ollama ({ollama_client.model}): {'ok' if ollama_ok else 'unavailable'}")
        if not (db_ok and ollama_ok):
            raise click.exceptions.Exit(1)

    logger.info("Application initialized successfully")
    return app


def shutdown_services(app: Flask) -> None:
    """
    Stop the worker pool and release connections.

    Registered with atexit by create_app(); safe to call more than once.
    Calling it directly also drops that atexit hook.
    """
    cleanup = app.extensions.pop(ATEXIT_EXTENSION, None)
    if cleanup is None:
        return
    atexit.unregister(cleanup)

    logger.info("Shutting down...")

    processing_service = app.config.get("PROCESSING_SERVICE")
    if processing_service:
        processing_service.shutdown()

    ollama_client = app.config.get("OLLAMA_CLIENT")
    if ollama_client:
        ollama_client.close()

    database = app.config.get("DATABASE")
    if database:
        database.cleanup()

    logger.info("Shutdown complete")


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode)
