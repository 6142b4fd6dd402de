"""
Service-level routes.

Handles:
- /health - Database and Ollama checks
- /       - Service description
"""

from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)

SERVICE_NAME = "PrintQueueWeb API"
SERVICE_VERSION = "1.0.0"


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    checks = {}

    database = current_app.config.get("DATABASE")
    checks["database"] = "connected" if database and database.ping() else "disconnected"

    ollama_client = current_app.config.get("OLLAMA_CLIENT")
    checks["ollama"] = (
        "connected" if ollama_client and ollama_client.test_connection() else "disconnected"
    )

    processing_service = current_app.config.get("PROCESSING_SERVICE")
    checks["invoices_in_flight"] = processing_service.active_count if processing_service else 0

    healthy = checks["database"] == "connected" and checks["ollama"] == "connected"
    if not healthy:
        logger.warning(f"Health check failed: {checks}")

    body = {
        "status": "healthy" if healthy else "unhealthy",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": checks,
    }
    return jsonify(body), 200 if healthy else 503


@api_bp.route("/", methods=["GET"])
def index():
    return jsonify({
        "name": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "description": "Print queue management with invoice product extraction",
        "endpoints": {
            "health": "/health",
            "queue": "/api/queue",
            "upload": "/api/upload",
        },
    })
