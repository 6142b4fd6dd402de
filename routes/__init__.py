"""
Flask route blueprints for PrintQueueWeb.

This module contains all route handlers organized by functionality:
- queue: Print queue CRUD, batch insert and reordering
- upload: Invoice PDF upload and processing status
- api: Health check and service description

Each blueprint is registered with the Flask app in create_app().
"""

from .queue import queue_bp
from .upload import upload_bp
from .api import api_bp

__all__ = [
    "queue_bp",
    "upload_bp",
    "api_bp",
    "register_blueprints",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(queue_bp)
    app.register_blueprint(upload_bp)
    app.register_blueprint(api_bp)
