"""
Core module for PrintQueueWeb.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- database: SQLAlchemy engine lifecycle and table definitions
- ollama_client: HTTP client for the Ollama vision model
"""

from .exceptions import (
    PrintQueueError,
    ValidationError,
    NotFoundError,
    ConflictError,
    ConstraintError,
    ExtractionError,
    LLMServiceError,
    InternalError,
)
from .database import Database
from .ollama_client import OllamaClient

__all__ = [
    "PrintQueueError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ConstraintError",
    "ExtractionError",
    "LLMServiceError",
    "InternalError",
    "Database",
    "OllamaClient",
]
