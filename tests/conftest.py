"""
Shared fixtures.

Database tests run against a throwaway SQLite file through the same
SQLAlchemy code the app uses. HTTP tests build the real app with
TestingConfig and a fake extractor so no Ollama server is needed.
"""

import io
from unittest.mock import MagicMock

import pytest
from pypdf import PdfWriter

from app import create_app, shutdown_services
from core.database import Database
from models.invoice import ExtractedProduct
from services.invoice_service import InvoiceService
from services.queue_service import QueueService
from fakes import FakeExtractor


@pytest.fixture
def database(tmp_path):
    """Initialized database backed by a temporary SQLite file."""
    db = Database(f"sqlite:///{tmp_path / 'queue.db'}")
    db.initialize()
    yield db
    db.cleanup()


@pytest.fixture
def queue_service(database):
    return QueueService(database)


@pytest.fixture
def invoice_service(database):
    return InvoiceService(database)


@pytest.fixture
def fake_extractor():
    return FakeExtractor([
        ExtractedProduct(product_name="Widget", details="Blue, 10cm", quantity=3),
    ])


@pytest.fixture
def ollama_client():
    client = MagicMock()
    client.model = "llava:latest"
    client.test_connection.return_value = True
    return client


@pytest.fixture
def app(tmp_path, fake_extractor, ollama_client):
    app = create_app(
        "config.TestingConfig",
        overrides={
            "DATABASE_URL": f"sqlite:///{tmp_path / 'app.db'}",
            "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        },
        extractor=fake_extractor,
        ollama_client=ollama_client,
    )
    yield app
    shutdown_services(app)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def pdf_bytes():
    """A valid one-page PDF."""
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()
