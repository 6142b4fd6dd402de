"""
Invoice upload routes.

Handles:
- POST   /api/upload                  - Store a PDF and start extraction
- GET    /api/upload                  - Recent invoices (?limit=50)
- GET    /api/upload/<id>             - Processing status poll
- DELETE /api/upload/<id>/processing  - Cancel extraction that has not started

The upload call never waits for extraction. It answers 201 as soon as the
invoice row exists; the outcome is read later from the status endpoint.
"""

import uuid
from datetime import datetime, timezone
from pathlib import Path

from flask import Blueprint, current_app, request
from werkzeug.utils import secure_filename

from core.exceptions import ConflictError, InternalError, ValidationError
from models.invoice import InvoiceUpload
from services.invoice_service import DEFAULT_LIST_LIMIT, InvoiceService
from logging_config import get_logger
from .helpers import parse_id, success


# Module logger
logger = get_logger(__name__)

upload_bp = Blueprint("upload", __name__, url_prefix="/api/upload")

# Constants
ALLOWED_EXTENSIONS = {"pdf"}
MAX_FILENAME_LENGTH = 255
UPLOAD_FIELD = "invoice"


def _allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _stored_name(safe_name: str) -> str:
    """Unique on-disk name: <stem>-<timestamp>-<random><ext>."""
    path = Path(safe_name)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{path.stem}-{timestamp}-{uuid.uuid4().hex[:8]}{path.suffix.lower()}"


def _invoice_service() -> InvoiceService:
    return current_app.config["INVOICE_SERVICE"]


@upload_bp.route("", methods=["POST"])
def upload_invoice():
    """
    Accept one PDF in the multipart field ``invoice``.

    The saved file is deleted again if anything fails before the
    background task has been queued. An invoice row created before that
    point is marked failed so it never sits in processing.
    """
    invoice_file = request.files.get(UPLOAD_FIELD)

    # Validation: File required
    if not invoice_file or invoice_file.filename == "":
        raise ValidationError("No file uploaded", field=UPLOAD_FIELD)

    # Validation: File type (MIME type and extension)
    allowed_types = current_app.config["ALLOWED_FILE_TYPES"]
    if invoice_file.mimetype not in allowed_types or not _allowed_file(invoice_file.filename):
        raise ValidationError(
            f"Invalid file type. Allowed types: {', '.join(allowed_types)}",
            field=UPLOAD_FIELD,
        )

    # Validation: Filename length
    if len(invoice_file.filename) > MAX_FILENAME_LENGTH:
        raise ValidationError(
            f"Filename too long. Maximum {MAX_FILENAME_LENGTH} characters.",
            field=UPLOAD_FIELD,
        )

    safe_name = secure_filename(invoice_file.filename) or "invoice.pdf"
    stored_path = Path(current_app.config["UPLOAD_FOLDER"]) / _stored_name(safe_name)

    logger.info(f"Saving uploaded file: {stored_path.name}")
    invoice_file.save(stored_path)

    invoice = None
    try:
        pdf_analyzer = current_app.config["PDF_ANALYZER"]
        if not pdf_analyzer.is_pdf(stored_path):
            raise ValidationError("Uploaded file is not a valid PDF", field=UPLOAD_FIELD)

        analysis = pdf_analyzer.analyze(stored_path)
        logger.info(f"PDF analysis complete: {analysis.get('pages')} pages, {analysis.get('size_kb')} KB")

        invoice = _invoice_service().create(safe_name, str(stored_path))

        processing_service = current_app.config["PROCESSING_SERVICE"]
        try:
            processing_service.submit(invoice.id, invoice.file_path)
        except RuntimeError as e:
            raise InternalError(f"Could not start invoice processing: {e}") from e
    except Exception as e:
        logger.warning(f"Upload rejected, removing {stored_path.name}")
        if invoice is not None:
            _invoice_service().mark_failed(invoice.id, str(e))
        stored_path.unlink(missing_ok=True)
        raise

    return success(InvoiceUpload(invoice_id=invoice.id, filename=invoice.filename).to_dict(), status=201)


@upload_bp.route("/<invoice_id>", methods=["GET"])
def invoice_status(invoice_id: str):
    invoice = _invoice_service().get_by_id(parse_id(invoice_id))
    return success(invoice.to_status_dict())


@upload_bp.route("", methods=["GET"])
def list_invoices():
    limit = request.args.get("limit", type=int)
    if not limit or limit < 1:
        limit = DEFAULT_LIST_LIMIT

    invoices = _invoice_service().list_recent(limit)
    return success([i.to_dict() for i in invoices])


@upload_bp.route("/<invoice_id>/processing", methods=["DELETE"])
def cancel_processing(invoice_id: str):
    invoice_id = parse_id(invoice_id)

    # 404 for unknown ids before looking at the worker pool
    _invoice_service().get_by_id(invoice_id)

    processing_service = current_app.config["PROCESSING_SERVICE"]
    if not processing_service.cancel(invoice_id):
        raise ConflictError("Invoice processing has already started or finished")

    return success(message="Invoice processing cancelled")
