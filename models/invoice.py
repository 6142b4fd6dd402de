"""
Invoice data models.

An Invoice row is written once at upload time and updated exactly once by
the background worker that processes it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class InvoiceStatus(Enum):
    """
    Processing state of an uploaded invoice.

    Lifecycle:
        PROCESSING -> (PROCESSED | FAILED)

    PROCESSING is not stored; it is the absence of either outcome.
    """

    PROCESSING = "processing"
    """Uploaded, extraction not finished yet."""

    PROCESSED = "processed"
    """Extraction succeeded; extracted_data holds the products."""

    FAILED = "failed"
    """Extraction failed; processing_error holds the reason."""


@dataclass
class ExtractedProduct:
    """One product line read from an invoice page."""

    product_name: str
    details: str = ""
    quantity: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productName": self.product_name,
            "details": self.details,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExtractedProduct":
        return cls(
            product_name=data.get("productName", ""),
            details=data.get("details", ""),
            quantity=data.get("quantity", 1),
        )


@dataclass
class Invoice:
    """An uploaded PDF invoice and its extraction outcome."""

    id: int
    filename: str
    file_path: Optional[str]
    upload_date: datetime
    processed: bool = False
    processing_error: Optional[str] = None
    extracted_data: Optional[List[ExtractedProduct]] = None
    created_at: Optional[datetime] = None

    @property
    def status(self) -> InvoiceStatus:
        if self.processed:
            return InvoiceStatus.PROCESSED
        if self.processing_error:
            return InvoiceStatus.FAILED
        return InvoiceStatus.PROCESSING

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Invoice":
        """Create from an ``invoices`` result row mapping."""
        raw_products = row["extracted_data"]
        products = None
        if raw_products is not None:
            products = [ExtractedProduct.from_dict(p) for p in raw_products]

        return cls(
            id=row["id"],
            filename=row["filename"],
            file_path=row["file_path"],
            upload_date=row["upload_date"],
            processed=bool(row["processed"]),
            processing_error=row["processing_error"],
            extracted_data=products,
            created_at=row["created_at"],
        )

    def extracted_dicts(self) -> Optional[List[Dict[str, Any]]]:
        if self.extracted_data is None:
            return None
        return [p.to_dict() for p in self.extracted_data]

    def to_dict(self) -> Dict[str, Any]:
        """Full record, as returned by the invoice listing."""
        return {
            "id": self.id,
            "filename": self.filename,
            "filePath": self.file_path,
            "uploadDate": self.upload_date.isoformat() if self.upload_date else None,
            "processed": self.processed,
            "processingError": self.processing_error,
            "extractedData": self.extracted_dicts(),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "status": self.status.value,
        }

    def to_status_dict(self) -> Dict[str, Any]:
        """Polling view used while the client waits for extraction."""
        return {
            "invoiceId": self.id,
            "status": self.status.value,
            "processed": self.processed,
            "processingError": self.processing_error,
            "extractedData": self.extracted_dicts(),
        }


@dataclass
class InvoiceUpload:
    """Response body for a successful upload."""

    invoice_id: int
    filename: str
    message: str = "Invoice uploaded successfully. Processing started."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invoiceId": self.invoice_id,
            "filename": self.filename,
            "message": self.message,
        }
