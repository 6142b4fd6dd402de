"""
Invoice persistence.

An invoice row is created by the upload route and later finished by the
processing service with exactly one of mark_processed / mark_failed. Both
refuse to touch a row that already has an outcome.
"""

from __future__ import annotations

from typing import List, Sequence

from sqlalchemy import select

from core.database import Database, invoices
from core.exceptions import NotFoundError
from models.invoice import ExtractedProduct, Invoice
from logging_config import get_logger


logger = get_logger(__name__)

DEFAULT_LIST_LIMIT = 50


class InvoiceService:
    """Reads and writes the ``invoices`` table."""

    def __init__(self, database: Database):
        self._db = database

    def create(self, filename: str, file_path: str) -> Invoice:
        """Record a freshly uploaded, not yet processed invoice."""
        with self._db.transaction() as conn:
            result = conn.execute(
                invoices.insert().values(filename=filename, file_path=file_path)
            )
            invoice_id = result.inserted_primary_key[0]
            row = conn.execute(
                select(invoices).where(invoices.c.id == invoice_id)
            ).mappings().one()

        logger.info(f"Invoice {invoice_id} created for {filename}")
        return Invoice.from_row(row)

    def get_by_id(self, invoice_id: int) -> Invoice:
        with self._db.connect() as conn:
            row = conn.execute(
                select(invoices).where(invoices.c.id == invoice_id)
            ).mappings().first()
        if row is None:
            raise NotFoundError("Invoice", invoice_id)
        return Invoice.from_row(row)

    def list_recent(self, limit: int = DEFAULT_LIST_LIMIT) -> List[Invoice]:
        """Newest uploads first."""
        stmt = (
            select(invoices)
            .order_by(invoices.c.upload_date.desc(), invoices.c.id.desc())
            .limit(limit)
        )
        with self._db.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [Invoice.from_row(r) for r in rows]

    def mark_processed(self, invoice_id: int, products: Sequence[ExtractedProduct]) -> bool:
        """
        Store the extracted products and flag the invoice as processed.

        Returns:
            False if the invoice already had an outcome (nothing written)
        """
        payload = [p.to_dict() for p in products]
        return self._finish(
            invoice_id,
            processed=True,
            extracted_data=payload,
            processing_error=None,
        )

    def mark_failed(self, invoice_id: int, error: str) -> bool:
        """
        Record why extraction failed. ``extracted_data`` stays NULL.

        Returns:
            False if the invoice already had an outcome (nothing written)
        """
        return self._finish(
            invoice_id,
            processed=False,
            processing_error=error or "Unknown error",
            extracted_data=None,
        )

    def _finish(self, invoice_id: int, **values) -> bool:
        with self._db.transaction() as conn:
            result = conn.execute(
                invoices.update()
                .where(invoices.c.id == invoice_id)
                .where(invoices.c.processed == False)  # noqa: E712
                .where(invoices.c.processing_error.is_(None))
                .values(**values)
            )
        if result.rowcount == 0:
            logger.warning(f"Invoice {invoice_id} already finished or missing; outcome not recorded")
            return False
        return True
