"""
Data models for PrintQueueWeb.

This module contains dataclasses for:
- QueueItem: A row of the print queue, plus the request payloads that
  create, update and reorder it
- Invoice: An uploaded PDF and the outcome of its extraction
- ExtractedProduct: One product line read from an invoice page
"""

from .queue_item import (
    QueueItem,
    QueueItemStatus,
    CreateQueueItem,
    UpdateQueueItem,
    ReorderRequest,
)
from .invoice import Invoice, InvoiceStatus, InvoiceUpload, ExtractedProduct

__all__ = [
    # Queue models
    "QueueItem",
    "QueueItemStatus",
    "CreateQueueItem",
    "UpdateQueueItem",
    "ReorderRequest",
    # Invoice models
    "Invoice",
    "InvoiceStatus",
    "InvoiceUpload",
    "ExtractedProduct",
]
