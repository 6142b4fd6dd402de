"""
Services layer for PrintQueueWeb.

This module contains the business logic services:
- QueueService: Print queue CRUD and position reordering
- InvoiceService: Invoice rows and their single terminal outcome
- InvoiceProcessingService: Background extraction on a worker pool

Thread Model:
    Main Thread (Flask request handling)
    └── Invoice worker pool (INVOICE_WORKERS threads)

Services receive the shared Database at construction; none of them opens
its own engine.
"""

from .queue_service import QueueService
from .invoice_service import InvoiceService
from .processing_service import InvoiceProcessingService

__all__ = [
    "QueueService",
    "InvoiceService",
    "InvoiceProcessingService",
]
