"""
Background invoice processing.

The upload route returns as soon as the invoice row exists; extraction runs
here on a bounded pool of worker threads. The client polls
``GET /api/upload/<id>`` until the invoice has an outcome.

Flow:
    1. Upload route calls processing_service.submit(invoice_id, path)
    2. A worker thread picks the task up (or it waits in the pool queue)
    3. Worker runs InvoiceExtractor on the PDF
    4. Worker records the outcome with mark_processed / mark_failed
    5. Client polls the invoice row

Thread Safety:
    - Futures are tracked in a dict guarded by a threading.Lock
    - Workers share nothing but the Database pool and the Ollama session
    - Every exception raised by a task is caught at the task boundary and
      recorded on the invoice; none escapes the worker thread

Usage:
    service = InvoiceProcessingService(invoice_service, extractor, max_workers=2)
    service.submit(invoice.id, invoice.file_path)

    service.is_pending(invoice.id)   # still queued or running
    service.cancel(invoice.id)       # only while still queued
    service.shutdown()               # at process exit
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from typing import Dict, Optional

from modules.extraction import InvoiceExtractor
from services.invoice_service import InvoiceService
from logging_config import get_logger, get_invoice_logger, set_thread_name


logger = get_logger(__name__)

CANCELLED_MESSAGE = "Processing cancelled"


class InvoiceProcessingService:
    """
    Runs invoice extraction on a fixed-size thread pool.

    Attributes:
        max_workers: Upper bound on invoices extracted at the same time
    """

    def __init__(
        self,
        invoice_service: InvoiceService,
        extractor: InvoiceExtractor,
        max_workers: int = 2,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self._invoices = invoice_service
        self._extractor = extractor
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="Invoice",
        )

        self._futures: Dict[int, Future] = {}
        self._lock = threading.Lock()
        self._closed = False

        logger.info(f"InvoiceProcessingService initialized with {max_workers} worker(s)")

    @property
    def active_count(self) -> int:
        """Invoices queued or being processed right now."""
        with self._lock:
            return sum(1 for f in self._futures.values() if not f.done())

    def submit(self, invoice_id: int, file_path: str) -> Future:
        """
        Queue an invoice for extraction and return immediately.

        Raises:
            RuntimeError: If the service has been shut down
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("InvoiceProcessingService is shut down")

            logger.info(f"Queueing invoice {invoice_id} for processing")
            future = self._executor.submit(self._process, invoice_id, file_path)
            self._futures[invoice_id] = future

        future.add_done_callback(lambda f, iid=invoice_id: self._forget(iid, f))
        return future

    def is_pending(self, invoice_id: int) -> bool:
        """True while the invoice is queued or running."""
        with self._lock:
            future = self._futures.get(invoice_id)
            return future is not None and not future.done()

    def wait(self, invoice_id: int, timeout: Optional[float] = None) -> bool:
        """
        Block until the invoice's task finishes.

        Returns:
            True if finished (or never submitted), False on timeout
        """
        with self._lock:
            future = self._futures.get(invoice_id)
        if future is None:
            return True
        done, _ = wait_futures([future], timeout=timeout)
        return future in done

    def cancel(self, invoice_id: int) -> bool:
        """
        Cancel an invoice that has not started yet.

        A cancelled invoice is recorded as failed with "Processing cancelled".

        Returns:
            False if the invoice is unknown, running or already finished
        """
        with self._lock:
            future = self._futures.get(invoice_id)

        if future is None or not future.cancel():
            return False

        logger.info(f"Invoice {invoice_id} cancelled before processing started")
        self._invoices.mark_failed(invoice_id, CANCELLED_MESSAGE)
        return True

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop accepting work and wait for running invoices.

        Queued invoices that never started are cancelled and recorded as
        failed so they do not stay "processing" forever.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = dict(self._futures)

        logger.info(f"Shutting down invoice processing ({len(pending)} in flight)...")

        for invoice_id, future in pending.items():
            if future.cancel():
                self._invoices.mark_failed(invoice_id, CANCELLED_MESSAGE)

        self._executor.shutdown(wait=wait)
        logger.info("Invoice processing shutdown complete")

    def _forget(self, invoice_id: int, future: Future) -> None:
        with self._lock:
            if self._futures.get(invoice_id) is future:
                del self._futures[invoice_id]

    def _process(self, invoice_id: int, file_path: str) -> None:
        """
        Worker body for one invoice.

        Runs on a pool thread. Never raises.
        """
        set_thread_name(f"Invoice-{invoice_id}")
        invoice_logger = get_invoice_logger(invoice_id)
        invoice_logger.info(f"Starting background processing for invoice {invoice_id}")

        try:
            products = self._extractor.extract_products_from_pdf(file_path, log=invoice_logger)
        except Exception as e:
            invoice_logger.error(f"Error processing invoice {invoice_id}: {e}")
            self._record_failure(invoice_id, str(e) or type(e).__name__, invoice_logger)
            return

        try:
            self._invoices.mark_processed(invoice_id, products)
            invoice_logger.info(f"Invoice {invoice_id} processed: {len(products)} product(s)")
        except Exception as e:
            invoice_logger.error(f"Could not store results for invoice {invoice_id}: {e}")
            self._record_failure(invoice_id, f"Could not store results: {e}", invoice_logger)

    def _record_failure(self, invoice_id: int, message: str, invoice_logger) -> None:
        try:
            self._invoices.mark_failed(invoice_id, message)
        except Exception as e:
            invoice_logger.critical(f"Could not record failure for invoice {invoice_id}: {e}")
