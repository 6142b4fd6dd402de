"""
Invoice line-item extraction with a vision language model.

Pipeline for one PDF:

    rasterize  ->  one model call per page  ->  parse reply  ->  merge duplicates

The model's reply is untrusted free text. parse_model_response() never
raises: a page whose reply cannot be read contributes no products. Anything
that goes wrong outside parsing (rendering, HTTP, an empty PDF) aborts the
whole invoice with ExtractionError.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from core.exceptions import ExtractionError
from core.ollama_client import OllamaClient
from models.invoice import ExtractedProduct
from modules.rasterizer import PageImage, Rasterizer
from modules.sanitize import sanitize_text
from logging_config import get_logger


logger = get_logger(__name__)

EXTRACTION_PROMPT = """You are an invoice parser. Extract ALL products from this invoice page.

Return ONLY a valid JSON array with this exact structure, no other text:
[
  {
    "productName": "exact product name",
    "details": "specifications, color, size, material, etc.",
    "quantity": number
  }
]

Important:
- Extract every single product line item
- Include all relevant details (color, size, material, specifications)
- Quantity must be a number (default to 1 if not specified)
- If no products found, return empty array: []
- Return ONLY the JSON array, no markdown, no explanations"""

MAX_PRODUCT_NAME_LENGTH = 255
MAX_DETAILS_LENGTH = 2000
RESPONSE_PREVIEW_CHARS = 200

_JSON_FENCE = re.compile(r"```json\n?")
_BARE_FENCE = re.compile(r"```\n?")
# Greedy: first "[" through last "]"
_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


# =============================================================================
# RESPONSE PARSING
# =============================================================================

def _coerce_quantity(value: Any) -> int:
    """Numeric coercion with 1 as the fallback for missing, NaN or zero.

    Fractional quantities are rounded up: 2.2 becomes 3, never 2.
    """
    if value is None or isinstance(value, bool):
        return 1
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 1
    if math.isnan(number) or math.isinf(number) or number <= 0:
        return 1
    # Round fractional quantities up to whole copies (2.5 -> 3)
    return int(math.ceil(number))


def _to_product(item: Any) -> Optional[ExtractedProduct]:
    if not isinstance(item, dict):
        return None

    name = item.get("productName")
    if not isinstance(name, str):
        return None
    name = sanitize_text(name, MAX_PRODUCT_NAME_LENGTH)
    if not name:
        return None

    details = item.get("details")
    details = sanitize_text(str(details) if details else "", MAX_DETAILS_LENGTH)

    return ExtractedProduct(
        product_name=name,
        details=details,
        quantity=_coerce_quantity(item.get("quantity")),
    )


def parse_model_response(raw_response: str) -> List[ExtractedProduct]:
    """
    Turn a model reply into products.

    Markdown fences are removed, then the first "[" through the last "]" is
    parsed as JSON. Elements that are not objects with a non-empty
    ``productName`` are dropped.

    Returns:
        Products in reply order; [] when no array can be read
    """
    cleaned = (raw_response or "").strip()
    cleaned = _JSON_FENCE.sub("", cleaned)
    cleaned = _BARE_FENCE.sub("", cleaned)
    cleaned = cleaned.strip()

    match = _JSON_ARRAY.search(cleaned)
    if not match:
        logger.warning("No JSON array found in model response")
        return []

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"Could not parse model response as JSON: {e}")
        logger.debug(f"Raw response: {raw_response}")
        return []

    if not isinstance(parsed, list):
        logger.warning("Model response is not an array")
        return []

    products = []
    for item in parsed:
        product = _to_product(item)
        if product is not None:
            products.append(product)

    return products


# =============================================================================
# DEDUPLICATION
# =============================================================================

def _dedupe_key(product: ExtractedProduct) -> str:
    return f"{product.product_name}|{product.details}".lower()


def deduplicate_products(products: Iterable[ExtractedProduct]) -> List[ExtractedProduct]:
    """
    Merge products that share name and details, ignoring case.

    Quantities are summed. The first occurrence decides the casing and the
    position in the output.
    """
    seen: Dict[str, ExtractedProduct] = {}

    for product in products:
        key = _dedupe_key(product)
        existing = seen.get(key)
        if existing:
            existing.quantity += product.quantity
        else:
            seen[key] = replace(product)

    return list(seen.values())


# =============================================================================
# PIPELINE
# =============================================================================

class InvoiceExtractor:
    """
    Runs the full rasterize -> model -> parse -> dedupe pipeline.

    Pages are processed one after another; a failing page aborts the
    invoice so callers never see products from only part of a document.
    """

    def __init__(
        self,
        rasterizer: Rasterizer,
        client: OllamaClient,
        temperature: float = 0.1,
        top_p: float = 0.9,
        prompt: str = EXTRACTION_PROMPT,
    ):
        self._rasterizer = rasterizer
        self._client = client
        self._temperature = temperature
        self._top_p = top_p
        self._prompt = prompt

    def extract_products_from_pdf(
        self,
        pdf_path: str | Path,
        log: Optional[logging.Logger] = None,
    ) -> List[ExtractedProduct]:
        """
        Extract and merge the products of every page.

        Args:
            pdf_path: PDF on local disk
            log: Logger to report progress to (defaults to the module logger)

        Raises:
            ExtractionError: Rendering failed, the PDF has no pages, or a
                page's model call raised
        """
        log = log or logger

        log.info(f"Converting PDF to images: {pdf_path}")
        try:
            pages = self._rasterizer.rasterize_file(pdf_path)
        except Exception as e:
            raise ExtractionError(
                f"Failed to extract products: Failed to convert PDF: {e}", cause=e
            ) from e

        if not pages:
            raise ExtractionError("Failed to extract products: No images extracted from PDF")

        log.info(f"Extracted {len(pages)} page(s) from PDF")

        all_products: List[ExtractedProduct] = []
        for page in pages:
            log.info(f"Processing page {page.page_number}/{len(pages)} with vision model...")
            try:
                all_products.extend(self.extract_from_page(page, log))
            except Exception as e:
                log.error(f"Model call failed for page {page.page_number}: {e}")
                raise ExtractionError(
                    f"Failed to extract products: page {page.page_number}: {e}", cause=e
                ) from e

        merged = deduplicate_products(all_products)
        log.info(f"Extracted {len(all_products)} products total, {len(merged)} after merging")
        return merged

    def extract_from_page(
        self,
        page: PageImage,
        log: Optional[logging.Logger] = None,
    ) -> List[ExtractedProduct]:
        """One model call for one page image."""
        log = log or logger
        raw = self._client.generate(
            self._prompt,
            [page.to_base64()],
            temperature=self._temperature,
            top_p=self._top_p,
        )
        log.debug(f"Raw model response (page {page.page_number}): {raw[:RESPONSE_PREVIEW_CHARS]}")
        return parse_model_response(raw)
