"""
Queue item data models.

QueueItem mirrors a row of the ``queue_items`` table. The request models
(CreateQueueItem, UpdateQueueItem, ReorderRequest) are built from JSON
bodies with ``from_dict``, which validates and sanitizes every field and
raises ValidationError on the first problem found.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from core.exceptions import ValidationError
from modules.sanitize import sanitize_text


MAX_PRODUCT_NAME_LENGTH = 255
MAX_TEXT_LENGTH = 2000


class QueueItemStatus(Enum):
    """
    Print status of a queue item.

    Informational only: status never changes an item's position.
    """

    PENDING = "pending"
    PRINTING = "printing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: Any) -> "QueueItemStatus":
        """Convert a request value, raising ValidationError if unknown."""
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError(
                f"Invalid status '{value}'. Allowed: {allowed}", field="status"
            )


def _parse_int(value: Any, field_name: str, minimum: Optional[int] = None) -> int:
    # JSON numbers may arrive as 3.0; booleans are ints in Python and are rejected
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field_name} must be >= {minimum}", field=field_name)
    return value


def _parse_optional_text(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string", field=field_name)
    return sanitize_text(value, MAX_TEXT_LENGTH) or None


def _parse_product_name(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError("productName is required", field="productName")
    name = sanitize_text(value, MAX_PRODUCT_NAME_LENGTH)
    if not name:
        raise ValidationError("productName must not be empty", field="productName")
    return name


def _require_mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValidationError("Request body must be a JSON object")
    return data


@dataclass
class QueueItem:
    """One product waiting to be printed."""

    id: int
    product_name: str
    details: Optional[str]
    quantity: int
    position: int
    """Zero-based place in the print order; lower prints first."""

    status: QueueItemStatus
    invoice_id: Optional[int]
    priority: int
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "QueueItem":
        """Create from a ``queue_items`` result row mapping."""
        return cls(
            id=row["id"],
            product_name=row["product_name"],
            details=row["details"],
            quantity=row["quantity"],
            position=row["position"],
            status=QueueItemStatus(row["status"]),
            invoice_id=row["invoice_id"],
            priority=row["priority"],
            notes=row["notes"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase shape returned by the API."""
        return {
            "id": self.id,
            "productName": self.product_name,
            "details": self.details,
            "quantity": self.quantity,
            "position": self.position,
            "status": self.status.value,
            "invoiceId": self.invoice_id,
            "priority": self.priority,
            "notes": self.notes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class CreateQueueItem:
    """
    Payload for adding one item to the queue.

    ``position`` is optional: when absent the item is appended after the
    current last position.
    """

    product_name: str
    quantity: int
    details: Optional[str] = None
    position: Optional[int] = None
    status: QueueItemStatus = QueueItemStatus.PENDING
    invoice_id: Optional[int] = None
    priority: int = 0
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "CreateQueueItem":
        """Validate and build from a JSON object."""
        data = _require_mapping(data)

        if "quantity" not in data:
            raise ValidationError("quantity is required", field="quantity")

        position = data.get("position")
        invoice_id = data.get("invoiceId")
        priority = data.get("priority")

        return cls(
            product_name=_parse_product_name(data.get("productName")),
            quantity=_parse_int(data["quantity"], "quantity", minimum=1),
            details=_parse_optional_text(data.get("details"), "details"),
            position=_parse_int(position, "position", minimum=0) if position is not None else None,
            status=QueueItemStatus.parse(data["status"]) if data.get("status") else QueueItemStatus.PENDING,
            invoice_id=_parse_int(invoice_id, "invoiceId", minimum=1) if invoice_id is not None else None,
            priority=_parse_int(priority, "priority") if priority is not None else 0,
            notes=_parse_optional_text(data.get("notes"), "notes"),
        )

    def to_values(self, position: int) -> Dict[str, Any]:
        """Column values for an INSERT at ``position``."""
        return {
            "product_name": self.product_name,
            "details": self.details,
            "quantity": self.quantity,
            "position": position,
            "status": self.status.value,
            "invoice_id": self.invoice_id,
            "priority": self.priority,
            "notes": self.notes,
        }


@dataclass
class UpdateQueueItem:
    """
    Partial update of a queue item.

    Only keys present in the request body end up in ``values`` (keyed by
    column name). ``details`` and ``notes`` may be cleared with null.
    """

    values: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.values

    @property
    def position(self) -> Optional[int]:
        return self.values.get("position")

    def column_values(self) -> Dict[str, Any]:
        """Values for a plain UPDATE; position is handled by the reorder shift."""
        return {k: v for k, v in self.values.items() if k != "position"}

    @classmethod
    def from_dict(cls, data: Any) -> "UpdateQueueItem":
        data = _require_mapping(data)
        values: Dict[str, Any] = {}

        if "productName" in data:
            values["product_name"] = _parse_product_name(data["productName"])
        if "details" in data:
            values["details"] = _parse_optional_text(data["details"], "details")
        if "quantity" in data:
            values["quantity"] = _parse_int(data["quantity"], "quantity", minimum=1)
        if "position" in data:
            values["position"] = _parse_int(data["position"], "position", minimum=0)
        if "status" in data:
            values["status"] = QueueItemStatus.parse(data["status"]).value
        if "priority" in data:
            values["priority"] = _parse_int(data["priority"], "priority")
        if "notes" in data:
            values["notes"] = _parse_optional_text(data["notes"], "notes")

        return cls(values=values)


@dataclass(frozen=True)
class ReorderRequest:
    """Move ``item_id`` to ``new_position``."""

    item_id: int
    new_position: int

    @classmethod
    def from_dict(cls, data: Any) -> "ReorderRequest":
        data = _require_mapping(data)
        if not data.get("itemId") or data.get("newPosition") is None:
            raise ValidationError("itemId and newPosition are required")
        return cls(
            item_id=_parse_int(data["itemId"], "itemId", minimum=1),
            new_position=_parse_int(data["newPosition"], "newPosition", minimum=0),
        )
