"""
Print queue routes.

Handles:
- GET    /api/queue               - All items in print order
- GET    /api/queue/<id>          - One item
- POST   /api/queue               - Add one item
- POST   /api/queue/batch         - Add reviewed invoice products in one go
- PUT    /api/queue/<id>          - Partial update
- DELETE /api/queue/<id>          - Remove (leaves a position gap)
- PATCH  /api/queue/reorder       - Drag-and-drop move
- PATCH  /api/queue/<id>/status   - Status change
"""

from flask import Blueprint, current_app

from core.exceptions import ValidationError
from models.queue_item import (
    CreateQueueItem,
    QueueItemStatus,
    ReorderRequest,
    UpdateQueueItem,
)
from services.queue_service import QueueService
from .helpers import json_body, parse_id, success


queue_bp = Blueprint("queue", __name__, url_prefix="/api/queue")


def _queue_service() -> QueueService:
    return current_app.config["QUEUE_SERVICE"]


@queue_bp.route("", methods=["GET"])
def list_items():
    items = _queue_service().get_all()
    return success([i.to_dict() for i in items])


@queue_bp.route("/<item_id>", methods=["GET"])
def get_item(item_id: str):
    item = _queue_service().get_by_id(parse_id(item_id))
    return success(item.to_dict())


@queue_bp.route("", methods=["POST"])
def create_item():
    payload = CreateQueueItem.from_dict(json_body())
    item = _queue_service().create(payload)
    return success(item.to_dict(), "Queue item created successfully", 201)


@queue_bp.route("/batch", methods=["POST"])
def create_batch():
    """
    Create many items atomically.

    Body: {"items": [CreateQueueItem, ...], "basePosition": optional int}
    Either every item is created or none is.
    """
    body = json_body()
    items = body.get("items") if isinstance(body, dict) else None
    if not isinstance(items, list):
        raise ValidationError("Items must be an array", field="items")

    payloads = []
    for index, raw in enumerate(items):
        try:
            payloads.append(CreateQueueItem.from_dict(raw))
        except ValidationError as e:
            raise ValidationError(f"items[{index}]: {e.message}", field=e.field)

    base_position = body.get("basePosition")
    if base_position is not None and (
        isinstance(base_position, bool) or not isinstance(base_position, int) or base_position < 0
    ):
        raise ValidationError("basePosition must be a non-negative integer", field="basePosition")

    created = _queue_service().create_many(payloads, base_position=base_position)
    return success(
        [i.to_dict() for i in created],
        f"{len(created)} queue items created successfully",
        201,
    )


@queue_bp.route("/<item_id>", methods=["PUT"])
def update_item(item_id: str):
    changes = UpdateQueueItem.from_dict(json_body())
    item = _queue_service().update(parse_id(item_id), changes)
    return success(item.to_dict(), "Queue item updated successfully")


@queue_bp.route("/<item_id>", methods=["DELETE"])
def delete_item(item_id: str):
    _queue_service().delete(parse_id(item_id))
    return success(message="Queue item deleted successfully")


@queue_bp.route("/reorder", methods=["PATCH"])
def reorder():
    reorder_request = ReorderRequest.from_dict(json_body())
    _queue_service().reorder(reorder_request)
    return success(message="Queue reordered successfully")


@queue_bp.route("/<item_id>/status", methods=["PATCH"])
def update_status(item_id: str):
    item_id = parse_id(item_id)
    body = json_body()
    status = body.get("status") if isinstance(body, dict) else None
    if not status:
        raise ValidationError("Status is required", field="status")

    item = _queue_service().update_status(item_id, QueueItemStatus.parse(status))
    return success(item.to_dict(), "Status updated successfully")
