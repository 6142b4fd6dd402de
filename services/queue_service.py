"""
Print queue service.

Owns every write to ``queue_items`` and keeps item positions free of
duplicates:

    create       append after the last position, or insert at an explicit one
                 (items at or after it move down one place)
    create_many  sequential positions for a whole batch, one transaction;
                 occupied slots are made room for the same way
    reorder      range shift + place, one transaction
    update       field changes; a new position goes through the reorder shift
    delete       removes the row and leaves a gap (no compaction)

Concurrent reorders touching the same range are serialized by the
database's transaction isolation. There is no application-level locking, so
the last transaction to commit wins.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from core.database import Database, queue_items, utcnow
from core.exceptions import NotFoundError, ValidationError
from models.queue_item import (
    CreateQueueItem,
    QueueItem,
    QueueItemStatus,
    ReorderRequest,
    UpdateQueueItem,
)
from modules.positions import assign_positions, next_position, plan_reorder
from logging_config import get_logger


logger = get_logger(__name__)


class QueueService:
    """
    CRUD and reordering over the print queue.

    Attributes:
        database: Initialized Database shared with the rest of the app
    """

    def __init__(self, database: Database):
        self._db = database

    # =========================================================================
    # READS
    # =========================================================================

    def get_all(self) -> List[QueueItem]:
        """All items in print order."""
        stmt = select(queue_items).order_by(queue_items.c.position.asc(), queue_items.c.id.asc())
        with self._db.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [QueueItem.from_row(r) for r in rows]

    def get_by_id(self, item_id: int) -> QueueItem:
        with self._db.connect() as conn:
            return self._fetch(conn, item_id)

    # =========================================================================
    # WRITES
    # =========================================================================

    def create(self, item: CreateQueueItem) -> QueueItem:
        """Insert one item, appending it when no position was requested."""
        with self._db.transaction() as conn:
            position = item.position
            if position is None:
                position = next_position(self._max_position(conn))
            created = self._fetch(conn, self._insert(conn, item, position))

        logger.info(f"Queue item {created.id} created at position {created.position}")
        return created

    def create_many(
        self,
        items: Sequence[CreateQueueItem],
        base_position: Optional[int] = None,
    ) -> List[QueueItem]:
        """
        Insert a batch atomically.

        Args:
            items: Items in the order they should print
            base_position: First position for items without an explicit one
                (defaults to the next free position)

        Positions are worked out before anything is written. Items are
        then inserted in order, each one making room if its slot is taken.

        Returns:
            Created items in input order; [] for an empty batch, in which
            case the database is not touched at all.
        """
        if not items:
            return []

        with self._db.transaction() as conn:
            if base_position is None:
                base_position = next_position(self._max_position(conn))
            positions = assign_positions((i.position for i in items), base_position)
            item_ids = [self._insert(conn, item, pos) for item, pos in zip(items, positions)]
            # Later inserts may have pushed earlier ones down; read back final positions
            created = [self._fetch(conn, item_id) for item_id in item_ids]

        logger.info(f"Batch created {len(created)} queue items from position {base_position}")
        return created

    def update(self, item_id: int, changes: UpdateQueueItem) -> QueueItem:
        """
        Apply a partial update.

        A new ``position`` is applied with the same range shift as reorder
        so the rest of the queue moves out of the way.
        """
        with self._db.transaction() as conn:
            if changes.is_empty:
                return self._fetch(conn, item_id)

            current = self._current_position(conn, item_id)

            values = changes.column_values()
            if values:
                conn.execute(
                    queue_items.update().where(queue_items.c.id == item_id).values(**values)
                )

            if changes.position is not None:
                self._move(conn, item_id, current, changes.position)

            updated = self._fetch(conn, item_id)

        logger.info(f"Queue item {item_id} updated: {sorted(changes.values)}")
        return updated

    def update_status(self, item_id: int, status: QueueItemStatus | str) -> QueueItem:
        if not isinstance(status, QueueItemStatus):
            status = QueueItemStatus.parse(status)
        return self.update(item_id, UpdateQueueItem(values={"status": status.value}))

    def delete(self, item_id: int) -> None:
        """
        Remove an item.

        Positions of the remaining items are left as they are, so a gap
        appears where the item used to be.
        """
        with self._db.transaction() as conn:
            result = conn.execute(queue_items.delete().where(queue_items.c.id == item_id))
            if result.rowcount == 0:
                raise NotFoundError("Queue item", item_id)

        logger.info(f"Queue item {item_id} deleted")

    def reorder(self, request: ReorderRequest) -> None:
        """
        Move one item to ``request.new_position``.

        Either every position change is committed or none is.

        Raises:
            NotFoundError: If the item does not exist
            ValidationError: If the new position is negative
        """
        if request.new_position < 0:
            raise ValidationError("newPosition must be >= 0", field="newPosition")

        with self._db.transaction() as conn:
            current = self._current_position(conn, request.item_id)
            self._move(conn, request.item_id, current, request.new_position)

        logger.info(
            f"Queue item {request.item_id} moved from position {current} to {request.new_position}"
        )

    # =========================================================================
    # HELPERS (run inside the caller's transaction)
    # =========================================================================

    def _move(self, conn: Connection, item_id: int, current: int, new_position: int) -> None:
        shift = plan_reorder(current, new_position)
        if shift is None:
            return

        position = queue_items.c.position
        conn.execute(
            queue_items.update()
            .where(position >= shift.lower)
            .where(position <= shift.upper)
            .where(queue_items.c.id != item_id)
            .values(position=position + shift.delta, updated_at=utcnow())
        )
        conn.execute(
            queue_items.update()
            .where(queue_items.c.id == item_id)
            .values(position=new_position, updated_at=utcnow())
        )

    def _insert(self, conn: Connection, item: CreateQueueItem, position: int) -> int:
        self._make_room(conn, position)
        result = conn.execute(queue_items.insert().values(**item.to_values(position)))
        return result.inserted_primary_key[0]

    def _make_room(self, conn: Connection, position: int) -> None:
        """If ``position`` is taken, move it and everything after it down one place."""
        occupied = conn.execute(
            select(queue_items.c.id).where(queue_items.c.position == position).limit(1)
        ).first()
        if occupied is None:
            return

        column = queue_items.c.position
        conn.execute(
            queue_items.update()
            .where(column >= position)
            .values(position=column + 1, updated_at=utcnow())
        )

    def _fetch(self, conn: Connection, item_id: int) -> QueueItem:
        row = conn.execute(
            select(queue_items).where(queue_items.c.id == item_id)
        ).mappings().first()
        if row is None:
            raise NotFoundError("Queue item", item_id)
        return QueueItem.from_row(row)

    def _current_position(self, conn: Connection, item_id: int) -> int:
        position = conn.execute(
            select(queue_items.c.position).where(queue_items.c.id == item_id)
        ).scalar_one_or_none()
        if position is None:
            raise NotFoundError("Queue item", item_id)
        return position

    @staticmethod
    def _max_position(conn: Connection) -> Optional[int]:
        return conn.execute(select(func.max(queue_items.c.position))).scalar()
