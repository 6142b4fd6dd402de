"""
Tests for QueueService against a temporary SQLite database.
"""

import random

import pytest
from sqlalchemy import Update
from sqlalchemy.engine import Connection
from unittest.mock import MagicMock, patch

from core.exceptions import ConstraintError, NotFoundError, ValidationError
from models.queue_item import (
    CreateQueueItem,
    QueueItemStatus,
    ReorderRequest,
    UpdateQueueItem,
)
from services.queue_service import QueueService


def _item(name, **kwargs):
    kwargs.setdefault("quantity", 1)
    return CreateQueueItem(product_name=name, **kwargs)


def _positions(service):
    return {item.product_name: item.position for item in service.get_all()}


def _assert_unique_positions(service):
    positions = [item.position for item in service.get_all()]
    assert len(set(positions)) == len(positions), positions


@pytest.fixture
def six_items(queue_service):
    """Queue A..F at positions 0..5."""
    return queue_service.create_many([_item(name) for name in "ABCDEF"])


class TestCreate:
    """Tests for create() and create_many()."""

    def test_first_item_at_zero(self, queue_service):
        item = queue_service.create(_item("Poster", quantity=2, details="A2 matte"))

        assert item.id is not None
        assert item.position == 0
        assert item.quantity == 2
        assert item.details == "A2 matte"
        assert item.status == QueueItemStatus.PENDING

    def test_appends_after_max(self, queue_service):
        queue_service.create(_item("A"))
        queue_service.create(_item("B", position=9))
        item = queue_service.create(_item("C"))

        assert item.position == 10

    def test_create_many_sequential(self, queue_service):
        queue_service.create(_item("Existing"))
        created = queue_service.create_many([_item("X"), _item("Y"), _item("Z")])

        assert [i.position for i in created] == [1, 2, 3]
        assert [i.product_name for i in created] == ["X", "Y", "Z"]

    def test_create_many_base_position(self, queue_service):
        created = queue_service.create_many([_item("X"), _item("Y")], base_position=20)

        assert [i.position for i in created] == [20, 21]

    def test_create_many_explicit_position_kept(self, queue_service):
        created = queue_service.create_many([_item("X"), _item("Y", position=50), _item("Z")])

        assert [i.position for i in created] == [0, 50, 1]

    def test_create_many_empty_does_not_touch_database(self):
        database = MagicMock()
        service = QueueService(database)

        assert service.create_many([]) == []
        database.transaction.assert_not_called()
        database.connect.assert_not_called()

    def test_create_many_is_atomic(self, queue_service):
        queue_service.create(_item("Existing"))

        # quantity 0 violates the CHECK constraint on the second row
        with pytest.raises(ConstraintError):
            queue_service.create_many([_item("Good"), _item("Bad", quantity=0)])

        assert [i.product_name for i in queue_service.get_all()] == ["Existing"]


class TestReorder:
    """Tests for reorder()."""

    def test_move_five_to_two(self, queue_service, six_items):
        f_item = six_items[5]

        queue_service.reorder(ReorderRequest(item_id=f_item.id, new_position=2))

        assert _positions(queue_service) == {"A": 0, "B": 1, "F": 2, "C": 3, "D": 4, "E": 5}

    def test_move_down(self, queue_service, six_items):
        queue_service.reorder(ReorderRequest(item_id=six_items[1].id, new_position=4))

        assert _positions(queue_service) == {"A": 0, "C": 1, "D": 2, "E": 3, "B": 4, "F": 5}

    def test_same_position_is_noop(self, queue_service, six_items):
        before = {i.id: (i.position, i.updated_at) for i in queue_service.get_all()}

        queue_service.reorder(ReorderRequest(item_id=six_items[3].id, new_position=3))

        after = {i.id: (i.position, i.updated_at) for i in queue_service.get_all()}
        assert after == before

    def test_positions_unique_after_many_moves(self, queue_service, six_items):
        for index, target in [(0, 5), (3, 0), (5, 2), (2, 4)]:
            queue_service.reorder(ReorderRequest(item_id=six_items[index].id, new_position=target))
            positions = [i.position for i in queue_service.get_all()]
            assert len(set(positions)) == len(positions)

        assert sorted(_positions(queue_service).values()) == [0, 1, 2, 3, 4, 5]

    def test_unknown_item(self, queue_service, six_items):
        with pytest.raises(NotFoundError):
            queue_service.reorder(ReorderRequest(item_id=9999, new_position=0))

        assert _positions(queue_service) == {"A": 0, "B": 1, "C": 2, "D": 3, "E": 4, "F": 5}

    def test_negative_position_rejected(self, queue_service, six_items):
        with pytest.raises(ValidationError):
            queue_service.reorder(ReorderRequest(item_id=six_items[0].id, new_position=-1))

    def test_results_in_print_order(self, queue_service, six_items):
        queue_service.reorder(ReorderRequest(item_id=six_items[4].id, new_position=0))

        assert [i.product_name for i in queue_service.get_all()] == ["E", "A", "B", "C", "D", "F"]


class TestUpdateAndDelete:
    """Tests for update(), update_status() and delete()."""

    def test_partial_update(self, queue_service):
        item = queue_service.create(_item("Flyer", details="A5"))

        updated = queue_service.update(item.id, UpdateQueueItem(values={"quantity": 50, "notes": "rush"}))

        assert updated.quantity == 50
        assert updated.notes == "rush"
        assert updated.details == "A5"
        assert updated.product_name == "Flyer"

    def test_update_position_shifts_others(self, queue_service, six_items):
        queue_service.update(six_items[5].id, UpdateQueueItem(values={"position": 2}))

        assert _positions(queue_service) == {"A": 0, "B": 1, "F": 2, "C": 3, "D": 4, "E": 5}

    def test_empty_update_returns_item(self, queue_service):
        item = queue_service.create(_item("Card"))

        assert queue_service.update(item.id, UpdateQueueItem()).id == item.id

    def test_update_unknown_item(self, queue_service):
        with pytest.raises(NotFoundError):
            queue_service.update(42, UpdateQueueItem(values={"quantity": 2}))

    def test_update_status(self, queue_service):
        item = queue_service.create(_item("Banner"))

        updated = queue_service.update_status(item.id, "printing")

        assert updated.status == QueueItemStatus.PRINTING
        assert updated.position == item.position

    def test_update_status_invalid(self, queue_service):
        item = queue_service.create(_item("Banner"))

        with pytest.raises(ValidationError):
            queue_service.update_status(item.id, "lost")

    def test_delete_leaves_gap(self, queue_service, six_items):
        queue_service.delete(six_items[2].id)

        assert _positions(queue_service) == {"A": 0, "B": 1, "D": 3, "E": 4, "F": 5}

    def test_delete_unknown_item(self, queue_service):
        with pytest.raises(NotFoundError):
            queue_service.delete(12345)


class TestInsertAtPosition:
    """Tests for creates that name an occupied position."""

    @pytest.fixture
    def three_items(self, queue_service):
        return queue_service.create_many([_item(name) for name in "ABC"])

    def test_create_at_occupied_position(self, queue_service, three_items):
        item = queue_service.create(_item("X", position=1))

        assert item.position == 1
        assert _positions(queue_service) == {"A": 0, "X": 1, "B": 2, "C": 3}

    def test_create_at_free_position_moves_nothing(self, queue_service, three_items):
        queue_service.create(_item("X", position=7))

        assert _positions(queue_service) == {"A": 0, "B": 1, "C": 2, "X": 7}

    def test_create_many_at_occupied_base(self, queue_service, three_items):
        created = queue_service.create_many([_item("X"), _item("Y")], base_position=0)

        assert [i.position for i in created] == [0, 1]
        assert _positions(queue_service) == {"X": 0, "Y": 1, "A": 2, "B": 3, "C": 4}

    def test_create_many_explicit_occupied_position(self, queue_service, three_items):
        created = queue_service.create_many([_item("X", position=2), _item("Y")])

        _assert_unique_positions(queue_service)
        assert [i.product_name for i in queue_service.get_all()] == ["A", "B", "X", "Y", "C"]
        assert [i.position for i in created] == [2, 3]


class TestReorderAtomicity:
    """Tests that a failed reorder leaves every position as it was."""

    def test_failure_while_placing_item_rolls_back(self, queue_service, six_items):
        before = _positions(queue_service)
        original_execute = Connection.execute
        updates = []

        def fail_on_second_update(conn, statement, *args, **kwargs):
            if isinstance(statement, Update):
                updates.append(statement)
                if len(updates) == 2:
                    raise RuntimeError("connection lost")
            return original_execute(conn, statement, *args, **kwargs)

        with patch.object(Connection, "execute", autospec=True, side_effect=fail_on_second_update):
            with pytest.raises(RuntimeError):
                queue_service.reorder(ReorderRequest(item_id=six_items[5].id, new_position=2))

        assert len(updates) == 2
        assert _positions(queue_service) == before


class TestPositionInvariant:
    """Interleaved create, delete and reorder never produce duplicate positions."""

    def test_reorder_across_gap(self, queue_service, six_items):
        queue_service.delete(six_items[2].id)

        queue_service.reorder(ReorderRequest(item_id=six_items[5].id, new_position=1))

        assert _positions(queue_service) == {"A": 0, "F": 1, "B": 2, "D": 4, "E": 5}
        _assert_unique_positions(queue_service)

    def test_reorder_into_gap(self, queue_service, six_items):
        queue_service.delete(six_items[2].id)

        queue_service.reorder(ReorderRequest(item_id=six_items[0].id, new_position=2))

        assert _positions(queue_service) == {"B": 0, "A": 2, "D": 3, "E": 4, "F": 5}

    def test_random_operation_sequence(self, queue_service):
        rng = random.Random(1234)
        counter = 0

        for _ in range(60):
            items = queue_service.get_all()
            action = rng.choice(["create", "create_at", "delete", "reorder", "reorder"])

            if action == "create" or not items:
                counter += 1
                queue_service.create(_item(f"item-{counter}"))
            elif action == "create_at":
                counter += 1
                target = rng.choice(items).position
                queue_service.create(_item(f"item-{counter}", position=target))
            elif action == "delete":
                queue_service.delete(rng.choice(items).id)
            else:
                max_position = max(i.position for i in items)
                queue_service.reorder(ReorderRequest(
                    item_id=rng.choice(items).id,
                    new_position=rng.randint(0, max_position),
                ))

            _assert_unique_positions(queue_service)
