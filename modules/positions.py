"""
Position arithmetic for the print queue.

Positions are zero-based integers; lower prints first. These helpers decide
*which* positions change and by how much. QueueService turns the answers
into SQL inside a single transaction.

Moving an item behaves like removing it from a list and inserting it again
at the new index:

    before:  A0 B1 C2 D3 E4 F5        move F (5) -> 2
    shift:   positions [2, 4] get +1   -> C3 D4 E5
    after:   A0 B1 F2 C3 D4 E5

Inserting at an occupied position makes room the same way: every item at
or after it moves down one place first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class PositionShift:
    """Every item with ``lower <= position <= upper`` moves by ``delta``."""

    lower: int
    upper: int
    delta: int


def next_position(max_position: Optional[int]) -> int:
    """First free position after the current maximum (0 for an empty queue)."""
    return 0 if max_position is None else max_position + 1


def plan_reorder(current_position: int, new_position: int) -> Optional[PositionShift]:
    """
    Work out the range shift for moving an item.

    Returns:
        None when the item stays where it is, otherwise the shift to apply
        to all *other* items before placing the moved item.
    """
    if new_position == current_position:
        return None
    if new_position < current_position:
        # Moving up the queue: [new, current) slide down one place
        return PositionShift(new_position, current_position - 1, +1)
    # Moving down the queue: (current, new] slide up one place
    return PositionShift(current_position + 1, new_position, -1)


def assign_positions(requested: Iterable[Optional[int]], base_position: int) -> List[int]:
    """
    Fill in positions for a batch insert.

    Items that asked for a position keep it and do not use up a slot;
    the rest get ``base_position``, ``base_position + 1``, ... in input order.
    """
    assigned: List[int] = []
    counter = base_position
    for position in requested:
        if position is None:
            assigned.append(counter)
            counter += 1
        else:
            assigned.append(position)
    return assigned

