"""Slot-based inventory with per-item stack limits."""

from __future__ import annotations

from dataclasses import dataclass
import math


DEFAULT_INVENTORY_SIZE = 9
DEFAULT_MAX_STACK = 64
ITEM_MAX_STACK: dict[str, float] = {
    "wood": 99,
    "stone": 99,
    "herb": 30,
    "feather": 50,
    "Health Potion": 10,
    "gold": math.inf,
}


@dataclass
class InventorySlot:
    name: str
    count: int

    def as_dict(self) -> dict[str, object]:
        return {"name": self.name, "count": self.count}


class Inventory:
    def __init__(self, size: int = DEFAULT_INVENTORY_SIZE, max_stack: dict[str, float] | None = None) -> None:
        self.size = max(0, int(size))
        self.slots: list[InventorySlot | None] = [None] * self.size
        self._max_stack = dict(ITEM_MAX_STACK if max_stack is None else max_stack)

    def max_stack(self, name: str) -> float:
        return self._max_stack.get(name, DEFAULT_MAX_STACK)

    def add_item(self, name: str, count: int = 1) -> bool:
        """Add ``count`` of ``name``, stacking first. Returns False if not all fit.

        Nothing is added when the full amount does not fit, so a failed add
        never leaves a partial stack behind.
        """
        if not name or count <= 0:
            return False
        if self._capacity_for(name) < count:
            return False

        limit = self.max_stack(name)
        remaining = count
        for slot in self.slots:
            if remaining <= 0:
                break
            if slot is not None and slot.name == name and slot.count < limit:
                added = int(min(remaining, limit - slot.count))
                slot.count += added
                remaining -= added
        for idx, slot in enumerate(self.slots):
            if remaining <= 0:
                break
            if slot is None:
                added = int(min(remaining, limit))
                self.slots[idx] = InventorySlot(name=name, count=added)
                remaining -= added
        return remaining == 0

    def remove_item(self, name: str, count: int = 1) -> bool:
        if not name or count <= 0 or self.count_item(name) < count:
            return False
        remaining = count
        for idx in range(self.size - 1, -1, -1):
            slot = self.slots[idx]
            if remaining <= 0:
                break
            if slot is None or slot.name != name:
                continue
            taken = min(remaining, slot.count)
            slot.count -= taken
            remaining -= taken
            if slot.count == 0:
                self.slots[idx] = None
        return True

    def count_item(self, name: str) -> int:
        return sum(slot.count for slot in self.slots if slot is not None and slot.name == name)

    def is_full_for(self, name: str) -> bool:
        return self._capacity_for(name) <= 0

    def summary(self) -> str:
        totals: dict[str, int] = {}
        for slot in self.slots:
            if slot is not None:
                totals[slot.name] = totals.get(slot.name, 0) + slot.count
        if not totals:
            return "Empty"
        return ", ".join(f"{name}: {count}" for name, count in totals.items())

    def as_list(self) -> list[dict[str, object] | None]:
        return [slot.as_dict() if slot is not None else None for slot in self.slots]

    def _capacity_for(self, name: str) -> float:
        limit = self.max_stack(name)
        capacity = 0.0
        for slot in self.slots:
            if slot is None:
                capacity += limit
            elif slot.name == name:
                capacity += max(0, limit - slot.count)
        return capacity
