"""Shopping cart persisted to a client-side key-value slot.

Lines are keyed by (product id, size, color). Every mutation builds the new
line list, writes it to the slot, and only then swaps it in, so the
in-memory cart never runs ahead of what was persisted.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from .config import settings
from .kvstore import KeyValueStore
from .pricing import OrderTotals, order_totals
from .schemas import CartLine

logger = logging.getLogger(__name__)

_lines_adapter = TypeAdapter(List[CartLine])

def merge_line(lines: List[CartLine], line: CartLine) -> List[CartLine]:
    """Return lines with `line` added. A line with the same key keeps its snapshot and gains quantity."""
    merged = list(lines)
    for i, existing in enumerate(merged):
        if existing.key == line.key:
            merged[i] = existing.model_copy(update={"quantity": existing.quantity + line.quantity})
            return merged
    merged.append(line)
    return merged

def dump_lines(lines: List[CartLine]) -> str:
    return _lines_adapter.dump_json(lines, by_alias=True, exclude_none=True).decode("utf-8")

def load_lines(raw: Optional[str]) -> List[CartLine]:
    """Parse persisted lines. Absent or malformed contents give an empty cart."""
    if raw is None:
        return []
    try:
        parsed = _lines_adapter.validate_json(raw)
    except ValidationError as e:
        logger.warning("Discarding malformed cart state (%d error(s))", e.error_count())
        return []
    lines: List[CartLine] = []
    for line in parsed:
        lines = merge_line(lines, line)
    return lines

class CartStore:
    def __init__(self, kv: KeyValueStore, key: Optional[str] = None) -> None:
        self.kv = kv
        self.key = key or settings.CART_STORAGE_KEY
        self._lines: Tuple[CartLine, ...] = tuple(load_lines(self._read()))

    def _read(self) -> Optional[str]:
        try:
            return self.kv.get(self.key)
        except OSError as e:
            logger.warning("Could not read cart state: %s", e)
            return None

    def _commit(self, lines: List[CartLine]) -> None:
        self.kv.set(self.key, dump_lines(lines))
        self._lines = tuple(lines)

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        return self._lines

    def find(self, product_id: str, size: str, color: str) -> Optional[CartLine]:
        key = (product_id, size, color)
        return next((line for line in self._lines if line.key == key), None)

    def add(self, line: CartLine) -> None:
        self._commit(merge_line(list(self._lines), line))

    def remove(self, product_id: str, size: str, color: str) -> None:
        key = (product_id, size, color)
        self._commit([line for line in self._lines if line.key != key])

    def set_quantity(self, product_id: str, size: str, color: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(product_id, size, color)
            return
        key = (product_id, size, color)
        self._commit([
            line.model_copy(update={"quantity": quantity}) if line.key == key else line
            for line in self._lines
        ])

    def clear(self) -> None:
        self._commit([])

    def discard(self, ordered: Iterable[CartLine]) -> None:
        """Take ordered quantities out of the cart. Lines added since the order was taken stay."""
        taken = {line.key: line.quantity for line in ordered}
        kept = []
        for line in self._lines:
            left = line.quantity - taken.get(line.key, 0)
            if left == line.quantity:
                kept.append(line)
            elif left > 0:
                kept.append(line.model_copy(update={"quantity": left}))
        self._commit(kept)

    @property
    def total(self) -> float:
        return round(sum(line.line_total for line in self._lines), 2)

    @property
    def count(self) -> int:
        return sum(line.quantity for line in self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def totals(self) -> OrderTotals:
        return order_totals(self.total)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self._lines)
