"""
Cart Store

Owns the cart of one browsing session. State is an immutable
CartSnapshot; each mutation builds a new snapshot, writes it to client
storage and returns it.

Persistence:
    - Loaded once when the store is created
    - Written after every mutation
    - Unreadable saved state is treated as an empty cart

Single writer per session; no locking.

Version: 1.0.0
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from orderdesk.core.config import get_settings
from orderdesk.core.exceptions import ValidationError
from orderdesk.schemas import CartItem, CartItemCreate, CartSnapshot, OrderTotals, OrderType
from orderdesk.services.pricing import compute_totals
from orderdesk.services.storage.base import BaseKeyValueStorage

logger = logging.getLogger(__name__)


def _normalize_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = notes.strip()
    return notes or None


class CartStore:
    """
    Cart of a single session.

    Attributes:
        storage: Client storage holding the serialized snapshot
        key: Storage key of this cart

    Example:
        >>> cart = CartStore(storage, key="orderdesk-cart:abc")
        >>> cart.add_item(CartItemCreate(product_id="p1", name="Hummus",
        ...                              unit_price=Decimal("4.50"), quantity=2))
        >>> cart.total_item_count
        2
    """

    def __init__(self, storage: BaseKeyValueStorage, key: Optional[str] = None):
        self.storage = storage
        self.key = key or get_settings().cart_storage_key
        self._snapshot = self._load()

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _load(self) -> CartSnapshot:
        raw = self.storage.get(self.key)
        if not raw:
            return CartSnapshot()
        try:
            return CartSnapshot.model_validate_json(raw)
        except (PydanticValidationError, ValueError):
            logger.warning(f"Discarding unreadable cart state under '{self.key}'")
            return CartSnapshot()

    def _commit(self, items: tuple[CartItem, ...]) -> CartSnapshot:
        self._snapshot = CartSnapshot(items=items)
        self.storage.set(self.key, self._snapshot.model_dump_json())
        return self._snapshot

    # =========================================================================
    # READS
    # =========================================================================

    @property
    def snapshot(self) -> CartSnapshot:
        return self._snapshot

    @property
    def items(self) -> tuple[CartItem, ...]:
        return self._snapshot.items

    @property
    def total_item_count(self) -> int:
        return self._snapshot.total_item_count

    @property
    def subtotal(self) -> Decimal:
        """Raw line sum, without any delivery fee."""
        return compute_totals(self.items, OrderType.PICKUP).subtotal

    def totals(
        self,
        order_type: OrderType,
        free_delivery_threshold: Optional[Decimal] = None,
        base_delivery_fee: Optional[Decimal] = None,
    ) -> OrderTotals:
        """Price preview for the selected order type."""
        settings = get_settings()
        return compute_totals(
            self.items,
            order_type,
            free_delivery_threshold=(
                settings.free_delivery_threshold
                if free_delivery_threshold is None else free_delivery_threshold
            ),
            base_delivery_fee=(
                settings.delivery_fee if base_delivery_fee is None else base_delivery_fee
            ),
        )

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_item(self, item: CartItemCreate) -> CartSnapshot:
        """
        Add a line, or grow the existing line with the same product and notes.

        Raises:
            ValidationError: If quantity is not a positive integer
        """
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity <= 0:
            raise ValidationError("Quantity must be a positive integer", field="quantity")

        notes = _normalize_notes(item.notes)
        identity = (item.product_id, notes)

        items = list(self.items)
        for index, line in enumerate(items):
            if line.identity == identity:
                items[index] = line.model_copy(update={"quantity": line.quantity + item.quantity})
                logger.debug(f"Merged {item.quantity}x {item.name} into line {line.id}")
                return self._commit(tuple(items))

        items.append(CartItem(
            id=str(uuid.uuid4()),
            product_id=item.product_id,
            name=item.name,
            unit_price=item.unit_price,
            quantity=item.quantity,
            notes=notes,
        ))
        return self._commit(tuple(items))

    def remove_item(self, line_id: str) -> CartSnapshot:
        """Remove a line; unknown ids leave the cart unchanged."""
        if not any(line.id == line_id for line in self.items):
            return self._snapshot
        return self._commit(tuple(line for line in self.items if line.id != line_id))

    def update_quantity(self, line_id: str, quantity: int) -> CartSnapshot:
        """Set a line's quantity; zero or less removes the line."""
        if quantity <= 0:
            return self.remove_item(line_id)
        if not any(line.id == line_id for line in self.items):
            return self._snapshot
        return self._commit(tuple(
            line.model_copy(update={"quantity": quantity}) if line.id == line_id else line
            for line in self.items
        ))

    def clear(self) -> CartSnapshot:
        return self._commit(())
