"""Central enum definitions for account roles and staff capabilities.

Both are persisted as integers (USER_ACCOUNT.user_role, STAFF.PERMISSIONS bit
positions). Never renumber or reuse a value; add new members at the end.
"""
from __future__ import annotations
from enum import IntEnum
from typing import Dict, Tuple


class Role(IntEnum):
    CUSTOMER = 0
    STAFF = 1
    ADMIN = 2

    @property
    def label(self) -> str:
        return self.name.lower()


class Capability(IntEnum):
    """Bit position of each staff capability inside the permission mask."""
    REPORTS = 0
    MEAL_MANAGEMENT = 1
    STOCK_CONTROL = 2
    ORDERS = 3
    SEASONAL_DISCOUNTS = 4
    PROMO_CODES = 5

    @property
    def flag(self) -> int:
        return 1 << int(self)

    @property
    def field(self) -> str:
        return self.name.lower()


ALL_CAPABILITIES: Tuple[Capability, ...] = tuple(Capability)
KNOWN_BITS = sum(c.flag for c in Capability)

# Field names posted by the back-office staff form
LEGACY_PERMISSION_FIELDS: Dict[str, Capability] = {
    'report_perm': Capability.REPORTS,
    'meal_perm': Capability.MEAL_MANAGEMENT,
    'stock_perm': Capability.STOCK_CONTROL,
    'meal_category_perm': Capability.ORDERS,
    'sale_event_perm': Capability.SEASONAL_DISCOUNTS,
    'promo_perm': Capability.PROMO_CODES,
}
