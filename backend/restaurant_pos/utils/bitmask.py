from __future__ import annotations
"""Codec between the STAFF.PERMISSIONS integer column and PermissionSet.

Raw integers exist only at the storage / JSON boundary. Everything above it
works with ``PermissionSet`` and ``Capability``.

    mask = encode({'stock_control': True})          # -> 4
    decode(mask).stock_control                      # -> True
    has_capability(mask, Capability.PROMO_CODES)    # -> False

Decoding never fails: the mask is read as an unsigned 32-bit quantity and any
bit outside the known capability positions is ignored.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from restaurant_pos.constants.permissions import Capability, LEGACY_PERMISSION_FIELDS

UINT32 = 0xFFFFFFFF
_TRUTHY_STRINGS = {'1', 'true', 'on'}


def is_truthy(value: Any) -> bool:
    """Form-style flag parsing: True, 1, '1', 'true', 'on' (case-insensitive)."""
    if value is True:
        return True
    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    return False


@dataclass(frozen=True)
class PermissionSet:
    reports: bool = False
    meal_management: bool = False
    stock_control: bool = False
    orders: bool = False
    seasonal_discounts: bool = False
    promo_codes: bool = False

    @classmethod
    def of(cls, *capabilities: Capability) -> 'PermissionSet':
        return cls(**{Capability(c).field: True for c in capabilities})

    def __contains__(self, capability: Capability) -> bool:
        return bool(getattr(self, Capability(capability).field))

    def granted(self) -> List[Capability]:
        return [c for c in Capability if c in self]

    def to_dict(self) -> Dict[str, bool]:
        return {c.field: c in self for c in Capability}


FlagsLike = Union[PermissionSet, Mapping[str, Any], None]


def _unsigned(mask: Any) -> int:
    if mask is None or isinstance(mask, bool):
        return 0
    try:
        return int(mask) & UINT32
    except (TypeError, ValueError):
        return 0


def encode(flags: FlagsLike) -> int:
    """Bitwise OR of the set capability bits. Absent flags count as false."""
    if flags is None:
        return 0
    if isinstance(flags, PermissionSet):
        flags = flags.to_dict()
    mask = 0
    for cap in Capability:
        if is_truthy(flags.get(cap.field)):
            mask |= cap.flag
    return mask


def decode(mask: Any) -> PermissionSet:
    value = _unsigned(mask)
    return PermissionSet(**{c.field: (value & c.flag) == c.flag for c in Capability})


def has_capability(mask: Any, bit: Union[Capability, int]) -> bool:
    try:
        cap = Capability(bit)
    except ValueError:
        return False
    return (_unsigned(mask) & cap.flag) == cap.flag


def flags_from_body(body: Mapping[str, Any]) -> Optional[PermissionSet]:
    """Build a PermissionSet from a request body.

    Accepts the capability names (``stock_control``), the legacy staff form
    fields (``stock_perm``) or a nested ``permissions`` object / integer mask.
    Returns None when the body carries no permission information at all, so
    partial updates can leave the stored mask untouched.
    """
    nested = body.get('permissions')
    if isinstance(nested, int) and not isinstance(nested, bool):
        return decode(nested)
    source: Dict[str, Any] = dict(nested) if isinstance(nested, Mapping) else {}
    for cap in Capability:
        if cap.field in body:
            source[cap.field] = body[cap.field]
    for legacy, cap in LEGACY_PERMISSION_FIELDS.items():
        if legacy in body:
            source[cap.field] = body[legacy]
    if not source:
        return None
    return decode(encode(source))


__all__ = ['PermissionSet', 'encode', 'decode', 'has_capability', 'flags_from_body', 'is_truthy']
