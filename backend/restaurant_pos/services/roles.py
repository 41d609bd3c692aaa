"""Account role codes <-> names.

Unknown values raise InvalidRoleCode. Nothing defaults to customer.
"""
from __future__ import annotations
from typing import Any

from restaurant_pos.constants.permissions import Role
from restaurant_pos.errors import InvalidRoleCode


def parse_role(code: Any) -> Role:
    """Strict conversion of a stored/claimed role code to Role."""
    if isinstance(code, Role):
        return code
    if isinstance(code, bool) or not isinstance(code, int):
        raise InvalidRoleCode(f'Unknown role code {code!r}')
    try:
        return Role(code)
    except ValueError:
        raise InvalidRoleCode(f'Unknown role code {code!r}') from None


def role_name(code: Any) -> str:
    return parse_role(code).label


def role_code(name: Any) -> int:
    if not isinstance(name, str):
        raise InvalidRoleCode(f'Unknown role name {name!r}')
    try:
        return int(Role[name.strip().upper()])
    except KeyError:
        raise InvalidRoleCode(f'Unknown role name {name!r}') from None


def role_from_name(name: Any) -> Role:
    return Role(role_code(name))


__all__ = ['parse_role', 'role_name', 'role_code', 'role_from_name']
