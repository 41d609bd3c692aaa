from __future__ import annotations
"""Request body validation helpers.

All of them abort with 400 and a short description naming the offending
field, so handlers can call them inline.
"""
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional
from flask import abort


def require_fields(data: Mapping[str, Any], fields: Iterable[str]):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        abort(400, description=f"{', '.join(missing)} required")


def parse_int(value: Any, field_name: str, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    """Coerce value to int; bools and fractional numbers are rejected."""
    if isinstance(value, bool) or value is None:
        abort(400, description=f'{field_name} must be int')
    if isinstance(value, float) and not value.is_integer():
        abort(400, description=f'{field_name} must be int')
    try:
        out = int(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} must be int')
    if minimum is not None and out < minimum:
        abort(400, description=f'{field_name} must be >= {minimum}')
    if maximum is not None and out > maximum:
        abort(400, description=f'{field_name} must be <= {maximum}')
    return out


def parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} must be YYYY-MM-DD')


def parse_datetime(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).replace(tzinfo=None)
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} must be ISO 8601')


MIN_PASSWORD_LENGTH = 6


def parse_password(value: Any, field_name: str = 'password') -> str:
    if not isinstance(value, str):
        abort(400, description=f'{field_name} must be a string')
    if len(value) < MIN_PASSWORD_LENGTH:
        abort(400, description=f'{field_name} must be at least {MIN_PASSWORD_LENGTH} characters')
    return value


def validate_choice(value: Any, allowed: Iterable[Any], field_name: str):
    if value not in allowed:
        abort(400, description=f'{field_name} invalid')
    return value


__all__ = ['require_fields', 'parse_int', 'parse_date', 'parse_datetime', 'parse_password', 'validate_choice']
