from __future__ import annotations
"""Failure kinds surfaced in the JSON error body.

Every class is a werkzeug HTTPException, so route code can simply ``raise``
one and the app-level handler renders ``{"error": {..., "kind": ...}}``.
"""
from typing import Optional
from werkzeug.exceptions import HTTPException


class DomainError(HTTPException):
    code = 400
    kind = 'DomainError'
    description = 'Request rejected'

    def __init__(self, description: Optional[str] = None):
        super().__init__(description=description or self.description)


class Unauthenticated(DomainError):
    code = 401
    kind = 'Unauthenticated'
    description = 'Authentication required'


class Forbidden(DomainError):
    code = 403
    kind = 'Forbidden'
    description = 'Role not permitted'


class InsufficientPermission(DomainError):
    code = 403
    kind = 'InsufficientPermission'
    description = 'Missing capability'


class InvalidTransition(DomainError):
    code = 409
    kind = 'InvalidTransition'
    description = 'Transition not allowed'

    def __init__(self, current=None, target=None, field_name: str = 'status'):
        self.current = current
        self.target = target
        detail = None
        if current is not None or target is not None:
            detail = f'Invalid {field_name} transition {_label(current)} -> {_label(target)}'
        super().__init__(detail)


class InvalidRoleCode(DomainError):
    kind = 'InvalidRoleCode'
    description = 'Unknown role'


class InvalidStatusCode(DomainError):
    kind = 'InvalidStatusCode'
    description = 'Unknown order status'


class StaleOrderVersion(DomainError):
    code = 409
    kind = 'StaleOrderVersion'
    description = 'Order was modified by another request'


def _label(state) -> str:
    name = getattr(state, 'name', None)
    return name if name else str(state)


__all__ = [
    'DomainError', 'Unauthenticated', 'Forbidden', 'InsufficientPermission',
    'InvalidTransition', 'InvalidRoleCode', 'InvalidStatusCode', 'StaleOrderVersion',
]
