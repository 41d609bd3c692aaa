"""Access control decisions.

``authorize`` is a pure function of an Identity and the requirement; it never
touches the database or the request. ``current_identity`` is the adapter that
builds an Identity for the request in flight from the JWT and the STAFF row.

Evaluation order:
  1. no identity                     -> Unauthenticated
  2. role requirement not met        -> Forbidden (admin satisfies staff)
  3. capability requirement:
       customer                      -> Forbidden
       admin                         -> allowed (bypass)
       staff without the bit         -> InsufficientPermission
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from flask_jwt_extended import get_jwt, get_jwt_identity
from sqlalchemy import select

from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability, Role
from restaurant_pos.errors import DomainError, Forbidden, InsufficientPermission, InvalidRoleCode, Unauthenticated
from restaurant_pos.services.roles import parse_role, role_from_name
from restaurant_pos.utils.bitmask import PermissionSet, decode


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: Role
    permissions: PermissionSet = field(default_factory=PermissionSet)
    staff_id: Optional[int] = None
    customer_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class DenyReason(Enum):
    UNAUTHENTICATED = 'Unauthenticated'
    FORBIDDEN = 'Forbidden'
    INSUFFICIENT_PERMISSION = 'InsufficientPermission'


_DENY_ERRORS = {
    DenyReason.UNAUTHENTICATED: Unauthenticated,
    DenyReason.FORBIDDEN: Forbidden,
    DenyReason.INSUFFICIENT_PERMISSION: InsufficientPermission,
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None
    detail: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed

    def to_error(self) -> DomainError:
        return _DENY_ERRORS[self.reason](self.detail)

    def raise_for_deny(self):
        if not self.allowed:
            raise self.to_error()
        return self


ALLOW = Decision(True)


def deny(reason: DenyReason, detail: Optional[str] = None) -> Decision:
    return Decision(False, reason, detail)


def _role_satisfies(actual: Role, required: Role) -> bool:
    if actual == required:
        return True
    return actual == Role.ADMIN and required == Role.STAFF


def authorize(identity: Optional[Identity], required_role: Optional[Role] = None,
              required_capability: Optional[Capability] = None) -> Decision:
    if identity is None:
        return deny(DenyReason.UNAUTHENTICATED, 'Authentication required')
    if required_role is not None and not _role_satisfies(identity.role, Role(required_role)):
        return deny(DenyReason.FORBIDDEN, f'{Role(required_role).label} role required')
    if required_capability is not None:
        cap = Capability(required_capability)
        if identity.role == Role.CUSTOMER:
            return deny(DenyReason.FORBIDDEN, 'Staff access required')
        if identity.role == Role.ADMIN:
            return ALLOW
        if cap not in identity.permissions:
            return deny(DenyReason.INSUFFICIENT_PERMISSION, f'{cap.field} permission required')
    return ALLOW


def identity_from_claims(user_id: int, claims: dict) -> Optional[Identity]:
    """Build an Identity from token claims, reading the permission mask fresh from STAFF.

    Returns None (treated as unauthenticated) when the role claim is not a
    known role, or a staff/admin token has no STAFF row behind it.
    """
    from restaurant_pos.models.accounts import Staff, Customer
    try:
        role = role_from_name(claims.get('role')) if isinstance(claims.get('role'), str) else parse_role(claims.get('role'))
    except InvalidRoleCode:
        return None
    session = get_db()
    if role == Role.CUSTOMER:
        customer = session.execute(select(Customer).where(Customer.user_ref == user_id)).scalar_one_or_none()
        return Identity(user_id=user_id, role=role, customer_id=customer.customer_id if customer else None)
    staff = session.execute(select(Staff).where(Staff.user_ref == user_id)).scalar_one_or_none()
    if staff is None:
        return None
    return Identity(user_id=user_id, role=role, permissions=decode(staff.permissions), staff_id=staff.staff_id)


def current_identity() -> Optional[Identity]:
    """Identity of the current request; requires verify_jwt_in_request to have run."""
    ident = get_jwt_identity()
    if ident is None:
        return None
    try:
        user_id = int(ident)
    except (TypeError, ValueError):
        return None
    return identity_from_claims(user_id, get_jwt())


__all__ = [
    'Identity', 'DenyReason', 'Decision', 'ALLOW', 'deny', 'authorize',
    'identity_from_claims', 'current_identity',
]
