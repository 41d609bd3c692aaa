from functools import wraps
from typing import Optional
from flask import g
from flask_jwt_extended import verify_jwt_in_request

from restaurant_pos.constants.permissions import Capability, Role
from restaurant_pos.services.policy import Identity, authorize, current_identity


def resolve_identity() -> Optional[Identity]:
    """Verify an optional bearer token and build the caller's Identity."""
    verify_jwt_in_request(optional=True)
    return current_identity()


def require(role: Optional[Role] = None, capability: Optional[Capability] = None):
    """Gate a view on role and/or staff capability; stores the Identity on ``g.identity``."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            identity = resolve_identity()
            authorize(identity, role, capability).raise_for_deny()
            g.identity = identity
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_authenticated(fn):
    return require()(fn)


def require_role(role: Role):
    return require(role=role)


def require_capability(capability: Capability):
    return require(capability=capability)


def get_identity() -> Identity:
    return g.identity
