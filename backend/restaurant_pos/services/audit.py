from __future__ import annotations
from typing import Any, Dict, Optional
from flask import g

from restaurant_pos import get_db
from restaurant_pos.models.audit import AuditLog
from restaurant_pos.utils.bitmask import encode


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None, meta: Optional[Dict[str, Any]] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. MEAL.CREATE, STAFF.UPDATE, ORDER.STATUS
      entity: optional entity name (Meal, Staff, Order, ...)
      entity_id: optional primary key
      meta: additional JSON-safe dictionary (shallow copied)

    The actor is the identity resolved by the auth decorator, or 0 outside a
    request that went through it.
    """
    session = get_db()
    identity = g.get('identity')
    log = AuditLog(
        actor_user_id=identity.user_id if identity else 0,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        permissions_snapshot=encode(identity.permissions) if identity else 0,
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
