from __future__ import annotations
"""Audit logging decorator so route handlers don't call add_audit() by hand.

@audit_log('MEAL.CREATE', entity='Meal', entity_id_key='meal_id', meta_keys=['meal_name', 'price'])
def create_meal():
    ... return _meal_json(meal), 201

@audit_log('STOCK.UPDATE', entity='Stock', entity_id_arg='stock_id',
           diff_keys=['quantity_in_stock'], pre_fetch=lambda a, kw: _prefetch(kw['stock_id']))
def update_stock(stock_id): ...

Only successful responses are audited: when the view raises, nothing is
written. The first element of a ``(body, status)`` tuple is used as the
payload for entity id and meta extraction.
"""

from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict
from flask import current_app

from restaurant_pos.services.audit import add_audit
from restaurant_pos import get_db


def _extract_payload(rv: Any):
    if isinstance(rv, tuple) and rv:
        return rv[0]
    return rv


def _diff(before: Dict[str, Any], after: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    changes = {}
    for k in keys:
        if k in before and k in after and before.get(k) != after.get(k):
            changes[k] = {'before': before.get(k), 'after': after.get(k)}
    return changes


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data = _extract_payload(rv)
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, rv, args, kwargs) or {}
            else:
                meta = {k: data.get(k) for k in (meta_keys or ()) if k in data}
            if diff_keys and isinstance(before, dict):
                changes = _diff(before, data, diff_keys)
                if changes:
                    meta['changes'] = changes
            session = get_db()
            try:
                add_audit(action, entity, entity_id, meta)
                session.commit()
            except Exception:
                # The audited change is already committed by the view; keep the response
                session.rollback()
                current_app.logger.exception('audit write failed for %s', action)
            return rv
        return wrapper
    return outer
