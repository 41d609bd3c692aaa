from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from restaurant_pos.models.outbox import EventOutbox, EVENT_TYPES
from restaurant_pos.utils.listing import iso


def record_event(session, event_type: str, payload: Dict[str, Any], ref_order_id: Optional[int] = None) -> EventOutbox:
    """Queue an outbox row in the current session. The caller commits."""
    if event_type not in EVENT_TYPES:
        raise ValueError(f'unknown event type {event_type}')
    ev = EventOutbox(event_type=event_type, payload_json=dict(payload), ref_order_id=ref_order_id, resolved=False)
    session.add(ev)
    return ev


def resolve_event(ev: EventOutbox) -> EventOutbox:
    ev.resolved = True
    ev.resolved_at = datetime.now(timezone.utc).replace(tzinfo=None)
    return ev


def format_alert(ev: EventOutbox, meal_name: Optional[str] = None) -> Dict[str, Any]:
    """Flatten an outbox row and its payload into one alert object."""
    out: Dict[str, Any] = dict(ev.payload_json or {})
    out.update({
        'event_id': ev.event_id,
        'event_type': ev.event_type,
        'created_at': iso(ev.created_at),
        'ref_order_id': ev.ref_order_id,
        'resolved': bool(ev.resolved),
    })
    if meal_name is not None:
        out['meal_name'] = meal_name
    return out
