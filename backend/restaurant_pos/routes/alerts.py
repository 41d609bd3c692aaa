from flask import Blueprint, abort
from sqlalchemy import select
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability, Role
from restaurant_pos.models.meal import Meal
from restaurant_pos.models.order import Order
from restaurant_pos.models.outbox import EventOutbox, DELIVERY_EVENTS, INVENTORY_RESTOCK_NEEDED
from restaurant_pos.decorators.auth import require_authenticated, require_capability, require_role, get_identity
from restaurant_pos.services.outbox import format_alert, resolve_event
from restaurant_pos.services.policy import authorize

alerts_bp = Blueprint('alerts', __name__)


def _unresolved(q):
    return q.where(EventOutbox.resolved.is_(False)).order_by(EventOutbox.created_at.desc(), EventOutbox.event_id.desc())


@alerts_bp.get('/delivery')
@require_capability(Capability.ORDERS)
def delivery_alerts():
    session = get_db()
    rows = session.execute(_unresolved(select(EventOutbox).where(EventOutbox.event_type.in_(DELIVERY_EVENTS)))).scalars().all()
    return {'data': [format_alert(ev) for ev in rows], 'count': len(rows)}


@alerts_bp.get('/low-stock')
@require_capability(Capability.STOCK_CONTROL)
def low_stock_alerts():
    session = get_db()
    rows = session.execute(_unresolved(select(EventOutbox).where(EventOutbox.event_type == INVENTORY_RESTOCK_NEEDED))).scalars().all()
    out = []
    for ev in rows:
        meal_ref = (ev.payload_json or {}).get('meal_ref')
        meal = session.get(Meal, meal_ref) if meal_ref is not None else None
        out.append(format_alert(ev, meal.meal_name if meal else None))
    return {'data': out, 'count': len(out)}


@alerts_bp.get('/my-deliveries')
@require_role(Role.CUSTOMER)
def my_delivery_alerts():
    session = get_db()
    q = select(EventOutbox).join(Order, Order.order_id == EventOutbox.ref_order_id).where(
        Order.customer_ref == get_identity().customer_id,
        EventOutbox.event_type.in_(DELIVERY_EVENTS),
    )
    rows = session.execute(_unresolved(q)).scalars().all()
    return {'data': [format_alert(ev) for ev in rows], 'count': len(rows)}


@alerts_bp.put('/<int:event_id>/resolve')
@require_authenticated
def resolve_alert(event_id: int):
    """Staff resolve alerts of the feed they can read; customers may dismiss their own delivery alerts."""
    session = get_db()
    ev = session.get(EventOutbox, event_id)
    if ev is None:
        abort(404, description='Alert not found')
    identity = get_identity()
    owns_delivery = False
    if identity.role == Role.CUSTOMER and ev.event_type in DELIVERY_EVENTS and ev.ref_order_id is not None:
        order = session.get(Order, ev.ref_order_id)
        owns_delivery = order is not None and order.customer_ref == identity.customer_id
    if not owns_delivery:
        needed = Capability.STOCK_CONTROL if ev.event_type == INVENTORY_RESTOCK_NEEDED else Capability.ORDERS
        authorize(identity, required_capability=needed).raise_for_deny()
    resolve_event(ev)
    session.commit()
    return {'message': 'Alert marked as resolved', 'alert': format_alert(ev)}
