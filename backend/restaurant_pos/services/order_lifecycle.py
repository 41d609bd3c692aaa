"""Order status lifecycle.

    PROCESSING -> SHIPPED -> DELIVERED
    PROCESSING -> REFUNDED
    SHIPPED    -> REFUNDED

DELIVERED and REFUNDED are terminal. Entering SHIPPED or DELIVERED queues an
outbox event for the delivery alert feeds; no inventory or payment side
effects happen here.
"""
from __future__ import annotations
from datetime import date, datetime, timezone
from typing import Any, Optional

from restaurant_pos.errors import InvalidStatusCode, StaleOrderVersion
from restaurant_pos.models.order import Order, OrderStatus
from restaurant_pos.models.outbox import ORDER_DELIVERED, ORDER_SHIPPED
from restaurant_pos.services.outbox import record_event
from restaurant_pos.utils.fsm import TransitionValidator

INITIAL_STATUS = OrderStatus.PROCESSING

ORDER_FSM = TransitionValidator({
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.REFUNDED: set(),
}, field_name='order_status')

_STATUS_EVENTS = {
    OrderStatus.SHIPPED: ORDER_SHIPPED,
    OrderStatus.DELIVERED: ORDER_DELIVERED,
}


def parse_status(code: Any) -> OrderStatus:
    if isinstance(code, OrderStatus):
        return code
    if isinstance(code, bool) or not isinstance(code, int):
        raise InvalidStatusCode(f'Unknown order status {code!r}')
    try:
        return OrderStatus(code)
    except ValueError:
        raise InvalidStatusCode(f'Unknown order status {code!r}') from None


def next_status(current: Any, target: Any) -> OrderStatus:
    """Validate current -> target and return the target as OrderStatus."""
    cur = parse_status(current)
    tgt = parse_status(target)
    ORDER_FSM.assert_can_transition(cur, tgt)
    return tgt


def is_terminal(status: Any) -> bool:
    return parse_status(status) in ORDER_FSM.terminal_states()


def apply_transition(session, order: Order, target: Any, staff_id: Optional[int],
                     expected_version: Optional[int] = None,
                     tracking_number: Optional[str] = None,
                     delivery_date: Optional[date] = None) -> Order:
    """Move order to target within the caller's transaction.

    The version column is bumped by the ORM on flush. When expected_version
    is given and differs from the loaded row, StaleOrderVersion is raised
    before anything changes.
    """
    if expected_version is not None and expected_version != order.version:
        raise StaleOrderVersion(f'Order {order.order_id} is at version {order.version}, not {expected_version}')
    previous = parse_status(order.order_status)
    new = next_status(previous, target)
    order.order_status = int(new)
    order.updated_by_staff = staff_id
    order.last_updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
    if tracking_number is not None:
        order.tracking_number = tracking_number
    if delivery_date is not None:
        order.delivery_date = delivery_date
    elif new == OrderStatus.DELIVERED and order.delivery_date is None:
        order.delivery_date = date.today()
    event_type = _STATUS_EVENTS.get(new)
    if event_type:
        record_event(session, event_type, {
            'order_id': order.order_id,
            'customer_ref': order.customer_ref,
            'previous_status': previous.label,
            'order_status': new.label,
            'tracking_number': order.tracking_number,
        }, ref_order_id=order.order_id)
    return order


__all__ = ['INITIAL_STATUS', 'ORDER_FSM', 'parse_status', 'next_status', 'is_terminal', 'apply_transition']
