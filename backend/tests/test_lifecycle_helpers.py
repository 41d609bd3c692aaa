from restaurant_pos.errors import InvalidStatusCode, InvalidTransition, StaleOrderVersion
from restaurant_pos.models.order import Order, OrderStatus
from restaurant_pos.services.order_lifecycle import INITIAL_STATUS, ORDER_FSM, next_status, is_terminal, parse_status, apply_transition
import pytest

P, D, S, R = OrderStatus.PROCESSING, OrderStatus.DELIVERED, OrderStatus.SHIPPED, OrderStatus.REFUNDED

LEGAL = {(P, S), (P, R), (S, D), (S, R)}


class _RecordingSession:
    def __init__(self):
        self.added = []

    def add(self, obj):
        self.added.append(obj)


def test_wire_codes_are_preserved():
    assert (int(P), int(D), int(S), int(R)) == (0, 1, 2, 3)
    assert INITIAL_STATUS is P


@pytest.mark.parametrize('current', list(OrderStatus))
@pytest.mark.parametrize('target', list(OrderStatus))
def test_transition_table(current, target):
    if (current, target) in LEGAL:
        assert next_status(int(current), int(target)) is target
    else:
        with pytest.raises(InvalidTransition):
            next_status(current, target)


def test_terminal_states():
    assert ORDER_FSM.terminal_states() == {D, R}
    assert is_terminal(1) and is_terminal(3)
    assert not is_terminal(0) and not is_terminal(2)


@pytest.mark.parametrize('bad', [4, -1, '1', None, True])
def test_unknown_status_codes_rejected(bad):
    with pytest.raises(InvalidStatusCode):
        parse_status(bad)


def test_apply_transition_records_shipping_event():
    order = Order(order_id=7, customer_ref=3, order_status=int(P), version=1)
    session = _RecordingSession()
    apply_transition(session, order, S, staff_id=5, tracking_number='TRK-1')
    assert order.order_status == int(S)
    assert order.updated_by_staff == 5
    assert order.tracking_number == 'TRK-1'
    assert order.last_updated_at is not None
    [event] = session.added
    assert event.event_type == 'ORDER_SHIPPED'
    assert event.ref_order_id == 7
    assert event.payload_json['previous_status'] == 'processing'


def test_apply_transition_delivered_sets_date_and_refund_is_silent():
    order = Order(order_id=8, customer_ref=3, order_status=int(S), version=2)
    session = _RecordingSession()
    apply_transition(session, order, D, staff_id=5)
    assert order.delivery_date is not None
    assert session.added[0].event_type == 'ORDER_DELIVERED'

    refunded = Order(order_id=9, customer_ref=3, order_status=int(P), version=1)
    quiet = _RecordingSession()
    apply_transition(quiet, refunded, R, staff_id=5)
    assert refunded.order_status == int(R)
    assert quiet.added == []


def test_apply_transition_rejects_stale_version_before_mutating():
    order = Order(order_id=10, customer_ref=3, order_status=int(P), version=3)
    with pytest.raises(StaleOrderVersion):
        apply_transition(_RecordingSession(), order, S, staff_id=5, expected_version=2)
    assert order.order_status == int(P)


def test_apply_transition_from_terminal_fails():
    order = Order(order_id=11, customer_ref=3, order_status=int(R), version=1)
    with pytest.raises(InvalidTransition):
        apply_transition(_RecordingSession(), order, S, staff_id=5)
