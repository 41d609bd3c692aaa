from flask import Blueprint, request, abort, current_app
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability, Role
from restaurant_pos.errors import StaleOrderVersion
from restaurant_pos.models.accounts import Customer
from restaurant_pos.models.order import Order, OrderStatus
from restaurant_pos.decorators.auth import require_role, require_capability, get_identity
from restaurant_pos.decorators.audit import audit_log
from restaurant_pos.services.checkout import place_order, loyalty_points_for
from restaurant_pos.services.order_lifecycle import ORDER_FSM, apply_transition, parse_status
from restaurant_pos.utils.filters import apply_filters
from restaurant_pos.utils.listing import apply_pagination, build_list_payload, iso
from restaurant_pos.utils.sorting import apply_multi_sort
from restaurant_pos.utils.validation import parse_date, parse_int

orders_bp = Blueprint('orders', __name__)


def _current_customer(session) -> Customer:
    identity = get_identity()
    customer = session.get(Customer, identity.customer_id) if identity.customer_id else None
    if customer is None:
        abort(403, description='Customer account not found')
    return customer


@orders_bp.post('')
@require_role(Role.CUSTOMER)
@audit_log('ORDER.CREATE', entity='Order', entity_id_key='order_id', meta_keys=['total', 'order_status'])
def checkout():
    session = get_db()
    customer = _current_customer(session)
    order = place_order(session, customer, get_identity().user_id, request.json or {})
    session.commit()
    out = _order_json(order, include_lines=True)
    out['loyalty_points_earned'] = loyalty_points_for(order.total)
    return out, 201


@orders_bp.get('/my-orders')
@require_role(Role.CUSTOMER)
def my_orders():
    session = get_db()
    customer = _current_customer(session)
    q = session.query(Order).filter(Order.customer_ref == customer.customer_id)
    q = q.order_by(Order.order_date.desc(), Order.order_id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = [_order_json(o, include_lines=True) for o in paged_q.all()]
    return build_list_payload(rows, total, limit, offset)


@orders_bp.get('')
@require_capability(Capability.ORDERS)
def list_orders():
    session = get_db()
    q = session.query(Order)
    filter_specs = {
        'order_status': {
            'coerce': int,
            'validate': lambda v: v in OrderStatus._value2member_map_,
            'multi': True,
            'op': lambda qu, v: qu.filter(Order.order_status.in_(v)),
        },
        'customer_id': {'coerce': int, 'op': lambda qu, v: qu.filter(Order.customer_ref == v)},
        'from': {'coerce': lambda v: parse_date(v, 'from'), 'op': lambda qu, v: qu.filter(Order.order_date >= v)},
        'to': {'coerce': lambda v: parse_date(v, 'to'), 'op': lambda qu, v: qu.filter(Order.order_date <= v)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'order_id': Order.order_id,
        'order_date': Order.order_date,
        'order_status': Order.order_status,
        'last_updated_at': Order.last_updated_at,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Order.order_id, default='-order_date')
    paged_q, total, limit, offset = apply_pagination(q)
    rows = [_order_json(o, include_lines=True, include_customer=True) for o in paged_q.all()]
    return build_list_payload(rows, total, limit, offset)


@orders_bp.get('/<int:order_id>')
@require_capability(Capability.ORDERS)
def get_order(order_id: int):
    return _order_json(_get_or_404(get_db(), order_id), include_lines=True, include_customer=True)


@orders_bp.put('/<int:order_id>/status')
@require_capability(Capability.ORDERS)
@audit_log(
    'ORDER.STATUS',
    entity='Order',
    entity_id_key='order_id',
    diff_keys=['order_status'],
    pre_fetch=lambda a, kw: _prefetch_order(kw.get('order_id')),
    meta_keys=['order_status', 'version'],
)
def update_status(order_id: int):
    session = get_db()
    order = _get_or_404(session, order_id)
    data = request.json or {}
    if data.get('order_status') is None:
        abort(400, description='order_status required')
    target = parse_status(data['order_status'])
    expected = parse_int(data['version'], 'version', minimum=1) if data.get('version') is not None else None
    delivery_date = parse_date(data['delivery_date'], 'delivery_date') if data.get('delivery_date') else None
    previous = parse_status(order.order_status)
    apply_transition(
        session, order, target,
        staff_id=get_identity().staff_id,
        expected_version=expected,
        tracking_number=data.get('tracking_number'),
        delivery_date=delivery_date,
    )
    try:
        session.commit()
    except StaleDataError:
        session.rollback()
        raise StaleOrderVersion(f'Order {order_id} was modified by another request')
    current_app.logger.info('order %s status %s -> %s by staff=%s', order_id, previous.label, target.label, get_identity().staff_id)
    return _order_json(order)


@orders_bp.get('/statuses')
def list_statuses():
    """Status codes and the transitions allowed out of each."""
    return {
        'data': [
            {
                'code': int(s),
                'name': s.label,
                'next': sorted(int(t) for t in ORDER_FSM.targets(s)),
                'terminal': s in ORDER_FSM.terminal_states(),
            }
            for s in OrderStatus
        ]
    }


def _get_or_404(session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        abort(404, description='Order not found')
    return order


def _order_json(o: Order, include_lines: bool = False, include_customer: bool = False):
    out = {
        'order_id': o.order_id,
        'customer_ref': o.customer_ref,
        'order_date': iso(o.order_date),
        'order_status': o.order_status,
        'order_status_name': o.status.label,
        'delivery_date': iso(o.delivery_date),
        'unit_price': o.unit_price,
        'tax': o.tax,
        'discount': o.discount,
        'total': o.total,
        'notes': o.notes,
        'tracking_number': o.tracking_number,
        'shipping_address': {
            'street': o.shipping_street,
            'city': o.shipping_city,
            'state_code': o.shipping_state_code,
            'zipcode': o.shipping_zipcode,
        },
        'updated_by_staff': o.updated_by_staff,
        'version': o.version,
        'last_updated_at': iso(o.last_updated_at),
    }
    if o.payment is not None and o.payment.payment_method is not None:
        out['payment_type'] = o.payment.payment_method.payment_type
        out['last_four'] = o.payment.payment_method.last_four
    if include_lines:
        out['items'] = [
            {
                'meal_id': ln.meal_ref,
                'meal_name': ln.meal.meal_name if ln.meal else None,
                'quantity': ln.num_units_ordered,
                'price_at_sale': ln.price_at_sale,
            }
            for ln in o.lines
        ]
    if include_customer and o.customer is not None:
        c = o.customer
        out['customer'] = f"{c.first_name or ''} {c.last_name or ''}".strip()
        out['customer_phone'] = c.phone_number
    return out


def _prefetch_order(order_id):
    o = get_db().get(Order, order_id)
    if not o:
        return {}
    return {'order_status': o.order_status}
