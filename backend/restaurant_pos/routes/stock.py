from flask import Blueprint, request, abort, current_app
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability
from restaurant_pos.models.meal import Meal
from restaurant_pos.models.outbox import INVENTORY_RESTOCK_NEEDED
from restaurant_pos.models.stock import Stock
from restaurant_pos.decorators.auth import require_capability
from restaurant_pos.decorators.audit import audit_log
from restaurant_pos.services.outbox import record_event
from restaurant_pos.utils.filters import apply_filters
from restaurant_pos.utils.listing import apply_pagination, build_list_payload, iso
from restaurant_pos.utils.sorting import apply_multi_sort
from restaurant_pos.utils.validation import parse_int

stock_bp = Blueprint('stock', __name__)

STOCK_FIELDS = ('quantity_in_stock', 'reorder_threshold', 'stock_fulfillment_time')


@stock_bp.get('')
@require_capability(Capability.STOCK_CONTROL)
def list_stock():
    session = get_db()
    q = session.query(Stock).join(Meal, Meal.meal_id == Stock.meal_ref)
    filter_specs = {
        'needs_reorder': {
            'coerce': lambda v: v.lower() in ('1', 'true'),
            'op': lambda qu, v: qu.filter(Stock.needs_reorder.is_(v)),
        },
        'meal_name': {'op': lambda qu, v: qu.filter(Meal.meal_name.ilike(f'%{v}%'))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'stock_id': Stock.stock_id,
        'quantity_in_stock': Stock.quantity_in_stock,
        'meal_name': Meal.meal_name,
        'last_updated_at': Stock.last_updated_at,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Stock.stock_id)
    paged_q, total, limit, offset = apply_pagination(q)
    return build_list_payload([_stock_json(s) for s in paged_q.all()], total, limit, offset)


@stock_bp.get('/<int:stock_id>')
@require_capability(Capability.STOCK_CONTROL)
def get_stock(stock_id: int):
    return _stock_json(_get_or_404(get_db(), stock_id))


@stock_bp.put('/<int:stock_id>')
@require_capability(Capability.STOCK_CONTROL)
@audit_log(
    'STOCK.UPDATE',
    entity='Stock',
    entity_id_key='stock_id',
    diff_keys=list(STOCK_FIELDS) + ['needs_reorder'],
    pre_fetch=lambda a, kw: _prefetch_stock(kw.get('stock_id')),
)
def update_stock(stock_id: int):
    session = get_db()
    stock = _get_or_404(session, stock_id)
    data = request.json or {}
    missing = [f for f in STOCK_FIELDS if data.get(f) is None]
    if missing:
        abort(400, description=f"{', '.join(missing)} required")
    for field in STOCK_FIELDS:
        setattr(stock, field, parse_int(data[field], field, minimum=0))
    _flag_and_notify(session, stock)
    session.commit()
    return _stock_json(stock)


@stock_bp.put('/<int:stock_id>/restock')
@require_capability(Capability.STOCK_CONTROL)
@audit_log('STOCK.RESTOCK', entity='Stock', entity_id_key='stock_id', meta_keys=['quantity_in_stock'])
def restock(stock_id: int):
    """Add delivered units to the current quantity."""
    session = get_db()
    stock = _get_or_404(session, stock_id)
    amount = parse_int((request.json or {}).get('amount'), 'amount', minimum=1)
    stock.quantity_in_stock += amount
    _flag_and_notify(session, stock)
    session.commit()
    current_app.logger.info('restocked stock=%s amount=%s now=%s', stock_id, amount, stock.quantity_in_stock)
    return _stock_json(stock)


def _flag_and_notify(session, stock: Stock):
    was_flagged = stock.needs_reorder
    if stock.refresh_reorder_flag() and not was_flagged:
        record_event(session, INVENTORY_RESTOCK_NEEDED, {
            'meal_ref': stock.meal_ref,
            'stock_id': stock.stock_id,
            'quantity_in_stock': stock.quantity_in_stock,
            'reorder_threshold': stock.reorder_threshold,
        })


def _get_or_404(session, stock_id: int) -> Stock:
    stock = session.get(Stock, stock_id)
    if not stock:
        abort(404, description='Stock item not found')
    return stock


def _stock_json(s: Stock):
    return {
        'stock_id': s.stock_id,
        'meal_ref': s.meal_ref,
        'meal_name': s.meal.meal_name if s.meal else None,
        'quantity_in_stock': s.quantity_in_stock,
        'reorder_threshold': s.reorder_threshold,
        'stock_fulfillment_time': s.stock_fulfillment_time,
        'needs_reorder': bool(s.needs_reorder),
        'last_updated_at': iso(s.last_updated_at),
    }


def _prefetch_stock(stock_id):
    s = get_db().get(Stock, stock_id)
    if not s:
        return {}
    snap = {f: getattr(s, f) for f in STOCK_FIELDS}
    snap['needs_reorder'] = bool(s.needs_reorder)
    return snap
