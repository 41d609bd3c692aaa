from datetime import date
from flask import Blueprint, request, abort
from sqlalchemy import select, func, and_
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability
from restaurant_pos.models.order import Order, OrderPromotion
from restaurant_pos.models.promotion import Promotion
from restaurant_pos.decorators.auth import require_capability, require_authenticated, get_identity
from restaurant_pos.decorators.audit import audit_log
from restaurant_pos.utils.listing import apply_pagination, build_list_payload, iso
from restaurant_pos.utils.sorting import apply_multi_sort
from restaurant_pos.utils.validation import require_fields, parse_int, parse_date

promo_bp = Blueprint('promotions', __name__)

REVENUE = Order.unit_price + Order.tax - func.coalesce(Order.discount, 0)
TOP_PROMOTIONS = 10


def _normalize_code(raw) -> str:
    code = str(raw or '').strip().upper()
    if not code:
        abort(400, description='promo_code required')
    return code


def _assert_code_free(session, code: str, exclude_id=None):
    q = select(Promotion).where(Promotion.promo_code == code)
    if exclude_id is not None:
        q = q.where(Promotion.promotion_id != exclude_id)
    if session.execute(q).scalar_one_or_none():
        abort(409, description='promo_code already exists')


@promo_bp.post('')
@require_capability(Capability.PROMO_CODES)
@audit_log('PROMO.CREATE', entity='Promotion', entity_id_key='promotion_id', meta_keys=['promo_code', 'promo_type'])
def create_promotion():
    data = request.json or {}
    require_fields(data, ['promo_description', 'promo_type', 'promo_code', 'promo_exp_date'])
    session = get_db()
    code = _normalize_code(data['promo_code'])
    _assert_code_free(session, code)
    staff_id = get_identity().staff_id
    promo = Promotion(
        promo_description=data['promo_description'],
        promo_type=parse_int(data['promo_type'], 'promo_type', minimum=0),
        promo_code=code,
        promo_exp_date=parse_date(data['promo_exp_date'], 'promo_exp_date'),
        created_by=staff_id,
        updated_by=staff_id,
    )
    session.add(promo)
    session.commit()
    return _promo_json(promo), 201


@promo_bp.get('')
@require_capability(Capability.PROMO_CODES)
def list_promotions():
    session = get_db()
    q = session.query(Promotion)
    if request.args.get('active') == 'true':
        q = q.filter(Promotion.promo_exp_date >= date.today())
    allowed = {'promotion_id': Promotion.promotion_id, 'promo_code': Promotion.promo_code, 'promo_exp_date': Promotion.promo_exp_date}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Promotion.promotion_id, default='promo_exp_date')
    paged_q, total, limit, offset = apply_pagination(q)
    return build_list_payload([_promo_json(p) for p in paged_q.all()], total, limit, offset)


@promo_bp.get('/analytics')
@require_capability(Capability.PROMO_CODES)
def analytics():
    """Promotion usage between start_date and end_date (inclusive, by order date)."""
    if not request.args.get('start_date') or not request.args.get('end_date'):
        abort(400, description='start_date and end_date required')
    start = parse_date(request.args['start_date'], 'start_date')
    end = parse_date(request.args['end_date'], 'end_date')
    if end < start:
        abort(400, description='end_date must not precede start_date')
    session = get_db()
    in_window = and_(Order.order_id == OrderPromotion.order_ref, Order.order_date >= start, Order.order_date <= end)

    per_promo = session.query(
        Promotion.promotion_id,
        Promotion.promo_code,
        Promotion.promo_description,
        Promotion.promo_type,
        Promotion.promo_exp_date,
        func.count(func.distinct(Order.order_id)),
        func.count(func.distinct(Order.customer_ref)),
        func.coalesce(func.sum(REVENUE), 0),
        func.min(Order.order_date),
        func.max(Order.order_date),
    ).outerjoin(OrderPromotion, OrderPromotion.promotion_ref == Promotion.promotion_id).outerjoin(
        Order, in_window
    ).group_by(Promotion.promotion_id).all()
    promotions = []
    for pid, code, desc, ptype, exp, uses, customers, revenue, first, last in per_promo:
        uses = int(uses); revenue = int(revenue)
        promotions.append({
            'promotion_id': pid,
            'promo_code': code,
            'promo_description': desc,
            'promo_type': ptype,
            'promo_exp_date': iso(exp),
            'total_uses': uses,
            'unique_customers': int(customers),
            'total_revenue': revenue,
            'avg_order_value': revenue // uses if uses else 0,
            'first_use_date': iso(first),
            'last_use_date': iso(last),
        })
    promotions.sort(key=lambda p: (-p['total_uses'], p['promotion_id']))

    daily = session.query(
        Order.order_date,
        func.count(func.distinct(Order.order_id)),
        func.count(func.distinct(Order.customer_ref)),
        func.coalesce(func.sum(REVENUE), 0),
    ).join(OrderPromotion, OrderPromotion.order_ref == Order.order_id).filter(
        Order.order_date >= start, Order.order_date <= end
    ).group_by(Order.order_date).order_by(Order.order_date.asc()).all()
    daily_trend = [
        {'date': iso(d), 'uses': int(u), 'customers': int(c), 'revenue': int(r)} for d, u, c, r in daily
    ]

    used = [p for p in promotions if p['total_uses'] > 0]
    top = sorted(used, key=lambda p: (-p['total_revenue'], p['promotion_id']))[:TOP_PROMOTIONS]

    by_type = {}
    for p in promotions:
        row = by_type.setdefault(p['promo_type'], {'promo_type': p['promo_type'], 'promo_count': 0, 'total_uses': 0, 'total_revenue': 0})
        row['promo_count'] += 1
        row['total_uses'] += p['total_uses']
        row['total_revenue'] += p['total_revenue']

    promo_customers = session.query(func.count(func.distinct(Order.customer_ref))).join(
        OrderPromotion, OrderPromotion.order_ref == Order.order_id
    ).filter(Order.order_date >= start, Order.order_date <= end).scalar() or 0
    total_uses = sum(p['total_uses'] for p in promotions)
    total_revenue = sum(p['total_revenue'] for p in promotions)
    return {
        'window': {'start_date': iso(start), 'end_date': iso(end)},
        'summary': {
            'total_promotions': len(promotions),
            'active_promotions': len(used),
            'total_uses': total_uses,
            'total_revenue': total_revenue,
            'unique_customers': int(promo_customers),
            'avg_revenue_per_use': total_revenue // total_uses if total_uses else 0,
        },
        'promotions': promotions,
        'daily_trend': daily_trend,
        'top_promotions': top,
        'type_breakdown': [by_type[k] for k in sorted(by_type)],
    }


@promo_bp.get('/validate/<code>')
@require_authenticated
def validate_code(code: str):
    session = get_db()
    promo = session.execute(select(Promotion).where(Promotion.promo_code == _normalize_code(code))).scalar_one_or_none()
    if promo is None:
        abort(404, description='Invalid promo code')
    if promo.is_expired(date.today()):
        abort(400, description='Promo code has expired')
    return {'valid': True, 'promotion': _promo_json(promo)}


@promo_bp.get('/<int:promotion_id>')
@require_capability(Capability.PROMO_CODES)
def get_promotion(promotion_id: int):
    return _promo_json(_get_or_404(get_db(), promotion_id))


@promo_bp.put('/<int:promotion_id>')
@require_capability(Capability.PROMO_CODES)
@audit_log(
    'PROMO.UPDATE',
    entity='Promotion',
    entity_id_key='promotion_id',
    diff_keys=['promo_code', 'promo_type', 'promo_exp_date'],
    pre_fetch=lambda a, kw: _prefetch_promo(kw.get('promotion_id')),
)
def update_promotion(promotion_id: int):
    session = get_db()
    promo = _get_or_404(session, promotion_id)
    data = request.json or {}
    if 'promo_description' in data:
        promo.promo_description = data['promo_description']
    if 'promo_type' in data:
        promo.promo_type = parse_int(data['promo_type'], 'promo_type', minimum=0)
    if 'promo_code' in data:
        code = _normalize_code(data['promo_code'])
        _assert_code_free(session, code, exclude_id=promotion_id)
        promo.promo_code = code
    if 'promo_exp_date' in data:
        promo.promo_exp_date = parse_date(data['promo_exp_date'], 'promo_exp_date')
    promo.updated_by = get_identity().staff_id
    session.commit()
    return _promo_json(promo)


@promo_bp.delete('/<int:promotion_id>')
@require_capability(Capability.PROMO_CODES)
@audit_log('PROMO.DELETE', entity='Promotion', entity_id_arg='promotion_id')
def delete_promotion(promotion_id: int):
    session = get_db()
    promo = _get_or_404(session, promotion_id)
    session.query(OrderPromotion).filter(OrderPromotion.promotion_ref == promotion_id).delete()
    session.delete(promo)
    session.commit()
    return {'message': 'Promotion deleted', 'promotion_id': promotion_id}


def _get_or_404(session, promotion_id: int) -> Promotion:
    promo = session.get(Promotion, promotion_id)
    if not promo:
        abort(404, description='Promotion not found')
    return promo


def _promo_json(p: Promotion):
    return {
        'promotion_id': p.promotion_id,
        'promo_description': p.promo_description,
        'promo_type': p.promo_type,
        'promo_code': p.promo_code,
        'promo_exp_date': iso(p.promo_exp_date),
        'expired': p.is_expired(date.today()),
        'created_by': p.created_by,
        'updated_by': p.updated_by,
        'created_at': iso(p.created_at),
        'last_updated_at': iso(p.last_updated_at),
    }


def _prefetch_promo(promotion_id):
    p = get_db().get(Promotion, promotion_id)
    if not p:
        return {}
    return {'promo_code': p.promo_code, 'promo_type': p.promo_type, 'promo_exp_date': iso(p.promo_exp_date)}
