from datetime import date
from flask import Blueprint, request, abort
from sqlalchemy import select, func
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability
from restaurant_pos.models.meal import Meal, MealType
from restaurant_pos.models.order import OrderLine
from restaurant_pos.models.review import Review
from restaurant_pos.models.stock import Stock
from restaurant_pos.decorators.auth import require_capability, get_identity
from restaurant_pos.decorators.audit import audit_log
from restaurant_pos.utils.filters import apply_filters
from restaurant_pos.utils.listing import apply_pagination, build_list_payload, compute_etag, make_cached_response, iso
from restaurant_pos.utils.sorting import apply_multi_sort
from restaurant_pos.utils.validation import require_fields, parse_int, parse_date, validate_choice

meals_bp = Blueprint('meals', __name__)

MEAL_STATUSES = (Meal.STATUS_INACTIVE, Meal.STATUS_ACTIVE)


@meals_bp.get('/menu')
def menu():
    """Public storefront menu: orderable meals with categories and rating summary."""
    session = get_db()
    today = date.today()
    q = session.query(Meal).filter(Meal.meal_status == Meal.STATUS_ACTIVE)
    q = q.filter((Meal.start_date.is_(None)) | (Meal.start_date <= today))
    q = q.filter((Meal.end_date.is_(None)) | (Meal.end_date >= today))
    category = request.args.get('category')
    if category:
        q = q.filter(Meal.categories.any(MealType.meal_type == category))
    meals = q.order_by(Meal.meal_id.asc()).all()
    ratings = dict(
        (meal_ref, (avg, cnt)) for meal_ref, avg, cnt in session.execute(
            select(Review.meal_ref, func.avg(Review.stars), func.count()).group_by(Review.meal_ref)
        )
    )
    rows = []
    for m in meals:
        avg, cnt = ratings.get(m.meal_id, (None, 0))
        rows.append({
            'meal_id': m.meal_id,
            'meal_name': m.meal_name,
            'meal_description': m.meal_description,
            'img_url': m.img_url,
            'price': m.price,
            'nutrition_facts': m.nutrition_facts or {},
            'meal_types': sorted(c.meal_type for c in m.categories),
            'in_stock': m.stock is None or m.stock.quantity_in_stock > 0,
            'average_rating': round(float(avg), 2) if avg is not None else None,
            'review_count': cnt,
        })
    latest = max((m.last_updated_at for m in meals if m.last_updated_at), default=None)
    etag = compute_etag([r['meal_id'] for r in rows], latest, f"{today}|{category or ''}|{len(ratings)}")
    return make_cached_response({'data': rows, 'count': len(rows)}, etag)


@meals_bp.get('')
@require_capability(Capability.MEAL_MANAGEMENT)
def list_meals():
    session = get_db()
    q = session.query(Meal)
    filter_specs = {
        'meal_name': {'op': lambda qu, v: qu.filter(Meal.meal_name.ilike(f'%{v}%'))},
        'meal_status': {'coerce': int, 'validate': lambda v: v in MEAL_STATUSES, 'op': lambda qu, v: qu.filter(Meal.meal_status == v)},
        'category': {'op': lambda qu, v: qu.filter(Meal.categories.any(MealType.meal_type == v))},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'meal_id': Meal.meal_id, 'meal_name': Meal.meal_name, 'price': Meal.price, 'last_updated_at': Meal.last_updated_at}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Meal.meal_id)
    paged_q, total, limit, offset = apply_pagination(q)
    return build_list_payload([_meal_json(m) for m in paged_q.all()], total, limit, offset)


@meals_bp.get('/<int:meal_id>')
@require_capability(Capability.MEAL_MANAGEMENT)
def get_meal(meal_id: int):
    return _meal_json(_get_meal_or_404(get_db(), meal_id))


@meals_bp.post('')
@require_capability(Capability.MEAL_MANAGEMENT)
@audit_log('MEAL.CREATE', entity='Meal', entity_id_key='meal_id', meta_keys=['meal_name', 'meal_status', 'price', 'cost_to_make'])
def create_meal():
    data = request.json or {}
    require_fields(data, ['meal_name', 'price'])
    session = get_db()
    staff_id = get_identity().staff_id
    meal = Meal(
        meal_name=data['meal_name'],
        meal_description=data.get('meal_description'),
        img_url=data.get('img_url'),
        meal_status=validate_choice(parse_int(data.get('meal_status', Meal.STATUS_ACTIVE), 'meal_status'), MEAL_STATUSES, 'meal_status'),
        nutrition_facts=data.get('nutrition_facts') or {},
        price=parse_int(data['price'], 'price', minimum=0),
        cost_to_make=parse_int(data.get('cost_to_make', 0), 'cost_to_make', minimum=0),
        created_by=staff_id,
        updated_by=staff_id,
    )
    _apply_window(meal, data)
    meal.categories = _resolve_categories(session, data.get('meal_types') or [])
    stock_data = data.get('stock') or {}
    meal.stock = Stock(
        quantity_in_stock=parse_int(stock_data.get('quantity_in_stock', 0), 'quantity_in_stock', minimum=0),
        reorder_threshold=parse_int(stock_data.get('reorder_threshold', 0), 'reorder_threshold', minimum=0),
        stock_fulfillment_time=parse_int(stock_data.get('stock_fulfillment_time', 0), 'stock_fulfillment_time', minimum=0),
    )
    meal.stock.refresh_reorder_flag()
    session.add(meal)
    session.commit()
    return _meal_json(meal), 201


@meals_bp.put('/<int:meal_id>')
@require_capability(Capability.MEAL_MANAGEMENT)
@audit_log(
    'MEAL.UPDATE',
    entity='Meal',
    entity_id_key='meal_id',
    diff_keys=['meal_name', 'meal_status', 'price', 'cost_to_make'],
    pre_fetch=lambda a, kw: _prefetch_meal(kw.get('meal_id')),
    meta_keys=['meal_name', 'meal_status', 'price', 'cost_to_make'],
)
def update_meal(meal_id: int):
    session = get_db()
    meal = _get_meal_or_404(session, meal_id)
    data = request.json or {}
    if 'meal_name' in data:
        if not data['meal_name']:
            abort(400, description='meal_name cannot be empty')
        meal.meal_name = data['meal_name']
    for field in ('meal_description', 'img_url'):
        if field in data:
            setattr(meal, field, data[field])
    if 'nutrition_facts' in data:
        meal.nutrition_facts = data['nutrition_facts'] or {}
    if 'meal_status' in data:
        meal.meal_status = validate_choice(parse_int(data['meal_status'], 'meal_status'), MEAL_STATUSES, 'meal_status')
    if 'price' in data:
        meal.price = parse_int(data['price'], 'price', minimum=0)
    if 'cost_to_make' in data:
        meal.cost_to_make = parse_int(data['cost_to_make'], 'cost_to_make', minimum=0)
    _apply_window(meal, data)
    if 'meal_types' in data:
        meal.categories = _resolve_categories(session, data['meal_types'] or [])
    meal.updated_by = get_identity().staff_id
    session.commit()
    return _meal_json(meal)


@meals_bp.delete('/<int:meal_id>')
@require_capability(Capability.MEAL_MANAGEMENT)
@audit_log('MEAL.DELETE', entity='Meal', entity_id_arg='meal_id')
def delete_meal(meal_id: int):
    session = get_db()
    meal = _get_meal_or_404(session, meal_id)
    sold = session.execute(select(func.count()).select_from(OrderLine).where(OrderLine.meal_ref == meal_id)).scalar_one()
    if sold:
        abort(409, description='Meal has order history; set meal_status to 0 instead')
    session.query(Review).filter(Review.meal_ref == meal_id).delete()
    session.delete(meal)
    session.commit()
    return {'message': 'Meal deleted', 'meal_id': meal_id}


def _apply_window(meal: Meal, data):
    if 'start_date' in data:
        meal.start_date = parse_date(data['start_date'], 'start_date') if data['start_date'] else None
    if 'end_date' in data:
        meal.end_date = parse_date(data['end_date'], 'end_date') if data['end_date'] else None
    if meal.start_date and meal.end_date and meal.end_date < meal.start_date:
        abort(400, description='end_date must not precede start_date')


def _resolve_categories(session, names):
    """Existing MEAL_TYPE rows by name, creating missing ones."""
    if not isinstance(names, list):
        abort(400, description='meal_types must be a list')
    out = []
    for name in dict.fromkeys(str(n).strip() for n in names if str(n).strip()):
        mt = session.execute(select(MealType).where(MealType.meal_type == name)).scalar_one_or_none()
        if mt is None:
            mt = MealType(meal_type=name)
            session.add(mt)
        out.append(mt)
    return out


def _get_meal_or_404(session, meal_id: int) -> Meal:
    meal = session.get(Meal, meal_id)
    if not meal:
        abort(404, description='Meal not found')
    return meal


def _meal_json(m: Meal):
    return {
        'meal_id': m.meal_id,
        'meal_name': m.meal_name,
        'meal_description': m.meal_description,
        'img_url': m.img_url,
        'meal_status': m.meal_status,
        'nutrition_facts': m.nutrition_facts or {},
        'start_date': iso(m.start_date),
        'end_date': iso(m.end_date),
        'price': m.price,
        'cost_to_make': m.cost_to_make,
        'meal_types': sorted(c.meal_type for c in m.categories),
        'stock_id': m.stock.stock_id if m.stock else None,
        'created_by': m.created_by,
        'updated_by': m.updated_by,
        'created_at': iso(m.created_at),
        'last_updated_at': iso(m.last_updated_at),
    }


def _prefetch_meal(meal_id):
    m = get_db().get(Meal, meal_id)
    if not m:
        return {}
    return {'meal_name': m.meal_name, 'meal_status': m.meal_status, 'price': m.price, 'cost_to_make': m.cost_to_make}
