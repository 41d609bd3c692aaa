from datetime import date, datetime, time, timedelta
from flask import Blueprint, request, abort
from sqlalchemy import func
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability, Role
from restaurant_pos.models.accounts import Staff
from restaurant_pos.models.audit import AuditLog
from restaurant_pos.models.meal import Meal
from restaurant_pos.models.order import Order, OrderLine, OrderStatus
from restaurant_pos.decorators.auth import require_role, require_capability
from restaurant_pos.config.pagination import normalize_pagination
from restaurant_pos.utils.listing import iso
from restaurant_pos.utils.validation import parse_date, parse_int

rpt_bp = Blueprint('reports', __name__)

REVENUE_DEFAULT_DAYS = 30
REVENUE_DEFAULT_LIMIT = 500
REVENUE_MAX_LIMIT = 5000


def _optional_date(args, name):
    return parse_date(args[name], name) if args.get(name) else None


def _staff_activity(action: str, report: str):
    """Meal create/update activity per staff member, read back from the audit log."""
    args = request.args
    start = _optional_date(args, 'start_date')
    end = _optional_date(args, 'end_date')
    staff_id = parse_int(args['staff_id'], 'staff_id') if args.get('staff_id') else None
    session = get_db()
    q = session.query(AuditLog, Staff).join(Staff, Staff.user_ref == AuditLog.actor_user_id).filter(AuditLog.action == action)
    if start:
        q = q.filter(AuditLog.created_at >= datetime.combine(start, time.min))
    if end:
        q = q.filter(AuditLog.created_at < datetime.combine(end + timedelta(days=1), time.min))
    if staff_id is not None:
        q = q.filter(Staff.staff_id == staff_id)
    rows = []
    for log, staff in q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).all():
        meta = log.meta or {}
        meal = session.get(Meal, int(log.entity_id)) if log.entity_id and log.entity_id.isdigit() else None
        rows.append({
            'staff_id': staff.staff_id,
            'first_name': staff.first_name,
            'last_name': staff.last_name,
            'activity_type': 'CREATED' if action == 'MEAL.CREATE' else 'UPDATED',
            'meal_id': int(log.entity_id) if log.entity_id and log.entity_id.isdigit() else None,
            'meal_name': meal.meal_name if meal else meta.get('meal_name'),
            'meal_description': meal.meal_description if meal else None,
            'meal_status': meal.meal_status if meal else meta.get('meal_status'),
            'price_cents': meal.price if meal else meta.get('price'),
            'cost_cents': meal.cost_to_make if meal else meta.get('cost_to_make'),
            'changes': meta.get('changes'),
            'activity_timestamp': iso(log.created_at),
        })
    return {
        'report': report,
        'filters': {'start_date': iso(start), 'end_date': iso(end), 'staff_id': staff_id},
        'data': rows,
        'count': len(rows),
    }


@rpt_bp.get('/admin/reports/staff-meals-created')
@require_role(Role.ADMIN)
def staff_meals_created():
    return _staff_activity('MEAL.CREATE', 'Staff Meal Created')


@rpt_bp.get('/admin/reports/staff-meals-updated')
@require_role(Role.ADMIN)
def staff_meals_updated():
    return _staff_activity('MEAL.UPDATE', 'Staff Meal Updated')


@rpt_bp.get('/admin/reports/meal-sales')
@require_role(Role.ADMIN)
def meal_sales():
    """Units and revenue per meal; refunded orders are excluded."""
    start = _optional_date(request.args, 'start_date')
    end = _optional_date(request.args, 'end_date')
    session = get_db()
    revenue = func.sum(OrderLine.price_at_sale * OrderLine.num_units_ordered)
    q = session.query(
        OrderLine.meal_ref,
        Meal.meal_name,
        func.sum(OrderLine.num_units_ordered),
        revenue,
        func.avg(OrderLine.price_at_sale),
    ).join(Order, Order.order_id == OrderLine.order_ref).join(Meal, Meal.meal_id == OrderLine.meal_ref).filter(
        Order.order_status != int(OrderStatus.REFUNDED)
    )
    if start:
        q = q.filter(Order.order_date >= start)
    if end:
        q = q.filter(Order.order_date <= end)
    q = q.group_by(OrderLine.meal_ref, Meal.meal_name).order_by(revenue.desc(), OrderLine.meal_ref.asc())
    rows = [
        {
            'meal_id': meal_id,
            'meal_name': name,
            'total_quantity_sold': int(units or 0),
            'total_revenue': int(rev or 0),
            'average_price': int(round(float(avg or 0))),
        }
        for meal_id, name, units, rev, avg in q.all()
    ]
    return {
        'report': 'Meal Sales',
        'filters': {'start_date': iso(start), 'end_date': iso(end)},
        'data': rows,
        'count': len(rows),
    }


@rpt_bp.post('/staff/reports/revenue')
@require_capability(Capability.REPORTS)
def revenue_report():
    """Revenue by meal and order date; defaults to the last 30 days."""
    body = request.json or {}
    if body.get('start_date') and body.get('end_date'):
        start = parse_date(body['start_date'], 'start_date')
        end = parse_date(body['end_date'], 'end_date')
    else:
        end = date.today()
        start = end - timedelta(days=REVENUE_DEFAULT_DAYS)
    if end < start:
        abort(400, description='end_date must not precede start_date')
    meal_id = parse_int(body['meal_id'], 'meal_id') if body.get('meal_id') is not None else None
    try:
        limit, offset = normalize_pagination(body.get('limit'), body.get('offset'), default=REVENUE_DEFAULT_LIMIT, maximum=REVENUE_MAX_LIMIT)
    except ValueError as e:
        abort(400, description=str(e))
    session = get_db()
    revenue = func.sum(OrderLine.price_at_sale * OrderLine.num_units_ordered)
    q = session.query(
        Order.order_date,
        OrderLine.meal_ref,
        Meal.meal_name,
        func.sum(OrderLine.num_units_ordered),
        revenue,
    ).join(Order, Order.order_id == OrderLine.order_ref).join(Meal, Meal.meal_id == OrderLine.meal_ref).filter(
        Order.order_status != int(OrderStatus.REFUNDED),
        Order.order_date >= start,
        Order.order_date <= end,
    )
    if meal_id is not None:
        q = q.filter(OrderLine.meal_ref == meal_id)
    q = q.group_by(Order.order_date, OrderLine.meal_ref, Meal.meal_name).order_by(
        Order.order_date.desc(), revenue.desc(), OrderLine.meal_ref.asc()
    )
    rows = []
    for order_date, mid, name, units, cents in q.offset(offset).limit(limit).all():
        rows.append({
            'order_date': iso(order_date),
            'meal_id': mid,
            'meal_name': name,
            'units_sold': int(units or 0),
            'revenue_cents': int(cents or 0),
        })
    total_units = sum(r['units_sold'] for r in rows)
    total_cents = sum(r['revenue_cents'] for r in rows)
    return {
        'report': 'revenue_by_meal_and_date',
        'filters': {'start_date': iso(start), 'end_date': iso(end), 'meal_id': meal_id, 'limit': limit, 'offset': offset},
        'totals': {'units_sold': total_units, 'revenue_cents': total_cents},
        'count': len(rows),
        'data': rows,
    }
