from datetime import date
from flask import Blueprint, request, abort
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability
from restaurant_pos.models.promotion import SaleEvent
from restaurant_pos.decorators.auth import require_capability, get_identity
from restaurant_pos.decorators.audit import audit_log
from restaurant_pos.utils.listing import apply_pagination, build_list_payload, iso
from restaurant_pos.utils.validation import require_fields, parse_int, parse_date, validate_choice

sale_events_bp = Blueprint('sale_events', __name__)

EVENT_TYPES = (SaleEvent.TYPE_PERCENT, SaleEvent.TYPE_FIXED)
MAX_PERCENT = 99


def _check_value(event_type: int, value: int):
    if value < 1:
        abort(400, description='sitewide_discount_value must be positive')
    if event_type == SaleEvent.TYPE_PERCENT and value > MAX_PERCENT:
        abort(400, description='sitewide_discount_value must be below 100 for percent events')


def _check_window(ev: SaleEvent):
    if ev.event_end < ev.event_start:
        abort(400, description='event_end must not precede event_start')


@sale_events_bp.get('/active')
def active_events():
    """Public: sale events running today."""
    session = get_db()
    today = date.today()
    rows = session.query(SaleEvent).filter(SaleEvent.event_start <= today, SaleEvent.event_end >= today).order_by(
        SaleEvent.event_end.asc(), SaleEvent.sale_event_id.asc()
    ).all()
    return {'data': [_event_json(e, public=True) for e in rows], 'count': len(rows)}


@sale_events_bp.post('')
@require_capability(Capability.SEASONAL_DISCOUNTS)
@audit_log('SALE_EVENT.CREATE', entity='SaleEvent', entity_id_key='sale_event_id', meta_keys=['sitewide_event_type', 'sitewide_discount_value'])
def create_event():
    data = request.json or {}
    require_fields(data, ['event_description', 'event_start', 'event_end', 'sitewide_event_type', 'sitewide_discount_value'])
    event_type = validate_choice(parse_int(data['sitewide_event_type'], 'sitewide_event_type'), EVENT_TYPES, 'sitewide_event_type')
    value = parse_int(data['sitewide_discount_value'], 'sitewide_discount_value')
    _check_value(event_type, value)
    staff_id = get_identity().staff_id
    ev = SaleEvent(
        event_description=data['event_description'],
        event_start=parse_date(data['event_start'], 'event_start'),
        event_end=parse_date(data['event_end'], 'event_end'),
        sitewide_event_type=event_type,
        sitewide_discount_value=value,
        created_by=staff_id,
        updated_by=staff_id,
    )
    _check_window(ev)
    session = get_db()
    session.add(ev)
    session.commit()
    return _event_json(ev), 201


@sale_events_bp.get('')
@require_capability(Capability.SEASONAL_DISCOUNTS)
def list_events():
    session = get_db()
    q = session.query(SaleEvent).order_by(SaleEvent.event_start.desc(), SaleEvent.sale_event_id.asc())
    paged_q, total, limit, offset = apply_pagination(q)
    return build_list_payload([_event_json(e) for e in paged_q.all()], total, limit, offset)


@sale_events_bp.get('/<int:sale_event_id>')
@require_capability(Capability.SEASONAL_DISCOUNTS)
def get_event(sale_event_id: int):
    return _event_json(_get_or_404(get_db(), sale_event_id))


@sale_events_bp.put('/<int:sale_event_id>')
@require_capability(Capability.SEASONAL_DISCOUNTS)
@audit_log(
    'SALE_EVENT.UPDATE',
    entity='SaleEvent',
    entity_id_key='sale_event_id',
    diff_keys=['event_start', 'event_end', 'sitewide_event_type', 'sitewide_discount_value'],
    pre_fetch=lambda a, kw: _prefetch_event(kw.get('sale_event_id')),
)
def update_event(sale_event_id: int):
    session = get_db()
    ev = _get_or_404(session, sale_event_id)
    data = request.json or {}
    if 'event_description' in data:
        ev.event_description = data['event_description']
    if 'event_start' in data:
        ev.event_start = parse_date(data['event_start'], 'event_start')
    if 'event_end' in data:
        ev.event_end = parse_date(data['event_end'], 'event_end')
    if 'sitewide_event_type' in data:
        ev.sitewide_event_type = validate_choice(parse_int(data['sitewide_event_type'], 'sitewide_event_type'), EVENT_TYPES, 'sitewide_event_type')
    if 'sitewide_discount_value' in data:
        ev.sitewide_discount_value = parse_int(data['sitewide_discount_value'], 'sitewide_discount_value')
    _check_value(ev.sitewide_event_type, ev.sitewide_discount_value)
    _check_window(ev)
    ev.updated_by = get_identity().staff_id
    session.commit()
    return _event_json(ev)


@sale_events_bp.delete('/<int:sale_event_id>')
@require_capability(Capability.SEASONAL_DISCOUNTS)
@audit_log('SALE_EVENT.DELETE', entity='SaleEvent', entity_id_arg='sale_event_id')
def delete_event(sale_event_id: int):
    session = get_db()
    session.delete(_get_or_404(session, sale_event_id))
    session.commit()
    return {'message': 'Sale event deleted', 'sale_event_id': sale_event_id}


def _get_or_404(session, sale_event_id: int) -> SaleEvent:
    ev = session.get(SaleEvent, sale_event_id)
    if not ev:
        abort(404, description='Sale event not found')
    return ev


def _event_json(e: SaleEvent, public: bool = False):
    out = {
        'sale_event_id': e.sale_event_id,
        'event_description': e.event_description,
        'event_start': iso(e.event_start),
        'event_end': iso(e.event_end),
        'sitewide_event_type': e.sitewide_event_type,
        'sitewide_discount_value': e.sitewide_discount_value,
        'active': e.is_active(date.today()),
    }
    if not public:
        out.update({
            'created_by': e.created_by,
            'updated_by': e.updated_by,
            'created_at': iso(e.created_at),
            'last_updated_at': iso(e.last_updated_at),
        })
    return out


def _prefetch_event(sale_event_id):
    e = get_db().get(SaleEvent, sale_event_id)
    if not e:
        return {}
    return {
        'event_start': iso(e.event_start),
        'event_end': iso(e.event_end),
        'sitewide_event_type': e.sitewide_event_type,
        'sitewide_discount_value': e.sitewide_discount_value,
    }
