import re
from flask import Blueprint, request, abort
from sqlalchemy import select
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Role
from restaurant_pos.models.accounts import Customer, PaymentMethod
from restaurant_pos.models.order import Payment
from restaurant_pos.decorators.auth import require_role, get_identity
from restaurant_pos.utils.listing import iso
from restaurant_pos.utils.validation import require_fields, parse_int

customers_bp = Blueprint('customers', __name__)

PROFILE_FIELDS = ('first_name', 'last_name', 'street', 'city', 'state_code', 'zipcode', 'phone_number')
STATE_RE = re.compile(r'^[A-Za-z]{2}$')
ZIP_RE = re.compile(r'^\d{5}$')
CARD_RE = re.compile(r'^\d{12,19}$')
EXP_RE = re.compile(r'^(0[1-9]|1[0-2])/\d{2}(\d{2})?$')


def _customer(session) -> Customer:
    identity = get_identity()
    customer = session.get(Customer, identity.customer_id) if identity.customer_id else None
    if customer is None:
        abort(404, description='Customer not found')
    return customer


@customers_bp.get('/profile')
@require_role(Role.CUSTOMER)
def get_profile():
    return _profile_json(_customer(get_db()))


@customers_bp.put('/profile')
@require_role(Role.CUSTOMER)
def update_profile():
    session = get_db()
    customer = _customer(session)
    data = request.json or {}
    if data.get('state_code') and not STATE_RE.match(str(data['state_code'])):
        abort(400, description='state_code must be 2 letters')
    if data.get('zipcode') and not ZIP_RE.match(str(data['zipcode'])):
        abort(400, description='zipcode must be 5 digits')
    for field in PROFILE_FIELDS:
        if field in data:
            value = data[field]
            if field == 'state_code' and value:
                value = str(value).upper()
            setattr(customer, field, value)
    session.commit()
    return _profile_json(customer)


@customers_bp.get('/payment-methods')
@require_role(Role.CUSTOMER)
def list_payment_methods():
    session = get_db()
    customer = _customer(session)
    rows = session.execute(
        select(PaymentMethod).where(PaymentMethod.customer_ref == customer.customer_id).order_by(PaymentMethod.payment_method_id.asc())
    ).scalars().all()
    return {'data': [_payment_method_json(pm) for pm in rows], 'count': len(rows)}


@customers_bp.post('/payment-methods')
@require_role(Role.CUSTOMER)
def add_payment_method():
    data = request.json or {}
    require_fields(data, ['card_number', 'name_on_card', 'exp_date', 'billing_street', 'billing_city', 'billing_state', 'billing_zip'])
    card = re.sub(r'[\s-]', '', str(data['card_number']))
    if not CARD_RE.match(card):
        abort(400, description='card_number invalid')
    if not EXP_RE.match(str(data['exp_date'])):
        abort(400, description='exp_date must be MM/YY')
    if not STATE_RE.match(str(data['billing_state'])):
        abort(400, description='billing_state must be 2 letters')
    if not ZIP_RE.match(str(data['billing_zip'])):
        abort(400, description='billing_zip must be 5 digits')
    parts = str(data['name_on_card']).split()
    first = parts[0]
    last = parts[-1] if len(parts) > 1 else ''
    middle = parts[1][0].upper() if len(parts) > 2 else None
    session = get_db()
    customer = _customer(session)
    pm = PaymentMethod(
        customer_ref=customer.customer_id,
        payment_type=parse_int(data.get('payment_type', 0), 'payment_type', minimum=0),
        # only the last four digits are ever stored
        last_four=card[-4:],
        exp_date=str(data['exp_date']),
        billing_street=data['billing_street'],
        billing_city=data['billing_city'],
        billing_state=str(data['billing_state']).upper(),
        billing_zip=str(data['billing_zip']),
        first_name=first,
        middle_init=middle,
        last_name=last,
    )
    session.add(pm)
    session.commit()
    return _payment_method_json(pm), 201


@customers_bp.delete('/payment-methods/<int:payment_method_id>')
@require_role(Role.CUSTOMER)
def delete_payment_method(payment_method_id: int):
    session = get_db()
    customer = _customer(session)
    pm = session.get(PaymentMethod, payment_method_id)
    if pm is None or pm.customer_ref != customer.customer_id:
        abort(404, description='Payment method not found')
    # Past payments keep their amount but lose the card reference
    session.query(Payment).filter(Payment.payment_method_ref == payment_method_id).update({Payment.payment_method_ref: None})
    session.delete(pm)
    session.commit()
    return {'message': 'Payment method deleted', 'payment_method_id': payment_method_id}


def _profile_json(c: Customer):
    return {
        'customer_id': c.customer_id,
        'user_id': c.user_ref,
        'username': c.user.username if c.user else None,
        'email': c.user.email if c.user else None,
        'first_name': c.first_name,
        'last_name': c.last_name,
        'street': c.street,
        'city': c.city,
        'state_code': c.state_code,
        'zipcode': c.zipcode,
        'phone_number': c.phone_number,
        'loyalty_points': c.loyalty_points,
        'total_amount_spent': c.total_amount_spent,
    }


def _payment_method_json(pm: PaymentMethod):
    name = ' '.join(p for p in (pm.first_name, f'{pm.middle_init}.' if pm.middle_init else None, pm.last_name) if p)
    return {
        'payment_method_id': pm.payment_method_id,
        'payment_type': pm.payment_type,
        'last_four': pm.last_four,
        'exp_date': pm.exp_date,
        'name_on_card': name,
        'billing_address': {
            'street': pm.billing_street,
            'city': pm.billing_city,
            'state': pm.billing_state,
            'zipcode': pm.billing_zip,
        },
        'created_at': iso(pm.created_at),
    }
