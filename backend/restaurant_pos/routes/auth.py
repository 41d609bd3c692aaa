from flask import Blueprint, request, abort, current_app
from flask_jwt_extended import create_access_token
from sqlalchemy import select, or_
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Role
from restaurant_pos.models.accounts import UserAccount, Customer
from restaurant_pos.services.roles import parse_role
from restaurant_pos.decorators.auth import require_authenticated, get_identity
from restaurant_pos.utils.bitmask import decode
from restaurant_pos.utils.validation import parse_password

auth_bp = Blueprint('auth', __name__)


def _field(data, name, legacy=None):
    """Read snake_case field, falling back to the storefront's camelCase name."""
    value = data.get(name)
    if value is None and legacy:
        value = data.get(legacy)
    return value


def issue_token(user: UserAccount):
    """Token whose identity is the user id; role and profile ids ride along as claims."""
    role = parse_role(user.user_role)
    claims = {'role': role.label, 'username': user.username}
    profile = {}
    if role == Role.CUSTOMER and user.customer is not None:
        c = user.customer
        claims['customer_id'] = c.customer_id
        profile = {
            'customer_id': c.customer_id,
            'first_name': c.first_name,
            'last_name': c.last_name,
            'loyalty_points': c.loyalty_points,
            'total_amount_spent': c.total_amount_spent,
        }
    elif role in (Role.STAFF, Role.ADMIN) and user.staff is not None:
        s = user.staff
        claims['staff_id'] = s.staff_id
        profile = {
            'staff_id': s.staff_id,
            'first_name': s.first_name,
            'last_name': s.last_name,
            'permissions': s.permissions,
            'permission_flags': decode(s.permissions).to_dict(),
        }
    token = create_access_token(identity=str(user.user_id), additional_claims=claims)
    body = {'id': user.user_id, 'email': user.email, 'username': user.username, 'role': role.label}
    body.update(profile)
    return token, body


@auth_bp.post('/register')
def register():
    data = request.json or {}
    email = data.get('email'); username = data.get('username'); password = data.get('password')
    if not email or not password or not username:
        abort(400, description='email, username and password required')
    parse_password(password)
    if not isinstance(email, str) or not isinstance(username, str):
        abort(400, description='email and username must be strings')
    session = get_db()
    clash = session.execute(
        select(UserAccount).where(or_(UserAccount.email == email, UserAccount.username == username))
    ).scalars().first()
    if clash:
        abort(409, description='Email or username already registered')
    user = UserAccount(username=username, email=email, user_role=int(Role.CUSTOMER), password_hash='')
    user.set_password(password)
    session.add(user); session.flush()
    customer = Customer(
        user_ref=user.user_id,
        first_name=_field(data, 'first_name', 'firstName') or '',
        last_name=_field(data, 'last_name', 'lastName') or '',
        street=data.get('street'),
        city=data.get('city'),
        state_code=_field(data, 'state_code', 'stateCode'),
        zipcode=data.get('zipcode'),
        phone_number=_field(data, 'phone_number', 'phoneNumber'),
        loyalty_points=0,
        total_amount_spent=0,
        refunds_per_month=0,
    )
    session.add(customer)
    session.commit()
    session.refresh(user)
    current_app.logger.info('registered customer user=%s', user.user_id)
    token, body = issue_token(user)
    return {'access_token': token, 'user': body}, 201


@auth_bp.post('/login')
def login():
    data = request.json or {}
    username = data.get('username'); password = data.get('password')
    if not username or not password:
        abort(400, description='username & password required')
    if not isinstance(username, str) or not isinstance(password, str):
        abort(400, description='username and password must be strings')
    session = get_db()
    user = session.execute(select(UserAccount).where(UserAccount.username == username)).scalar_one_or_none()
    if not user or not user.verify_password(password):
        abort(401, description='invalid credentials')
    token, body = issue_token(user)
    return {'access_token': token, 'user': body}


@auth_bp.get('/me')
@require_authenticated
def me():
    identity = get_identity()
    session = get_db()
    user = session.get(UserAccount, identity.user_id)
    if not user:
        abort(404)
    out = {
        'id': user.user_id,
        'username': user.username,
        'email': user.email,
        'role': identity.role.label,
    }
    if identity.staff_id is not None:
        out['staff_id'] = identity.staff_id
        out['permissions'] = identity.permissions.to_dict()
    if identity.customer_id is not None:
        out['customer_id'] = identity.customer_id
    return out


@auth_bp.post('/logout')
@require_authenticated
def logout():
    # Tokens are stateless; the client drops its copy
    return {'message': 'Logged out'}
