from datetime import date
from flask import Blueprint, request, abort, current_app
from sqlalchemy import select, or_
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Role
from restaurant_pos.models.accounts import UserAccount, Staff
from restaurant_pos.decorators.auth import require_role, get_identity
from restaurant_pos.decorators.audit import audit_log
from restaurant_pos.services.roles import role_name
from restaurant_pos.utils.bitmask import PermissionSet, encode, flags_from_body
from restaurant_pos.utils.listing import apply_pagination, build_list_payload, iso
from restaurant_pos.utils.sorting import apply_multi_sort
from restaurant_pos.utils.validation import require_fields, parse_int, parse_date, parse_password

staff_bp = Blueprint('staff', __name__)


def _staff_q(session):
    return session.query(Staff, UserAccount).join(UserAccount, UserAccount.user_id == Staff.user_ref).filter(
        UserAccount.user_role == int(Role.STAFF)
    )


def _get_staff_or_404(session, user_id: int):
    row = _staff_q(session).filter(UserAccount.user_id == user_id).one_or_none()
    if not row:
        abort(404, description='Staff user not found')
    return row


def _hire_date(value) -> date:
    d = parse_date(value, 'hire_date')
    if d > date.today():
        abort(400, description='hire_date cannot be in the future')
    return d


@staff_bp.post('')
@require_role(Role.ADMIN)
@audit_log('STAFF.CREATE', entity='Staff', entity_id_key='staff_id', meta_keys=['username', 'permissions'])
def create_staff():
    data = request.json or {}
    require_fields(data, ['email', 'username', 'password', 'phone_number', 'hire_date', 'salary'])
    parse_password(data['password'])
    hire_date = _hire_date(data['hire_date'])
    salary = parse_int(data['salary'], 'salary', minimum=0)
    flags = flags_from_body(data) or PermissionSet()
    session = get_db()
    if session.execute(select(UserAccount).where(UserAccount.email == data['email'])).scalar_one_or_none():
        abort(409, description='Email already registered')
    if session.execute(select(UserAccount).where(UserAccount.username == data['username'])).scalar_one_or_none():
        abort(409, description='Username already taken')
    user = UserAccount(username=data['username'], email=data['email'], user_role=int(Role.STAFF), password_hash='')
    user.set_password(data['password'])
    session.add(user); session.flush()
    staff = Staff(
        user_ref=user.user_id,
        first_name=data.get('first_name', data.get('firstName')) or '',
        last_name=data.get('last_name', data.get('lastName')) or '',
        phone_number=data['phone_number'],
        hire_date=hire_date,
        salary=salary,
        permissions=encode(flags),
        created_by=get_identity().staff_id,
    )
    session.add(staff)
    session.commit()
    current_app.logger.info('staff created user=%s staff=%s permissions=%s', user.user_id, staff.staff_id, staff.permissions)
    return _staff_json(staff, user), 201


@staff_bp.get('')
@require_role(Role.ADMIN)
def list_staff():
    session = get_db()
    q = _staff_q(session)
    allowed = {
        'user_id': UserAccount.user_id,
        'username': UserAccount.username,
        'hire_date': Staff.hire_date,
        'last_name': Staff.last_name,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, UserAccount.user_id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = [_staff_json(s, u) for s, u in paged_q.all()]
    return build_list_payload(rows, total, limit, offset)


@staff_bp.get('/<int:user_id>')
@require_role(Role.ADMIN)
def get_staff(user_id: int):
    session = get_db()
    staff, user = _get_staff_or_404(session, user_id)
    out = _staff_json(staff, user)
    out['created_by_name'] = _staff_name(session, staff.created_by)
    out['updated_by_name'] = _staff_name(session, staff.updated_by)
    return out


@staff_bp.put('/<int:user_id>')
@require_role(Role.ADMIN)
@audit_log(
    'STAFF.UPDATE',
    entity='Staff',
    entity_id_key='staff_id',
    diff_keys=['permissions', 'salary', 'phone_number', 'email', 'username'],
    pre_fetch=lambda a, kw: _prefetch_staff(kw.get('user_id')),
)
def update_staff(user_id: int):
    session = get_db()
    staff, user = _get_staff_or_404(session, user_id)
    data = request.json or {}
    email = data.get('email'); username = data.get('username')
    if email or username:
        clauses = []
        if email:
            clauses.append(UserAccount.email == email)
        if username:
            clauses.append(UserAccount.username == username)
        conflict = session.execute(
            select(UserAccount).where(or_(*clauses), UserAccount.user_id != user_id)
        ).scalars().first()
        if conflict:
            abort(409, description='Email or username already in use')
        if email:
            user.email = email
        if username:
            user.username = username
    if data.get('password'):
        parse_password(data['password'])
        user.set_password(data['password'])
    for field, legacy in (('first_name', 'firstName'), ('last_name', 'lastName')):
        if field in data or legacy in data:
            setattr(staff, field, data.get(field, data.get(legacy)) or '')
    if 'phone_number' in data:
        if not data['phone_number']:
            abort(400, description='phone_number cannot be empty')
        staff.phone_number = data['phone_number']
    if 'hire_date' in data:
        staff.hire_date = _hire_date(data['hire_date'])
    if 'salary' in data:
        staff.salary = parse_int(data['salary'], 'salary', minimum=0)
    flags = flags_from_body(data)
    if flags is not None:
        staff.permissions = encode(flags)
    staff.updated_by = get_identity().staff_id
    session.commit()
    current_app.logger.info('staff updated user=%s permissions=%s', user_id, staff.permissions)
    return _staff_json(staff, user)


@staff_bp.delete('/<int:user_id>')
@require_role(Role.ADMIN)
@audit_log('STAFF.DELETE', entity='Staff', entity_id_arg='user_id')
def delete_staff(user_id: int):
    session = get_db()
    staff, user = _get_staff_or_404(session, user_id)
    # STAFF first; other staff rows may reference it through created_by/updated_by
    session.query(Staff).filter(Staff.created_by == staff.staff_id).update({Staff.created_by: None})
    session.query(Staff).filter(Staff.updated_by == staff.staff_id).update({Staff.updated_by: None})
    session.delete(staff)
    session.flush()
    session.delete(user)
    session.commit()
    current_app.logger.info('staff deleted user=%s', user_id)
    return {'message': 'Staff user deleted', 'user_id': user_id}


def _staff_name(session, staff_id):
    if staff_id is None:
        return None
    other = session.get(Staff, staff_id)
    if other is None:
        return None
    return f"{other.first_name or ''} {other.last_name or ''}".strip()


def _staff_json(s: Staff, u: UserAccount):
    return {
        'user_id': u.user_id,
        'staff_id': s.staff_id,
        'username': u.username,
        'email': u.email,
        'role': role_name(u.user_role),
        'first_name': s.first_name,
        'last_name': s.last_name,
        'phone_number': s.phone_number,
        'hire_date': iso(s.hire_date),
        'salary': s.salary,
        'permissions': s.permissions,
        'permission_flags': s.permission_set.to_dict(),
        'created_by': s.created_by,
        'updated_by': s.updated_by,
        'created_at': iso(s.created_at),
        'last_updated_at': iso(s.last_updated_at),
    }


def _prefetch_staff(user_id):
    session = get_db()
    row = _staff_q(session).filter(UserAccount.user_id == user_id).one_or_none()
    if not row:
        return {}
    s, u = row
    return {'permissions': s.permissions, 'salary': s.salary, 'phone_number': s.phone_number, 'email': u.email, 'username': u.username}
