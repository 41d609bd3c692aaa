from flask import Blueprint, request, abort
from sqlalchemy import select
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Capability
from restaurant_pos.models.meal import MealType
from restaurant_pos.decorators.auth import require_capability
from restaurant_pos.decorators.audit import audit_log

categories_bp = Blueprint('meal_categories', __name__)


def _category_json(mt: MealType):
    return {'meal_type_id': mt.meal_type_id, 'meal_type': mt.meal_type, 'meal_count': len(mt.meals)}


def _get_or_404(session, meal_type_id: int) -> MealType:
    mt = session.get(MealType, meal_type_id)
    if not mt:
        abort(404, description='Meal category not found')
    return mt


def _name_from_body() -> str:
    name = ((request.json or {}).get('meal_type') or '').strip()
    if not name:
        abort(400, description='meal_type required')
    return name


def _assert_unique(session, name: str, exclude_id=None):
    q = select(MealType).where(MealType.meal_type == name)
    if exclude_id is not None:
        q = q.where(MealType.meal_type_id != exclude_id)
    if session.execute(q).scalar_one_or_none():
        abort(409, description='Meal category already exists')


@categories_bp.get('')
@require_capability(Capability.MEAL_MANAGEMENT)
def list_categories():
    session = get_db()
    rows = session.execute(select(MealType).order_by(MealType.meal_type.asc())).scalars().all()
    return {'data': [_category_json(mt) for mt in rows], 'count': len(rows)}


@categories_bp.get('/<int:meal_type_id>')
@require_capability(Capability.MEAL_MANAGEMENT)
def get_category(meal_type_id: int):
    return _category_json(_get_or_404(get_db(), meal_type_id))


@categories_bp.post('')
@require_capability(Capability.MEAL_MANAGEMENT)
@audit_log('MEAL_TYPE.CREATE', entity='MealType', entity_id_key='meal_type_id', meta_keys=['meal_type'])
def create_category():
    session = get_db()
    name = _name_from_body()
    _assert_unique(session, name)
    mt = MealType(meal_type=name)
    session.add(mt)
    session.commit()
    return _category_json(mt), 201


@categories_bp.put('/<int:meal_type_id>')
@require_capability(Capability.MEAL_MANAGEMENT)
@audit_log('MEAL_TYPE.UPDATE', entity='MealType', entity_id_key='meal_type_id', meta_keys=['meal_type'])
def update_category(meal_type_id: int):
    session = get_db()
    mt = _get_or_404(session, meal_type_id)
    name = _name_from_body()
    _assert_unique(session, name, exclude_id=meal_type_id)
    mt.meal_type = name
    session.commit()
    return _category_json(mt)


@categories_bp.delete('/<int:meal_type_id>')
@require_capability(Capability.MEAL_MANAGEMENT)
@audit_log('MEAL_TYPE.DELETE', entity='MealType', entity_id_arg='meal_type_id')
def delete_category(meal_type_id: int):
    session = get_db()
    mt = _get_or_404(session, meal_type_id)
    # Unlinks meals; the meals themselves stay
    mt.meals = []
    session.delete(mt)
    session.commit()
    return {'message': 'Meal category deleted', 'meal_type_id': meal_type_id}
