from flask import Blueprint, request, abort
from sqlalchemy import select, func
from restaurant_pos import get_db
from restaurant_pos.constants.permissions import Role
from restaurant_pos.models.meal import Meal
from restaurant_pos.models.review import Review
from restaurant_pos.decorators.auth import require_role, get_identity
from restaurant_pos.utils.listing import iso
from restaurant_pos.utils.validation import parse_int

reviews_bp = Blueprint('reviews', __name__)

MIN_STARS = 0
MAX_STARS = 5


@reviews_bp.post('')
@require_role(Role.CUSTOMER)
def create_review():
    data = request.json or {}
    if data.get('meal_ref') is None or data.get('stars') is None:
        abort(400, description='meal_ref and stars required')
    meal_ref = parse_int(data['meal_ref'], 'meal_ref', minimum=1)
    stars = parse_int(data['stars'], 'stars', minimum=MIN_STARS, maximum=MAX_STARS)
    customer_id = get_identity().customer_id
    if customer_id is None:
        abort(404, description='Customer not found')
    session = get_db()
    if session.get(Meal, meal_ref) is None:
        abort(404, description='Meal not found')
    if session.get(Review, (customer_id, meal_ref)) is not None:
        abort(409, description='You have already reviewed this meal')
    review = Review(customer_ref=customer_id, meal_ref=meal_ref, stars=stars, user_comment=data.get('user_comment') or None)
    session.add(review)
    session.commit()
    return _review_json(review), 201


@reviews_bp.get('/meal/<int:meal_id>')
def meal_reviews(meal_id: int):
    """Public: reviews of one meal, newest first, with the average rating."""
    session = get_db()
    if session.get(Meal, meal_id) is None:
        abort(404, description='Meal not found')
    rows = session.execute(
        select(Review).where(Review.meal_ref == meal_id).order_by(Review.created_at.desc(), Review.customer_ref.asc())
    ).scalars().all()
    avg = session.execute(select(func.avg(Review.stars)).where(Review.meal_ref == meal_id)).scalar()
    return {
        'meal_id': meal_id,
        'average_rating': round(float(avg), 2) if avg is not None else None,
        'count': len(rows),
        'data': [_review_json(r) for r in rows],
    }


def _review_json(r: Review):
    return {
        'customer_ref': r.customer_ref,
        'meal_ref': r.meal_ref,
        'stars': r.stars,
        'user_comment': r.user_comment,
        'created_at': iso(r.created_at),
    }
