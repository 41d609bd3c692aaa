#!/usr/bin/env python
"""Idempotent bootstrap for a fresh restaurant database.

Creates the first administrator (USER_ACCOUNT role 2 plus a STAFF row holding
every capability) and a starter set of meal categories.

Usage:
    python backend/scripts/seed_admin.py                    # seed normally
    python backend/scripts/seed_admin.py --dry-run          # run logic then rollback
    python backend/scripts/seed_admin.py --no-categories    # admin only
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from datetime import date
from sqlalchemy import select, inspect

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from restaurant_pos import create_app, get_db  # type: ignore
from restaurant_pos.constants.permissions import Role, ALL_CAPABILITIES
from restaurant_pos.models import Base
from restaurant_pos.models.accounts import UserAccount, Staff
from restaurant_pos.models.meal import MealType
from restaurant_pos.utils.bitmask import PermissionSet, encode

DEFAULT_CATEGORIES = ('Breakfast', 'Lunch', 'Dinner', 'Dessert', 'Drinks', 'Vegetarian')


def ensure_admin(session):
    username = os.getenv('SEED_ADMIN_USERNAME', 'admin')
    email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com')
    user = session.execute(select(UserAccount).where(UserAccount.username == username)).scalar_one_or_none()
    if user is None:
        user = UserAccount(username=username, email=email, user_role=int(Role.ADMIN))
        user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
        session.add(user)
        session.flush()
        print(f"[INFO] Created admin account '{username}' with temporary password.")
        created = 1
    else:
        if user.user_role != int(Role.ADMIN):
            print(f"[WARN] Account '{username}' exists with role {user.user_role}; leaving it untouched")
            return 0
        created = 0
    if user.staff is None:
        session.add(Staff(
            user_ref=user.user_id,
            first_name='Site',
            last_name='Admin',
            phone_number=os.getenv('SEED_ADMIN_PHONE', '000-000-0000'),
            hire_date=date.today(),
            permissions=encode(PermissionSet.of(*ALL_CAPABILITIES)),
        ))
        print('[INFO] Attached STAFF profile with full capability mask')
    return created


def ensure_categories(session):
    existing = set(session.execute(select(MealType.meal_type)).scalars().all())
    created = 0
    for name in DEFAULT_CATEGORIES:
        if name not in existing:
            session.add(MealType(meal_type=name))
            created += 1
    return created


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed the initial admin account and meal categories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_admin.py\n  dry run: seed_admin.py --dry-run\n""")
    )
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--no-categories', action='store_true', help='Skip the default meal categories')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        engine = session.get_bind()
        if not inspect(engine).has_table('USER_ACCOUNT'):
            # Bootstrap fallback; in real env prefer `alembic upgrade head`
            print('[INFO] Schema missing, creating tables from models')
            Base.metadata.create_all(engine)

        created_admin = ensure_admin(session)
        created_cats = 0 if args.no_categories else ensure_categories(session)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Admin would create: {created_admin}, Categories would create: {created_cats}")
        else:
            session.commit()
            print(f"[DONE] Admin created: {created_admin}, Categories created: {created_cats}")


if __name__ == '__main__':
    main()
