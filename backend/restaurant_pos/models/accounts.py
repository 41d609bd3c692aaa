from __future__ import annotations
from sqlalchemy.orm import declarative_base, relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, ForeignKey, Date, DateTime, func
from typing import Optional
from datetime import date, datetime

from restaurant_pos.constants.permissions import Role
from restaurant_pos.utils.bitmask import PermissionSet, decode, encode

Base = declarative_base()


class UserAccount(Base):
    __tablename__ = 'USER_ACCOUNT'
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column('user_password', String(255), nullable=False)
    # 0 customer, 1 staff, 2 admin (see constants.permissions.Role)
    user_role: Mapped[int] = mapped_column(Integer, nullable=False, default=int(Role.CUSTOMER))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    customer = relationship('Customer', back_populates='user', uselist=False)
    staff = relationship('Staff', back_populates='user', uselist=False, foreign_keys='Staff.user_ref')

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)


class Customer(Base):
    __tablename__ = 'CUSTOMER'
    customer_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_ref: Mapped[int] = mapped_column(ForeignKey('USER_ACCOUNT.user_id', ondelete='CASCADE'), unique=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(64))
    last_name: Mapped[Optional[str]] = mapped_column(String(64))
    street: Mapped[Optional[str]] = mapped_column(String(128))
    city: Mapped[Optional[str]] = mapped_column(String(64))
    state_code: Mapped[Optional[str]] = mapped_column(String(2))
    zipcode: Mapped[Optional[str]] = mapped_column(String(10))
    phone_number: Mapped[Optional[str]] = mapped_column(String(32))
    loyalty_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    refunds_per_month: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user = relationship('UserAccount', back_populates='customer')
    payment_methods = relationship('PaymentMethod', back_populates='customer', cascade='all, delete-orphan')


class Staff(Base):
    __tablename__ = 'STAFF'
    staff_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_ref: Mapped[int] = mapped_column(ForeignKey('USER_ACCOUNT.user_id', ondelete='CASCADE'), unique=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(64))
    last_name: Mapped[Optional[str]] = mapped_column(String(64))
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    salary: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    permissions: Mapped[int] = mapped_column('PERMISSIONS', Integer, nullable=False, default=0)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey('STAFF.staff_id', ondelete='SET NULL'))
    updated_by: Mapped[Optional[int]] = mapped_column(ForeignKey('STAFF.staff_id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    last_updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship('UserAccount', back_populates='staff', foreign_keys=[user_ref])

    @property
    def permission_set(self) -> PermissionSet:
        return decode(self.permissions)

    @permission_set.setter
    def permission_set(self, flags: PermissionSet):
        self.permissions = encode(flags)


class PaymentMethod(Base):
    __tablename__ = 'PAYMENT_METHOD'
    payment_method_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_ref: Mapped[int] = mapped_column(ForeignKey('CUSTOMER.customer_id', ondelete='CASCADE'), nullable=False, index=True)
    payment_type: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_four: Mapped[str] = mapped_column(String(4), nullable=False)
    exp_date: Mapped[Optional[str]] = mapped_column(String(7))
    billing_street: Mapped[str] = mapped_column(String(128), nullable=False)
    billing_city: Mapped[str] = mapped_column(String(64), nullable=False)
    billing_state: Mapped[str] = mapped_column(String(2), nullable=False)
    billing_zip: Mapped[str] = mapped_column(String(10), nullable=False)
    first_name: Mapped[str] = mapped_column(String(64), nullable=False)
    middle_init: Mapped[Optional[str]] = mapped_column(String(1))
    last_name: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    customer = relationship('Customer', back_populates='payment_methods')
