from __future__ import annotations
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, Text, JSON, ForeignKey, Date, DateTime, Table, Column, func
from typing import Optional, Dict, Any
from datetime import date, datetime

from .accounts import Base

MEAL_TYPE_LINK = Table(
    'MEAL_TYPE_LINK',
    Base.metadata,
    Column('meal_ref', ForeignKey('MEAL.meal_id', ondelete='CASCADE'), primary_key=True),
    Column('meal_type_ref', ForeignKey('MEAL_TYPE.meal_type_id', ondelete='CASCADE'), primary_key=True),
)


class Meal(Base):
    __tablename__ = 'MEAL'
    STATUS_INACTIVE = 0
    STATUS_ACTIVE = 1
    meal_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    meal_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    meal_description: Mapped[Optional[str]] = mapped_column(Text)
    img_url: Mapped[Optional[str]] = mapped_column(String(255))
    meal_status: Mapped[int] = mapped_column(Integer, nullable=False, default=STATUS_ACTIVE)
    nutrition_facts: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    # cents
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    cost_to_make: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey('STAFF.staff_id', ondelete='SET NULL'))
    updated_by: Mapped[Optional[int]] = mapped_column(ForeignKey('STAFF.staff_id', ondelete='SET NULL'))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    last_updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    categories = relationship('MealType', secondary=MEAL_TYPE_LINK, back_populates='meals')
    stock = relationship('Stock', back_populates='meal', uselist=False, cascade='all, delete-orphan')

    def is_orderable(self, today: date) -> bool:
        """Active and inside its optional availability window."""
        if self.meal_status != self.STATUS_ACTIVE:
            return False
        if self.start_date and today < self.start_date:
            return False
        if self.end_date and today > self.end_date:
            return False
        return True


class MealType(Base):
    __tablename__ = 'MEAL_TYPE'
    meal_type_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    meal_type: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    meals = relationship('Meal', secondary=MEAL_TYPE_LINK, back_populates='categories')
