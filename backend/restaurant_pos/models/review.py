from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, Text, ForeignKey, DateTime, func
from typing import Optional
from datetime import datetime

from .accounts import Base


class Review(Base):
    __tablename__ = 'REVIEWS'
    # One review per customer per meal
    customer_ref: Mapped[int] = mapped_column(ForeignKey('CUSTOMER.customer_id', ondelete='CASCADE'), primary_key=True)
    meal_ref: Mapped[int] = mapped_column(ForeignKey('MEAL.meal_id', ondelete='CASCADE'), primary_key=True)
    stars: Mapped[int] = mapped_column(Integer, nullable=False)
    user_comment: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
