from __future__ import annotations
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy import Integer, Boolean, ForeignKey, DateTime, func
from datetime import datetime

from .accounts import Base


class Stock(Base):
    __tablename__ = 'STOCK'
    stock_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    meal_ref: Mapped[int] = mapped_column(ForeignKey('MEAL.meal_id', ondelete='CASCADE'), unique=True, nullable=False)
    quantity_in_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reorder_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # days
    stock_fulfillment_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    needs_reorder: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    meal = relationship('Meal', back_populates='stock')

    def refresh_reorder_flag(self) -> bool:
        self.needs_reorder = self.quantity_in_stock <= self.reorder_threshold
        return self.needs_reorder
