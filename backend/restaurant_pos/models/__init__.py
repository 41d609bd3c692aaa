"""Import every model module so Base.metadata knows all tables."""
from .accounts import Base, UserAccount, Customer, Staff, PaymentMethod  # noqa: F401
from .meal import Meal, MealType, MEAL_TYPE_LINK  # noqa: F401
from .stock import Stock  # noqa: F401
from .order import OrderStatus, Order, OrderLine, OrderPromotion, Payment  # noqa: F401
from .promotion import Promotion, SaleEvent  # noqa: F401
from .review import Review  # noqa: F401
from .outbox import EventOutbox  # noqa: F401
from .audit import AuditLog  # noqa: F401
