from models.user import User, Address
from models.service import Service
from models.order import Order, OrderItem, OrderStatusHistory
from models.subscription import SubscriptionPlan, Subscription, SubscriptionPreferences

__all__ = [
    "User", "Address", "Service", "Order", "OrderItem", "OrderStatusHistory",
    "SubscriptionPlan", "Subscription", "SubscriptionPreferences",
]
