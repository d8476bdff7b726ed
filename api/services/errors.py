"""Domain errors raised by the subscription/order services.

Routers translate these into HTTP responses; the recurring scheduler
treats NotFoundError as "skip this user" and logs everything else.
"""


class NotFoundError(Exception):
    """A required row does not exist."""


class NoActiveSubscription(NotFoundError):
    def __init__(self, user_id):
        super().__init__(f"No active subscription for user {user_id}")
        self.user_id = user_id


class OrderNotFound(NotFoundError):
    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class PreferencesNotFound(NotFoundError):
    def __init__(self, user_id):
        super().__init__(f"No subscription preferences for user {user_id}")
        self.user_id = user_id


class InvalidReference(Exception):
    """A referenced id (service, address) is unknown or not usable."""


class ServiceNotFound(InvalidReference):
    def __init__(self, service_id):
        super().__init__(f"Service {service_id} not found")
        self.service_id = service_id


class InvalidAddress(InvalidReference):
    def __init__(self, address_id, kind: str = "pickup"):
        super().__init__(f"Invalid {kind} address {address_id}")
        self.address_id = address_id
        self.kind = kind


class OrderCreationError(Exception):
    """The order transaction failed and was rolled back."""


class SubscriptionNotFound(NotFoundError):
    def __init__(self, subscription_id):
        super().__init__(f"Subscription {subscription_id} not found or already cancelled")
        self.subscription_id = subscription_id


class UserNotFound(NotFoundError):
    def __init__(self, user_id):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class InvalidPlan(InvalidReference):
    def __init__(self, plan_id):
        super().__init__(f"Invalid subscription plan {plan_id}")
        self.plan_id = plan_id


class SubscriptionExists(Exception):
    """The user already holds an active or paused subscription."""

    def __init__(self, user_id):
        super().__init__(f"User {user_id} already has an active subscription")
        self.user_id = user_id
