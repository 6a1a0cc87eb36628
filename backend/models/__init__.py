from .auth_audit import AuthAuditLog
from .order import Order, OrderStatus
from .refresh_token import RefreshToken
from .user import User, UserType

__all__ = [
    "AuthAuditLog",
    "Order",
    "OrderStatus",
    "RefreshToken",
    "User",
    "UserType",
]
