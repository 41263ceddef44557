from .stores import Store
from .auth import User, SessionToken
from .inventory import Product, InventoryMovement
from .carts import Cart
from .sales import Order, OrderItem
from .refunds import Refund, RefundItem
from .audit import AuditLog

__all__ = [
    'Store',
    'User', 'SessionToken',
    'Product', 'InventoryMovement',
    'Cart',
    'Order', 'OrderItem',
    'Refund', 'RefundItem',
    'AuditLog',
]
