from .auth import User, Role, UserRole
from .security import SecurityEvent
from .inventory import Warehouse, Product, InventoryMovement
from .sales import Order, OrderLine

__all__ = [
    'User', 'Role', 'UserRole',
    'SecurityEvent',
    'Warehouse', 'Product', 'InventoryMovement',
    'Order', 'OrderLine',
]
