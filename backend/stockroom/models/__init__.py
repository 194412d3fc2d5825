from .inventory import Item, Movement, MOVEMENT_KINDS, BORROW_STATUSES, RETURN_STATUSES, RETURN_SOURCES
from .auth import AdminSession

__all__ = [
    'Item', 'Movement', 'AdminSession',
    'MOVEMENT_KINDS', 'BORROW_STATUSES', 'RETURN_STATUSES', 'RETURN_SOURCES',
]
