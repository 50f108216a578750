from .auth import User
from .inventory import Product, StockTransaction, StockReservation
from .production import ProductionJob, ProductionJobLog, QCCheckpoint
from .audit import AuditLog
from .customers import Customer, CustomerInteraction
from .orders import Order, OrderItem
from .communications import Notification
from .documents import DocumentSequence

__all__ = [
    'User',
    'Product', 'StockTransaction', 'StockReservation',
    'ProductionJob', 'ProductionJobLog', 'QCCheckpoint',
    'AuditLog',
    'Customer', 'CustomerInteraction',
    'Order', 'OrderItem',
    'Notification',
    'DocumentSequence',
]
