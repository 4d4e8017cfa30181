from .auth import User
from .catalog import Supplier, Product
from .sales import Sale, SaleItem, LockedLine, build_sale, compute_total_amount

__all__ = [
    'User',
    'Supplier', 'Product',
    'Sale', 'SaleItem', 'LockedLine', 'build_sale', 'compute_total_amount',
]
