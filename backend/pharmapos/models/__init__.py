from .outlets import Outlet
from .catalog import Product, PackVariant
from .inventory import InventoryRecord, InventoryAdjustment
from .sales import Sale, SaleLine, SalePayment
from .audit import AuditEvent

__all__ = [
    'Outlet',
    'Product', 'PackVariant',
    'InventoryRecord', 'InventoryAdjustment',
    'Sale', 'SaleLine', 'SalePayment',
    'AuditEvent',
]
