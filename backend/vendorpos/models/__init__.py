from .tenancy import Vendor
from .inventory import Product, Service, StockMovement
from .promotions import Coupon, CouponUsage
from .customers import Customer, Supplier
from .sales import Bill, BillLine, BillCharge, Payment, Order, OrderItem
from .ledger import LedgerTransaction

__all__ = [
    'Vendor',
    'Product', 'Service', 'StockMovement',
    'Coupon', 'CouponUsage',
    'Customer', 'Supplier',
    'Bill', 'BillLine', 'BillCharge', 'Payment', 'Order', 'OrderItem',
    'LedgerTransaction',
]
