from .catalog import Supplier, Customer, Product
from .cycle import CutoffWindow, OrderCycle, LastCounter, SINGLETON_ID
from .orders import SaleOrder, SaleOrderLine, PurchaseOrder, PurchaseOrderLine
from .ledgers import (
    PurchaseLedger,
    PurchaseLedgerLine,
    SupplierAccount,
    SupplierPayment,
    NotificationLog,
    LedgerImmutableError,
)
from .orders import (
    STATUS_PLACED,
    STATUS_CONFIRMED,
    STATUS_PENDED,
    STATUS_REJECTED,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    ORDER_STATUSES,
    ACTIVE_SALE_STATUSES,
    CONFIRMATION_REGULAR,
    CONFIRMATION_ADDITIONAL,
    CUTOFF_WITHIN,
    CUTOFF_AFTER,
    ORDER_TYPE_CUSTOMER,
    ORDER_TYPE_STAFF_PROXY,
)

__all__ = [
    'Supplier', 'Customer', 'Product',
    'CutoffWindow', 'OrderCycle', 'LastCounter', 'SINGLETON_ID',
    'SaleOrder', 'SaleOrderLine', 'PurchaseOrder', 'PurchaseOrderLine',
    'PurchaseLedger', 'PurchaseLedgerLine', 'SupplierAccount', 'SupplierPayment',
    'NotificationLog', 'LedgerImmutableError',
    'STATUS_PLACED', 'STATUS_CONFIRMED', 'STATUS_PENDED', 'STATUS_REJECTED',
    'STATUS_COMPLETED', 'STATUS_CANCELLED', 'ORDER_STATUSES', 'ACTIVE_SALE_STATUSES',
    'CONFIRMATION_REGULAR', 'CONFIRMATION_ADDITIONAL', 'CUTOFF_WITHIN', 'CUTOFF_AFTER',
    'ORDER_TYPE_CUSTOMER', 'ORDER_TYPE_STAFF_PROXY',
]
