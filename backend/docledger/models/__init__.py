from .tenancy import Tenant
from .parties import Client, Supplier
from .inventory import StockItem, InventoryMovement, MovementImmutableError
from .documents import DocumentCounter, GoodsReceivedVoucher, GRVLine, SupplierBill, SupplierBillLine
from .sales import SalesQuote, SalesQuoteLine, SalesInvoice, SalesInvoiceLine
from .payments import CustomerPayment, CustomerPaymentAllocation, SupplierPayment, SupplierPaymentAllocation

__all__ = [
    'Tenant', 'Client', 'Supplier',
    'StockItem', 'InventoryMovement', 'MovementImmutableError',
    'DocumentCounter', 'GoodsReceivedVoucher', 'GRVLine', 'SupplierBill', 'SupplierBillLine',
    'SalesQuote', 'SalesQuoteLine', 'SalesInvoice', 'SalesInvoiceLine',
    'CustomerPayment', 'CustomerPaymentAllocation', 'SupplierPayment', 'SupplierPaymentAllocation',
]
