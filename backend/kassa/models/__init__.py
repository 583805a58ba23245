from .catalog import Product
from .inventory import StockMovement
from .customers import Customer, Debt, DebtTransaction
from .sales import Sale, SaleItem, Payment
from .returns import SaleReturn, SaleReturnItem
from .printing import PrintJob

__all__ = [
    'Product', 'StockMovement',
    'Customer', 'Debt', 'DebtTransaction',
    'Sale', 'SaleItem', 'Payment',
    'SaleReturn', 'SaleReturnItem',
    'PrintJob',
]
