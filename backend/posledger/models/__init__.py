from .users import User
from .inventory import Category, Product, Stock, StockMovement, StockAdjustment
from .counts import InventorySession, InventoryItem
from .sales import Client, Transaction, TransactionItem, CreditRecord, CreditPayment
from .purchasing import Supplier, PurchaseOrder, PurchaseOrderItem

__all__ = [
    'User',
    'Category', 'Product', 'Stock', 'StockMovement', 'StockAdjustment',
    'InventorySession', 'InventoryItem',
    'Client', 'Transaction', 'TransactionItem', 'CreditRecord', 'CreditPayment',
    'Supplier', 'PurchaseOrder', 'PurchaseOrderItem',
]
