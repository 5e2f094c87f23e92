from .inventory import Product, BundleItem, Wholesaler, InventoryEvent, PurchaseOrder, PurchaseOrderLine
from .customers import Customer, LoyaltyTier
from .promotions import Promotion, GiftCard
from .sales import Transaction, TransactionLine, GiftCardPayment, ReturnEvent, ReturnEventItem
from .reports import DailyReport, DailyReportTransaction, MonthlyStatement, MonthlyStatementTransaction
from .sync import OfflineQueueEntry, SyncState
from .communications import Notification

__all__ = [
    'Product', 'BundleItem', 'Wholesaler', 'InventoryEvent',
    'PurchaseOrder', 'PurchaseOrderLine',
    'Customer', 'LoyaltyTier',
    'Promotion', 'GiftCard',
    'Transaction', 'TransactionLine', 'GiftCardPayment', 'ReturnEvent', 'ReturnEventItem',
    'DailyReport', 'DailyReportTransaction', 'MonthlyStatement', 'MonthlyStatementTransaction',
    'OfflineQueueEntry', 'SyncState',
    'Notification',
]
