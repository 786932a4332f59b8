from .tenancy import Business, BusinessSettings, TicketSequence
from .auth import User, SessionToken, ROLES
from .inventory import Product, StockLogEntry, Category, Supplier, STOCK_LOG_TYPES
from .sales import Sale, SaleItem, SALE_PENDING, SALE_COMPLETED, PAYMENT_METHODS
from .people import Customer, Employee
from .finance import Expense, ExpenseCategory
from .notifications import Notification, NOTIFICATION_TYPES

__all__ = [
    'Business', 'BusinessSettings', 'TicketSequence',
    'User', 'SessionToken', 'ROLES',
    'Product', 'StockLogEntry', 'Category', 'Supplier', 'STOCK_LOG_TYPES',
    'Sale', 'SaleItem', 'SALE_PENDING', 'SALE_COMPLETED', 'PAYMENT_METHODS',
    'Customer', 'Employee',
    'Expense', 'ExpenseCategory',
    'Notification', 'NOTIFICATION_TYPES',
]
