from .catalog import Project, Category, Product, ProductVariant
from .ledger import Transaction, TRANSACTION_TYPES, PAYMENT_METHODS
from .auth import User, ProjectAssignment, SessionToken, ROLES

__all__ = [
    'Project', 'Category', 'Product', 'ProductVariant',
    'Transaction', 'TRANSACTION_TYPES', 'PAYMENT_METHODS',
    'User', 'ProjectAssignment', 'SessionToken', 'ROLES',
]
