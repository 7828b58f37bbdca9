"""Models package - exports all SQLAlchemy models."""
from backoffice.models.category import Category
from backoffice.models.product import Product
from backoffice.models.supplier import Supplier
from backoffice.models.purchase import Purchase
from backoffice.models.purchase_detail import PurchaseDetail
from backoffice.models.setting import Setting
from backoffice.models.audit_log import AuditLog, AuditAction

__all__ = [
    'Category', 'Product', 'Supplier',
    'Purchase', 'PurchaseDetail',
    'Setting',
    'AuditLog', 'AuditAction',
]
