from .lifecycle import (
    STATE_ACTIVE,
    STATE_SOFT_DELETED,
    STATE_PURGED,
    VALID_STATES,
    SoftDeleteMixin,
)
from .inventory import (
    Product,
    StockTransaction,
    SkuSequence,
    ImmutableRecordError,
    KIND_STOCK_IN,
    KIND_STOCK_OUT,
    KIND_ADJUSTMENT,
    VALID_KINDS,
)
from .alerts import LowStockAlert
from .auth import (
    User,
    ROLE_MASTER_ADMIN,
    ROLE_ADMIN,
    ROLE_EMPLOYEE,
    VALID_ROLES,
    ADMIN_ROLES,
    EXEMPT_ROLES,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
)
from .audit import AuditLog

__all__ = [
    'STATE_ACTIVE', 'STATE_SOFT_DELETED', 'STATE_PURGED', 'VALID_STATES', 'SoftDeleteMixin',
    'Product', 'StockTransaction', 'SkuSequence', 'ImmutableRecordError',
    'KIND_STOCK_IN', 'KIND_STOCK_OUT', 'KIND_ADJUSTMENT', 'VALID_KINDS',
    'LowStockAlert',
    'User', 'ROLE_MASTER_ADMIN', 'ROLE_ADMIN', 'ROLE_EMPLOYEE', 'VALID_ROLES',
    'ADMIN_ROLES', 'EXEMPT_ROLES', 'STATUS_ACTIVE', 'STATUS_INACTIVE',
    'AuditLog',
]
