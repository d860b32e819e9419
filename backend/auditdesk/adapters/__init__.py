from auditdesk.adapters.stores import (
    SqlCompanyStore, SqlAuditStore, SqlUserStore, SqlTierChangeLogStore,
)
from auditdesk.adapters.notifications import StoreNotificationGateway

__all__ = [
    "SqlCompanyStore",
    "SqlAuditStore",
    "SqlUserStore",
    "SqlTierChangeLogStore",
    "StoreNotificationGateway",
]
