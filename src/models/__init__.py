from src.models.auth import AuthResponse, Credentials, LoginRequest, StoredUser, User
from src.models.compliance import (
    CategoryCreate,
    ComplianceCategory,
    ComplianceItem,
    ComplianceItemWithCategory,
    ComplianceMetrics,
    ItemCreate,
    ItemPatch,
    ItemUpdateRequest,
)
from src.models.enums import (
    ComplianceStatus,
    DeliveryState,
    NotificationKind,
    Priority,
)
from src.models.notification import (
    NO_NOTIFICATION,
    DeliveryAttempt,
    ItemNotificationStatus,
    NotificationMessage,
    NotificationVerdict,
    SinkResult,
)

__all__ = [
    "AuthResponse",
    "CategoryCreate",
    "ComplianceCategory",
    "ComplianceItem",
    "ComplianceItemWithCategory",
    "ComplianceMetrics",
    "ComplianceStatus",
    "Credentials",
    "DeliveryAttempt",
    "DeliveryState",
    "ItemCreate",
    "ItemNotificationStatus",
    "ItemPatch",
    "ItemUpdateRequest",
    "LoginRequest",
    "NO_NOTIFICATION",
    "NotificationKind",
    "NotificationMessage",
    "NotificationVerdict",
    "Priority",
    "SinkResult",
    "StoredUser",
    "User",
]
