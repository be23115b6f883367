from backoffice.models.admin import AdminAction, AdminRole, AdminUser  # noqa: F401
from backoffice.models.activity import LockboxAuditEntry, SentEmail  # noqa: F401
from backoffice.models.customer import (  # noqa: F401
    AccountStatus,
    BillingSnapshot,
    Customer,
    CustomerUser,
    Lockbox,
    PlanTier,
    SubscriptionStatus,
)
from backoffice.models.promo import (  # noqa: F401
    PromoCode,
    PromoCodeRedemption,
    PromoCodeType,
    RedemptionStatus,
    RedemptionTarget,
)
