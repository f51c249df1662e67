# Import every model so Base.metadata and the relationship registry are complete
from .agreement import RegionalAgreement, AgreementStatus, AppliesTo
from .attribution import CustomerAttribution, AttributionSource
from .commission import Commission, CommissionType, CommissionStatus, AFFILIATE_TYPES
from .payout import Payout, PayoutStatus
from .revenue import (
    RevenueRecord,
    RegionalPayout,
    RevenueType,
    RevenuePayoutStatus,
    RegionalPayoutStatus,
)
from .audit import AuditLog
