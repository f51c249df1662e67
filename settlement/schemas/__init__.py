from .order import OrderInput, OrderRequest
from .commission import (
    CommissionLineItem,
    CommissionCalculation,
    CommissionBase,
    CommissionCreate,
    Commission as CommissionSchema,  # Alias to avoid clash with the Commission model
    RefundRequest,
    ApproveEligibleRequest,
    CountResult,
    CommissionStats,
    PendingPayoutSummary,
    ProcessedOrder,
    RecipientBalance,
)
from .agreement import (
    RegionalAgreementCreate,
    RegionalAgreementUpdate,
    RegionalAgreement as RegionalAgreementSchema,
    SignContract,
)
from .attribution import (
    CustomerAttributionCreate,
    CustomerAttribution as CustomerAttributionSchema,
    AttributionStatus,
    AttributionCheck,
    AttributionCheckResult,
    AttributionStats,
    RecordPurchase,
    PurchaseRecorded,
)
from .payout import (
    PayoutCreate,
    PayoutComplete,
    PayoutFail,
    Payout as PayoutSchema,
    PayoutWithCommissions,
    PayoutStats,
)
from .revenue import (
    MembershipRevenueInput,
    TransactionRevenueInput,
    TransactionFee,
    RevenueRecord as RevenueRecordSchema,
    MonthlyPayoutRequest,
    MonthlyPayoutResult,
    RegionalPayout as RegionalPayoutSchema,
    RegionalPayoutWithRecords,
    RegionalPayoutApprove,
    RegionalPayoutMarkPaid,
    PartnerDashboard,
)
from .audit import (
    AuditLog as AuditLogSchema,
    AuditLogPage,
    AuditVocabularyEntry,
)
