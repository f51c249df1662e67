from fastapi import HTTPException

from settlement.core.exceptions import (
    SettlementError,
    NotFound,
    DuplicateOrder,
    NoEligibleCommissions,
    BelowMinimum,
    InvalidStatus,
    PayoutConflict,
    NoActiveAgreement,
    RegionConflict,
    AlreadyAttributed,
    AlreadySigned,
    TransferError,
)

STATUS_CODES = {
    NotFound: 404,
    NoActiveAgreement: 404,
    DuplicateOrder: 409,
    PayoutConflict: 409,
    RegionConflict: 409,
    AlreadyAttributed: 409,
    NoEligibleCommissions: 400,
    BelowMinimum: 400,
    InvalidStatus: 400,
    AlreadySigned: 400,
    TransferError: 502,
}


def to_http_exception(exc: SettlementError) -> HTTPException:
    status_code = next((code for cls, code in STATUS_CODES.items() if isinstance(exc, cls)), 400)
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": exc.message, "details": exc.details},
    )
