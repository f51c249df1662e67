import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

import settlement.models  # noqa: F401 (registers every table on Base.metadata)
from settlement.core.config import LOG_LEVEL
from settlement.db.base_class import Base
from settlement.db.session import engine
from settlement.api.endpoints import commissions as commissions_api
from settlement.api.endpoints import payouts as payouts_api
from settlement.api.endpoints import regional_agreements as regional_agreements_api
from settlement.api.endpoints import customer_attributions as customer_attributions_api
from settlement.api.endpoints import regional_revenue as regional_revenue_api
from settlement.api.endpoints import regional_payouts as regional_payouts_api
from settlement.api.endpoints import regional_partners as regional_partners_api
from settlement.api.endpoints import audit as audit_api

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Settlement Engine API", version="0.1.0", lifespan=lifespan)

# Include API routers
app.include_router(commissions_api.router, prefix="/api/v1/commissions", tags=["Commissions"])
app.include_router(payouts_api.router, prefix="/api/v1/payouts", tags=["Payouts"])
app.include_router(regional_agreements_api.router, prefix="/api/v1/regional-agreements", tags=["Regional Agreements"])
app.include_router(customer_attributions_api.router, prefix="/api/v1/customer-attributions", tags=["Customer Attributions"])
app.include_router(regional_revenue_api.router, prefix="/api/v1/regional-revenue", tags=["Regional Revenue"])
app.include_router(regional_payouts_api.router, prefix="/api/v1/regional-payouts", tags=["Regional Payouts"])
app.include_router(regional_partners_api.router, prefix="/api/v1/regional-partners", tags=["Regional Partners"])
app.include_router(audit_api.router, prefix="/api/v1/audit", tags=["Audit"])


@app.get("/ping", tags=["Health Check"])
async def ping():
    return {"message": "pong"}
