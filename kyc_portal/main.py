from fastapi import FastAPI, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from datetime import datetime, timezone
import logging

from .config import settings
from .database import get_db, create_all_tables # Import your DB setup

# Import API routers
from kyc_portal.credit_scoring import api as credit_scoring_api

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="KYC Portal Credit Scoring",
    description="Credit-risk scoring for KYC onboarding: bureau lookups by BVN, CIBIL-style scores and fraud indicators.",
    version=settings.PROJECT_VERSION,
)

@app.on_event("startup")
def startup_event():
    # Migrations are not managed here; tables are created on start for local and test setups
    if settings.AUTO_CREATE_TABLES:
        create_all_tables()
    if settings.USE_MOCK_CREDIT_DATA:
        logger.warning("Starting with mocked credit bureau data")

app.include_router(credit_scoring_api.router, prefix="/api/v1", tags=["Credit Score"])
app.include_router(credit_scoring_api.admin_router, prefix="/api/v1", tags=["Credit Bureau (Admin)"])


@app.get("/health", tags=["System"])
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint. Verifies API is running and can connect to the database.
    """
    try:
        db.execute(text("SELECT 1")).fetchone()
        db_status = "connected"
    except SQLAlchemyError as e:
        logger.error("Database connection error: %s", e)
        db_status = "disconnected"

    return {"status": "ok", "database": db_status, "timestamp": datetime.now(timezone.utc).isoformat()}

# To run this application (after installing dependencies):
# uvicorn kyc_portal.main:app --reload
# or: python -m kyc_portal.main

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("kyc_portal.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG_MODE)
