# API Endpoints for Credit Scoring using FastAPI
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from . import services, schemas
from .exceptions import ValidationError, UpstreamUnavailable, CreditBureauError, NotFoundException
from kyc_portal.database import get_db
from kyc_portal.session import get_current_user_id, get_admin_user, AdminUser
from kyc_portal.third_party_integration.services import get_credit_bureau_provider

logger = logging.getLogger(__name__)

def get_provider(db: Session = Depends(get_db)):
    # Separate dependency so tests can swap in a fake provider
    return get_credit_bureau_provider(db=db)

def _bureau_error_detail(e: CreditBureauError) -> dict:
    return {"error": e.message, "suggestion": e.suggestion, "details": e.details}


router = APIRouter(
    prefix="/user",
    tags=["Credit Score"],
    responses={401: {"description": "Unauthorized"}},
)

@router.get("/cibil-score", response_model=schemas.StoredCreditScore)
def read_credit_score(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Last computed credit score for the signed-in user, with its factor breakdown.
    """
    try:
        return services.get_credit_score(db, user_id)
    except NotFoundException as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

@router.post("/cibil-score", response_model=schemas.CreditScoreResult)
def calculate_credit_score(
    request_in: schemas.CreditScoreCalculateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    provider=Depends(get_provider)
):
    """
    Fetch the bureau report for the given BVN, score it and store the result.
    """
    try:
        return services.calculate_score_from_bvn(
            db, user_id, request_in.bvn, request_in.account_type, provider=provider
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except CreditBureauError as e:
        raise HTTPException(status_code=e.status_code, detail=_bureau_error_detail(e))
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    except Exception as e:
        logger.error("Credit score calculation failed for user %s: %s", user_id, e, exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to calculate credit score")

@router.get("/cibil-score/history", response_model=schemas.PaginatedCreditScoreHistoryResponse)
def read_credit_score_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    entries, total = services.get_score_history(db, user_id, skip=skip, limit=limit)
    return schemas.PaginatedCreditScoreHistoryResponse(
        items=[schemas.CreditScoreHistoryEntryResponse.model_validate(entry) for entry in entries],
        total=total,
        page=(skip // limit) + 1,
        size=len(entries),
    )


# --- Admin credit bureau checks ---
admin_router = APIRouter(
    prefix="/admin/credit-bureau",
    tags=["Credit Bureau (Admin)"],
    responses={401: {"description": "Unauthorized: Admin access required"}},
)

@admin_router.get("/check", response_model=schemas.BureauCheckPreviewResponse)
def check_credit_bureau(
    bvn: Optional[str] = Query(None, description="11-digit BVN to look up"),
    account_type: schemas.AccountTypeSchema = Query(schemas.AccountTypeSchema.INDIVIDUAL, alias="accountType"),
    admin: AdminUser = Depends(get_admin_user),
    provider=Depends(get_provider)
):
    """
    Run a bureau lookup and show the scoring preview. Nothing is stored.
    """
    try:
        bvn, report, result = services.preview_bureau_check(bvn, provider, account_type, checked_by=admin.id)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except CreditBureauError as e:
        raise HTTPException(status_code=e.status_code, detail=_bureau_error_detail(e))
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    except Exception as e:
        logger.error("Credit bureau check failed for admin %s: %s", admin.id, e, exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch credit bureau data")
    return schemas.BureauCheckPreviewResponse(bvn=bvn, report=report, result=result)

@admin_router.post("/save", response_model=schemas.BureauCheckResponse, status_code=status.HTTP_201_CREATED)
def save_credit_bureau_check(
    check_in: schemas.BureauCheckSaveRequest,
    admin: AdminUser = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    db_check = services.record_bureau_check(db, check_in, checked_by=admin.email or admin.id)
    return schemas.BureauCheckResponse.model_validate(db_check)

@admin_router.get("/history", response_model=schemas.PaginatedBureauCheckResponse)
def read_credit_bureau_checks(
    bvn: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    admin: AdminUser = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    checks, total = services.get_bureau_checks(db, bvn=bvn, skip=skip, limit=limit)
    return schemas.PaginatedBureauCheckResponse(
        items=[schemas.BureauCheckResponse.model_validate(check) for check in checks],
        total=total,
        page=(skip // limit) + 1,
        size=len(checks),
    )
