# Service layer for Credit Scoring: persistence of scores and bureau checks, and orchestration
# of provider fetch -> scoring engine -> record store.
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple, Dict, Any, Union
import json
import logging
import re

from . import models, schemas
from .engine import calculate_score, score_change_reason, mask_bvn
from .exceptions import ValidationError, NotFoundException
from .normalizer import normalize_report
from .scoring_config import FACTOR_NAMES, FACTOR_LABELS, ScoringConfig, DEFAULT_SCORING_CONFIG
from kyc_portal.third_party_integration.services import get_credit_bureau_provider

logger = logging.getLogger(__name__)

BVN_PATTERN = re.compile(r"^\d{11}$")
ADMIN_FRAUD_RISK_THRESHOLD = 70 # Admin-supplied risk score above this flags the check


def validate_bvn(bvn: Optional[str]) -> str:
    if bvn is None or not isinstance(bvn, str):
        raise ValidationError("BVN is required")
    bvn = bvn.strip()
    if not BVN_PATTERN.match(bvn):
        raise ValidationError("Valid BVN is required (11 digits)")
    return bvn


# --- Credit score record store ---
def get_credit_score_record(db: Session, user_id: str) -> Optional[models.CreditScore]:
    return db.query(models.CreditScore).filter(models.CreditScore.user_id == user_id).first()

def get_previous_score(db: Session, user_id: str) -> Optional[int]:
    record = get_credit_score_record(db, user_id)
    return record.current_score if record else None

def _latest_history_entry(db: Session, user_id: str) -> Optional[models.CreditScoreHistory]:
    return db.query(models.CreditScoreHistory).filter(
        models.CreditScoreHistory.user_id == user_id
    ).order_by(models.CreditScoreHistory.created_at.desc(), models.CreditScoreHistory.id.desc()).first()

def _create_credit_score_record(
    db: Session, user_id: str, account_type: schemas.AccountTypeSchema, result: schemas.CreditScoreResult
) -> Tuple[models.CreditScore, bool]:
    """
    Inserts the user's first CreditScore row and returns it with created=True.
    A concurrent first scoring may have inserted it already; the unique user_id
    then rejects ours and the existing row is returned with created=False.
    """
    record = models.CreditScore(
        user_id=user_id, account_type=account_type,
        current_score=result.score, last_updated=result.last_updated,
    )
    db.add(record)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info("Credit score record for user %s was created concurrently; updating it", user_id)
        return get_credit_score_record(db, user_id), False
    return record, True

def save_credit_score(
    db: Session, user_id: str, account_type: Union[schemas.AccountTypeSchema, str],
    result: schemas.CreditScoreResult
) -> models.CreditScore:
    """
    Upserts the user's CreditScore and appends one history entry with its five
    factor rows. Everything is committed together.
    """
    account_type = schemas.AccountTypeSchema(account_type)
    record = get_credit_score_record(db, user_id)
    created = False
    if record is None:
        record, created = _create_credit_score_record(db, user_id, account_type, result)
    previous_score = None if created else record.current_score
    score_change = result.score - previous_score if previous_score is not None else 0

    record.account_type = account_type
    record.previous_score = previous_score
    record.current_score = result.score
    record.score_change = score_change
    record.last_updated = result.last_updated
    db.flush() # Need record.id for the history row

    history_entry = models.CreditScoreHistory(
        credit_score_id=record.id,
        user_id=user_id,
        score=result.score,
        score_change=score_change,
        change_reason=score_change_reason(score_change, previous_score),
        factors=result.factors.model_dump_json(by_alias=True),
        fraud_reasons=json.dumps(result.fraud_reasons),
        created_at=result.last_updated,
    )
    db.add(history_entry)
    db.flush()

    for name in FACTOR_NAMES:
        factor = getattr(result.factors, name)
        db.add(models.CreditFactor(
            user_id=user_id,
            history_id=history_entry.id,
            factor_type=name,
            factor_label=FACTOR_LABELS[name],
            factor_value=factor.score,
            factor_weight=factor.weight,
            impact=factor.impact,
            description=factor.description,
            created_at=result.last_updated,
        ))

    db.commit()
    db.refresh(record)
    logger.info("Stored credit score %s for user %s (%s)", result.score, user_id, history_entry.change_reason)
    return record

def get_credit_score(
    db: Session, user_id: str, config: ScoringConfig = DEFAULT_SCORING_CONFIG
) -> schemas.StoredCreditScore:
    """Last known score for the user, with factors rebuilt from the latest history entry."""
    record = get_credit_score_record(db, user_id)
    if not record:
        raise NotFoundException("No credit score data found")

    stored_factors: Dict[str, models.CreditFactor] = {}
    latest = _latest_history_entry(db, user_id)
    if latest:
        for row in db.query(models.CreditFactor).filter(models.CreditFactor.history_id == latest.id).all():
            stored_factors[row.factor_type] = row

    factors = {}
    for name in FACTOR_NAMES:
        row = stored_factors.get(name)
        if row is None: # Missing from storage reads as 0
            factors[name] = schemas.FactorScore(score=0, weight=config.weights[name], impact="Negative")
        else:
            factors[name] = schemas.FactorScore(
                score=row.factor_value, weight=row.factor_weight,
                impact=row.impact, description=row.description or "",
            )

    return schemas.StoredCreditScore(
        score=record.current_score,
        account_type=record.account_type,
        last_updated=record.last_updated,
        score_change=record.score_change or 0,
        previous_score=record.previous_score,
        factors=schemas.ScoreFactors(**factors),
    )

def get_score_history(db: Session, user_id: str, skip: int = 0, limit: int = 20) -> Tuple[List[models.CreditScoreHistory], int]:
    query = db.query(models.CreditScoreHistory).filter(models.CreditScoreHistory.user_id == user_id)
    total = query.count()
    entries = query.order_by(
        models.CreditScoreHistory.created_at.desc(), models.CreditScoreHistory.id.desc()
    ).offset(skip).limit(limit).all()
    return entries, total


# --- Orchestration ---
def calculate_and_store_credit_score(
    db: Session, user_id: str, raw_report: Any,
    account_type: Union[schemas.AccountTypeSchema, str] = schemas.AccountTypeSchema.INDIVIDUAL,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG
) -> schemas.CreditScoreResult:
    previous_score = get_previous_score(db, user_id)
    result = calculate_score(user_id, raw_report, account_type, previous_score=previous_score, config=config)
    save_credit_score(db, user_id, account_type, result)
    return result

def calculate_score_from_bvn(
    db: Session, user_id: str, bvn: Optional[str],
    account_type: Union[schemas.AccountTypeSchema, str] = schemas.AccountTypeSchema.INDIVIDUAL,
    provider=None, config: ScoringConfig = DEFAULT_SCORING_CONFIG
) -> schemas.CreditScoreResult:
    """
    Validates the BVN, fetches the bureau report and scores it for the user.
    Raises ValidationError before any provider call when the BVN is unusable.
    """
    bvn = validate_bvn(bvn)
    if provider is None:
        provider = get_credit_bureau_provider(db=db)

    logger.info("Fetching credit bureau report for user %s (BVN %s)", user_id, mask_bvn(bvn))
    raw_report = provider.fetch_credit_report(bvn)
    return calculate_and_store_credit_score(db, user_id, raw_report, account_type, config=config)


# --- Admin bureau checks ---
def preview_bureau_check(
    bvn: Optional[str], provider,
    account_type: Union[schemas.AccountTypeSchema, str] = schemas.AccountTypeSchema.INDIVIDUAL,
    checked_by: str = "ADMIN"
) -> Tuple[str, Dict[str, Any], schemas.CreditScoreResult]:
    """Fetches and scores a report without storing anything."""
    bvn = validate_bvn(bvn)
    raw_report = provider.fetch_credit_report(bvn)
    result = calculate_score(f"bureau-check:{checked_by}", raw_report, account_type)
    return bvn, raw_report, result

def record_bureau_check(
    db: Session, check_in: schemas.BureauCheckSaveRequest, checked_by: Optional[str] = None
) -> models.CreditBureauCheck:
    result = calculate_score(check_in.user_id or f"bureau-check:{checked_by}", check_in.response_data, check_in.account_type)
    # Either the rule set or the reviewing admin's risk score can flag a check
    is_fraud_suspected = result.is_fraud_suspected or check_in.risk_score > ADMIN_FRAUD_RISK_THRESHOLD

    db_check = models.CreditBureauCheck(
        bvn=check_in.bvn,
        user_id=check_in.user_id,
        account_type=check_in.account_type,
        name=check_in.name,
        credit_score=result.score,
        risk_score=check_in.risk_score,
        risk_level=result.risk_level,
        is_fraud_suspected=is_fraud_suspected,
        fraud_reasons=json.dumps(result.fraud_reasons),
        response_data_json=json.dumps(check_in.response_data, default=str),
        extracted_data_json=normalize_report(check_in.response_data).model_dump_json(),
        checked_by=checked_by,
    )
    db.add(db_check)
    db.commit()
    db.refresh(db_check)
    logger.info("Saved credit bureau check %s for BVN %s by %s (fraud suspected: %s)",
                db_check.id, mask_bvn(check_in.bvn), checked_by, is_fraud_suspected)
    return db_check

def get_bureau_checks(db: Session, bvn: Optional[str] = None, skip: int = 0, limit: int = 20) -> Tuple[List[models.CreditBureauCheck], int]:
    query = db.query(models.CreditBureauCheck)
    if bvn:
        query = query.filter(models.CreditBureauCheck.bvn == bvn)
    total = query.count()
    checks = query.order_by(
        models.CreditBureauCheck.created_at.desc(), models.CreditBureauCheck.id.desc()
    ).offset(skip).limit(limit).all()
    return checks, total
