# Pydantic schemas for Credit Scoring: engine value types and API request/response bodies
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime, date
import enum
import json


class AccountTypeSchema(str, enum.Enum):
    INDIVIDUAL = "INDIVIDUAL"
    PARTNERSHIP = "PARTNERSHIP"
    ENTERPRISE = "ENTERPRISE"
    LLC = "LLC"

class RiskLevelSchema(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class CamelModel(BaseModel):
    # Field names stay snake_case in Python; JSON uses the camelCase the portal front-end reads
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Normalized bureau report (engine input) ---
class LoanRecord(BaseModel):
    is_active: bool = False
    is_performing: bool = True
    loan_amount: float = 0.0
    outstanding_balance: float = 0.0
    overdue_amount: float = 0.0
    institution: str = ""
    loan_type: str = ""
    reported_date: Optional[date] = None

class NormalizedReport(BaseModel):
    """Flat, fully-defaulted view of a bureau report. Every field is always present."""
    bvn: str = ""

    total_active_loans: int = 0
    total_closed_loans: int = 0
    total_loans: int = 0
    delinquent_facilities: int = 0
    overdue_accounts: int = 0
    performing_loans: int = 0
    non_performing_loans: int = 0
    total_institutions: int = 0

    total_borrowed: float = 0.0
    total_outstanding: float = 0.0
    total_overdue: float = 0.0

    loan_history: List[LoanRecord] = []

    enquiries_last_3_months: int = 0
    enquiries_last_12_months: int = 0
    enquiries_last_36_months: int = 0
    enquiry_records: int = 0 # Individual enquiry entries listed by the bureau


# --- Engine output ---
class FactorScore(CamelModel):
    score: int = Field(0, ge=0, le=100)
    weight: float = 0.0
    impact: str = "Negative" # Positive, Neutral, Negative
    description: str = ""

class ScoreFactors(CamelModel):
    payment_history: FactorScore = FactorScore()
    credit_utilization: FactorScore = FactorScore()
    credit_history_length: FactorScore = FactorScore()
    credit_mix: FactorScore = FactorScore()
    new_credit: FactorScore = FactorScore()

class CreditScoreResult(CamelModel):
    score: int
    score_change: int = 0
    account_type: AccountTypeSchema = AccountTypeSchema.INDIVIDUAL
    factors: ScoreFactors
    fraud_reasons: List[str] = []
    is_fraud_suspected: bool = False
    risk_level: RiskLevelSchema
    risk_score: int = Field(..., ge=0, le=100)
    recommendations: List[str] = []
    alerts: List[str] = []
    confidence: int = Field(..., ge=0, le=100)
    last_updated: datetime


# --- User endpoints ---
class CreditScoreCalculateRequest(CamelModel):
    bvn: Optional[str] = Field(None, description="Bank Verification Number used as the bureau lookup key")
    account_type: AccountTypeSchema = AccountTypeSchema.INDIVIDUAL

class StoredCreditScore(CamelModel):
    """Last known score for a user, rebuilt from the record store."""
    score: int
    account_type: AccountTypeSchema
    last_updated: datetime
    score_change: int = 0
    previous_score: Optional[int] = None
    factors: ScoreFactors

class CreditScoreHistoryEntryResponse(CamelModel):
    id: int
    score: int
    score_change: int
    change_reason: str
    factors: Dict[str, Any] = {}
    fraud_reasons: List[str] = []
    created_at: datetime

    @field_validator('factors', 'fraud_reasons', mode='before')
    @classmethod
    def parse_json_string_if_needed(cls, value):
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                raise ValueError("Invalid JSON string for JSON field")
        return value

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

class PaginatedCreditScoreHistoryResponse(CamelModel):
    items: List[CreditScoreHistoryEntryResponse]
    total: int
    page: int
    size: int


# --- Admin bureau check endpoints ---
class BureauCheckPreviewResponse(CamelModel):
    bvn: str
    report: Dict[str, Any] # Raw provider payload, returned as received
    result: CreditScoreResult

class BureauCheckSaveRequest(CamelModel):
    bvn: str = Field(..., min_length=11, max_length=11, pattern=r"^\d{11}$")
    name: Optional[str] = None
    user_id: Optional[str] = Field(None, description="Portal user the check belongs to, if known")
    account_type: AccountTypeSchema = AccountTypeSchema.INDIVIDUAL
    risk_score: int = Field(..., ge=0, le=100, description="Risk score shown to the reviewing admin")
    response_data: Dict[str, Any]

class BureauCheckResponse(CamelModel):
    id: int
    bvn: str
    user_id: Optional[str] = None
    account_type: AccountTypeSchema
    name: Optional[str] = None
    credit_score: int
    risk_score: int
    risk_level: RiskLevelSchema
    is_fraud_suspected: bool
    fraud_reasons: List[str] = []
    checked_by: Optional[str] = None
    created_at: datetime

    @field_validator('fraud_reasons', mode='before')
    @classmethod
    def parse_reasons_json(cls, value):
        if isinstance(value, str):
            try: return json.loads(value)
            except json.JSONDecodeError: return []
        return value or []

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True, use_enum_values=True)

class PaginatedBureauCheckResponse(CamelModel):
    items: List[BureauCheckResponse]
    total: int
    page: int
    size: int
