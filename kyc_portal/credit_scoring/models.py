# Database models for Credit Scoring
from sqlalchemy import Column, Integer, String, Float, Boolean, Text, ForeignKey, Enum as SQLAlchemyEnum
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from kyc_portal.database import Base, UTCDateTime # Use the shared Base
from .schemas import AccountTypeSchema as AccountTypeEnum, RiskLevelSchema as RiskLevelEnum

def _utcnow():
    return datetime.now(timezone.utc)

class CreditScore(Base):
    """Latest score per portal user. Always mirrors the newest CreditScoreHistory row."""
    __tablename__ = "credit_scores"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(100), unique=True, nullable=False, index=True) # Opaque id from the session provider
    account_type = Column(SQLAlchemyEnum(AccountTypeEnum), default=AccountTypeEnum.INDIVIDUAL, nullable=False)

    current_score = Column(Integer, nullable=False)
    previous_score = Column(Integer, nullable=True)
    score_change = Column(Integer, default=0, nullable=False)

    last_updated = Column(UTCDateTime, default=_utcnow, nullable=False)
    created_at = Column(UTCDateTime, default=_utcnow)

    history = relationship("CreditScoreHistory", back_populates="credit_score", order_by="CreditScoreHistory.id")

class CreditScoreHistory(Base):
    # Append-only: one row per scoring run, never updated
    __tablename__ = "credit_score_history"

    id = Column(Integer, primary_key=True, index=True)
    credit_score_id = Column(Integer, ForeignKey("credit_scores.id"), nullable=False, index=True)
    user_id = Column(String(100), nullable=False, index=True)

    score = Column(Integer, nullable=False)
    score_change = Column(Integer, default=0, nullable=False)
    change_reason = Column(String(50), nullable=False)
    factors = Column("factors_json", Text, nullable=True) # JSON: {"paymentHistory": 95, ...}
    fraud_reasons = Column("fraud_reasons_json", Text, nullable=True) # JSON list, fixed rule order

    created_at = Column(UTCDateTime, default=_utcnow, index=True)

    credit_score = relationship("CreditScore", back_populates="history")
    factor_rows = relationship("CreditFactor", back_populates="history_entry")

class CreditFactor(Base):
    __tablename__ = "credit_factors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(100), nullable=False, index=True)
    history_id = Column(Integer, ForeignKey("credit_score_history.id"), nullable=False, index=True)

    factor_type = Column(String(50), nullable=False) # e.g. payment_history
    factor_label = Column(String(100), nullable=True) # e.g. Payment History
    factor_value = Column(Integer, nullable=False) # 0-100
    factor_weight = Column(Float, nullable=False)
    impact = Column(String(20), nullable=False) # Positive, Neutral, Negative
    description = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, default=_utcnow)

    history_entry = relationship("CreditScoreHistory", back_populates="factor_rows")

class CreditBureauCheck(Base):
    """Ad-hoc bureau check saved by an administrator."""
    __tablename__ = "credit_bureau_checks"

    id = Column(Integer, primary_key=True, index=True)
    bvn = Column(String(11), nullable=False, index=True)
    user_id = Column(String(100), nullable=True, index=True)
    account_type = Column(SQLAlchemyEnum(AccountTypeEnum), default=AccountTypeEnum.INDIVIDUAL, nullable=False)
    name = Column(String(255), nullable=True)

    credit_score = Column(Integer, nullable=False)
    risk_score = Column(Integer, nullable=False) # As supplied by the reviewing admin
    risk_level = Column(SQLAlchemyEnum(RiskLevelEnum), nullable=False)
    is_fraud_suspected = Column(Boolean, default=False, nullable=False)
    fraud_reasons = Column("fraud_reasons_json", Text, nullable=True)

    response_data_json = Column(Text, nullable=True) # Raw provider payload
    extracted_data_json = Column(Text, nullable=True) # Normalized report used for scoring

    checked_by = Column(String(100), nullable=True) # Admin id or email
    created_at = Column(UTCDateTime, default=_utcnow, index=True)
