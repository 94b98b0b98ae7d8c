"""
Credit scoring engine.

Pure functions mapping a raw bureau report to an explainable CreditScoreResult:
normalize the report, score the five sub-factors, aggregate them onto the public
300-850 scale and derive rule-based fraud reasons. Nothing here touches the
database, the network or the clock (except for stamping ``last_updated``).
"""
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from .exceptions import UpstreamUnavailable
from .factors import FACTOR_FUNCTIONS, loan_count, utilization_ratio
from .normalizer import normalize_report
from .schemas import (
    AccountTypeSchema, CreditScoreResult, FactorScore, NormalizedReport,
    RiskLevelSchema, ScoreFactors,
)
from .scoring_config import FACTOR_NAMES, ScoringConfig, DEFAULT_SCORING_CONFIG

logger = logging.getLogger(__name__)

FRAUD_MULTIPLE_ACTIVE_LOANS = "Multiple active loans (high risk)"
FRAUD_DELINQUENT_FACILITIES = "Has delinquent facilities"
FRAUD_OVERDUE_ACCOUNTS = "Has overdue accounts"
FRAUD_RECENT_ENQUIRIES = "Multiple recent credit enquiries"
FRAUD_NON_PERFORMING_TEMPLATE = "{count} non-performing loans detected"


def mask_bvn(bvn: Optional[str]) -> str:
    if not bvn or len(bvn) < 7:
        return "***"
    return f"{bvn[:3]}****{bvn[-3:]}"

# --- Factors and aggregation ---
def compute_factor_values(report: NormalizedReport, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> dict:
    return {name: FACTOR_FUNCTIONS[name](report, config) for name in FACTOR_NAMES}

def factor_impact(value: int, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> str:
    if value >= config.positive_impact_threshold:
        return "Positive"
    if value >= config.neutral_impact_threshold:
        return "Neutral"
    return "Negative"

def _factor_descriptions(report: NormalizedReport) -> dict:
    return {
        "payment_history": (
            f"Delinquent facilities: {report.delinquent_facilities}, "
            f"overdue accounts: {report.overdue_accounts}, "
            f"non-performing loans: {report.non_performing_loans}"
        ),
        "credit_utilization": f"Utilization rate: {utilization_ratio(report) * 100:.1f}%",
        "credit_history_length": f"Loans on record: {loan_count(report)}",
        "credit_mix": (
            "Account types: "
            f"{len({loan.loan_type.casefold() for loan in report.loan_history if loan.loan_type})}"
        ),
        "new_credit": f"Recent enquiries: {report.enquiries_last_3_months}",
    }

def compute_factors(report: NormalizedReport, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> ScoreFactors:
    values = compute_factor_values(report, config)
    descriptions = _factor_descriptions(report)
    return ScoreFactors(**{
        name: FactorScore(
            score=values[name],
            weight=config.weights[name],
            impact=factor_impact(values[name], config),
            description=descriptions[name],
        )
        for name in FACTOR_NAMES
    })

def aggregate_score(factor_values: dict, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> int:
    """Weighted sum of factor scores, mapped linearly onto [min_score, max_score]."""
    weighted = sum(factor_values[name] * config.weights[name] for name in FACTOR_NAMES)
    span = config.max_score - config.min_score
    score = round(config.min_score + weighted * span / config.factor_max)
    return max(config.min_score, min(config.max_score, score))

def neutral_baseline_score(config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> int:
    """Score of a report that carries no credit history at all."""
    return aggregate_score(compute_factor_values(NormalizedReport(), config), config)

# --- Fraud reasons ---
def derive_fraud_reasons(report: NormalizedReport, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> List[str]:
    reasons = []
    if report.total_active_loans > config.fraud_max_active_loans:
        reasons.append(FRAUD_MULTIPLE_ACTIVE_LOANS)
    if report.delinquent_facilities > 0:
        reasons.append(FRAUD_DELINQUENT_FACILITIES)
    if report.overdue_accounts > 0:
        reasons.append(FRAUD_OVERDUE_ACCOUNTS)
    if report.enquiries_last_3_months > config.fraud_max_recent_enquiries:
        reasons.append(FRAUD_RECENT_ENQUIRIES)
    if report.non_performing_loans > 0:
        reasons.append(FRAUD_NON_PERFORMING_TEMPLATE.format(count=report.non_performing_loans))
    return reasons

# --- Risk bands ---
def determine_risk_level(score: int, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> RiskLevelSchema:
    for threshold, level in config.risk_levels:
        if score >= threshold:
            return RiskLevelSchema(level)
    return RiskLevelSchema(config.lowest_risk_level)

def calculate_risk_score(score: int, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> int:
    for threshold, risk in config.risk_score_buckets:
        if score >= threshold:
            return risk
    return config.highest_risk_score

# --- Explanations ---
def generate_recommendations(factors: ScoreFactors, score: int, account_type: AccountTypeSchema) -> List[str]:
    recommendations = []
    if factors.payment_history.score < 80:
        recommendations.append("Make all payments on time to improve your payment history score")
    if factors.credit_utilization.score < 70:
        recommendations.append("Reduce your credit utilization by paying down outstanding balances")
    if factors.credit_history_length.score < 60:
        recommendations.append("Maintain existing credit accounts to build longer credit history")
    if factors.credit_mix.score < 60:
        recommendations.append("Consider diversifying your credit mix with different types of accounts")
    if factors.new_credit.score < 80:
        recommendations.append("Limit new credit applications to avoid multiple hard inquiries")
    if account_type != AccountTypeSchema.INDIVIDUAL:
        recommendations.append("Maintain good business credit practices for better corporate credit standing")
    if score < 650:
        recommendations.append("Work on improving your overall credit score to qualify for better rates")
    return recommendations

def generate_alerts(report: NormalizedReport) -> List[str]:
    alerts = []
    if report.overdue_accounts > 0:
        alerts.append(f"You have {report.overdue_accounts} overdue account(s)")
    utilization = utilization_ratio(report) * 100
    if utilization > 70:
        alerts.append(f"High credit utilization detected ({utilization:.1f}%)")
    if report.enquiries_last_3_months >= 3:
        alerts.append(
            f"Multiple credit enquiries detected in the last 3 months ({report.enquiries_last_3_months})"
        )
    return alerts

def calculate_confidence(report: NormalizedReport) -> int:
    """How much of the report the score actually rests on, 0-100."""
    confidence = 100
    if not report.loan_history:
        confidence -= 30
    if report.enquiry_records == 0:
        confidence -= 20
    if report.total_borrowed == 0:
        confidence -= 25
    return max(0, confidence)

def score_change_reason(score_change: int, previous_score: Optional[int]) -> str:
    if previous_score is None:
        return "Initial score"
    if score_change > 0:
        return "Score improved"
    if score_change < 0:
        return "Score decreased"
    return "No change"


def calculate_score(
    user_id: str,
    raw_report: Any,
    account_type: Union[AccountTypeSchema, str] = AccountTypeSchema.INDIVIDUAL,
    previous_score: Optional[int] = None,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
    as_of: Optional[datetime] = None,
) -> CreditScoreResult:
    """
    Score a raw bureau report.

    Deterministic for a given report, account type, previous score and config;
    only ``last_updated`` varies between calls unless ``as_of`` is given.
    Raises UpstreamUnavailable when the provider handed back no report at all.
    """
    if raw_report is None or not isinstance(raw_report, dict):
        raise UpstreamUnavailable("Credit bureau returned no usable report")
    account_type = AccountTypeSchema(account_type)

    report = normalize_report(raw_report)
    factors = compute_factors(report, config)
    factor_values = {name: getattr(factors, name).score for name in FACTOR_NAMES}
    score = aggregate_score(factor_values, config)
    score_change = score - previous_score if previous_score is not None else 0

    fraud_reasons = derive_fraud_reasons(report, config)
    if fraud_reasons:
        logger.warning("Fraud indicators for user %s (BVN %s): %s",
                       user_id, mask_bvn(report.bvn), "; ".join(fraud_reasons))
    logger.info("Credit score for user %s (BVN %s): %s (change %+d)",
                user_id, mask_bvn(report.bvn), score, score_change)

    return CreditScoreResult(
        score=score,
        score_change=score_change,
        account_type=account_type,
        factors=factors,
        fraud_reasons=fraud_reasons,
        is_fraud_suspected=bool(fraud_reasons),
        risk_level=determine_risk_level(score, config),
        risk_score=calculate_risk_score(score, config),
        recommendations=generate_recommendations(factors, score, account_type),
        alerts=generate_alerts(report),
        confidence=calculate_confidence(report),
        last_updated=as_of or datetime.now(timezone.utc),
    )
