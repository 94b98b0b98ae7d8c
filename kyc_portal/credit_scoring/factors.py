# Sub-factor scoring functions. Each maps a NormalizedReport to an int in [0, 100]
# and reads only the report and the scoring config; no factor depends on another.
from .schemas import NormalizedReport
from .scoring_config import ScoringConfig, DEFAULT_SCORING_CONFIG


def clamp_factor(value: float, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> int:
    return int(max(0, min(config.factor_max, round(value))))

def payment_history_score(report: NormalizedReport, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> int:
    """Starts from the maximum and loses points for delinquent, overdue and non-performing facilities."""
    non_performing_penalty = min(
        report.non_performing_loans * config.non_performing_loan_penalty,
        config.non_performing_penalty_cap,
    )
    value = (
        config.factor_max
        - report.delinquent_facilities * config.delinquent_facility_penalty
        - report.overdue_accounts * config.overdue_account_penalty
        - non_performing_penalty
    )
    return clamp_factor(value, config)

def utilization_ratio(report: NormalizedReport) -> float:
    if report.total_borrowed <= 0:
        return 0.0
    return report.total_outstanding / report.total_borrowed

def credit_utilization_score(report: NormalizedReport, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> int:
    """Staircase over outstanding/borrowed; nothing borrowed scores the maximum."""
    ratio = utilization_ratio(report)
    for upper_bound, band_score in config.utilization_bands:
        if ratio <= upper_bound:
            return clamp_factor(band_score, config)
    return clamp_factor(config.utilization_floor_score, config)

def loan_count(report: NormalizedReport) -> int:
    count = report.total_active_loans + report.total_closed_loans
    if count == 0:
        count = report.total_loans
    return count

def reported_span_years(report: NormalizedReport) -> float:
    """Years between the oldest and newest reported dates in the loan history."""
    dates = [loan.reported_date for loan in report.loan_history if loan.reported_date is not None]
    if len(dates) < 2:
        return 0.0
    return (max(dates) - min(dates)).days / 365.25

def credit_history_length_score(report: NormalizedReport, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> int:
    loan_points = min(loan_count(report) * config.history_points_per_loan, config.history_loan_points_cap)
    span_points = min(reported_span_years(report) * config.history_points_per_year_span,
                      config.history_span_points_cap)
    return clamp_factor(config.history_floor + loan_points + span_points, config)

def _distinct_names(values) -> set:
    return {value.strip().casefold() for value in values if value and value.strip()}

def credit_mix_score(report: NormalizedReport, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> int:
    """Diversity of lenders and loan types seen in the loan history. No history scores 0."""
    if not report.loan_history:
        return 0
    institutions = _distinct_names(loan.institution for loan in report.loan_history)
    loan_types = _distinct_names(loan.loan_type for loan in report.loan_history)
    saturation = config.mix_saturation
    value = (
        config.mix_institution_points * min(len(institutions), saturation) / saturation
        + config.mix_loan_type_points * min(len(loan_types), saturation) / saturation
    )
    return clamp_factor(value, config)

def new_credit_score(report: NormalizedReport, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> int:
    value = (
        config.factor_max
        - report.enquiries_last_3_months * config.enquiry_penalty_3_months
        - report.enquiries_last_12_months * config.enquiry_penalty_12_months
        - report.enquiries_last_36_months * config.enquiry_penalty_36_months
    )
    return clamp_factor(value, config)


FACTOR_FUNCTIONS = {
    "payment_history": payment_history_score,
    "credit_utilization": credit_utilization_score,
    "credit_history_length": credit_history_length_score,
    "credit_mix": credit_mix_score,
    "new_credit": new_credit_score,
}
