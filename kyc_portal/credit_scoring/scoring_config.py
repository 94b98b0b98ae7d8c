# Weights, penalties and band thresholds for the credit scoring engine.
# Every tunable number used by factors.py and engine.py lives here.

from pydantic import BaseModel, Field, model_validator
from typing import Dict, List, Tuple

FACTOR_NAMES = (
    "payment_history",
    "credit_utilization",
    "credit_history_length",
    "credit_mix",
    "new_credit",
)

# Labels stored on CreditFactor rows
FACTOR_LABELS = {
    "payment_history": "Payment History",
    "credit_utilization": "Credit Utilization",
    "credit_history_length": "Credit History Length",
    "credit_mix": "Credit Mix",
    "new_credit": "New Credit",
}


class ScoringConfig(BaseModel):
    # Public score range (CIBIL-style)
    min_score: int = 300
    max_score: int = 850
    factor_max: int = 100

    weights: Dict[str, float] = Field(default_factory=lambda: {
        "payment_history": 0.35,
        "credit_utilization": 0.30,
        "credit_history_length": 0.15,
        "credit_mix": 0.10,
        "new_credit": 0.10,
    })

    # Payment history penalties (per item)
    delinquent_facility_penalty: float = 15
    overdue_account_penalty: float = 10
    non_performing_loan_penalty: float = 5
    non_performing_penalty_cap: float = 25

    # Utilization staircase: (ratio upper bound, score); ratios above the last bound get utilization_floor_score
    utilization_bands: List[Tuple[float, int]] = Field(default_factory=lambda: [
        (0.1, 100), (0.2, 95), (0.3, 90), (0.4, 80), (0.5, 70),
        (0.6, 60), (0.7, 50), (0.8, 40), (0.9, 30),
    ])
    utilization_floor_score: int = 20

    # History length: neutral floor for an applicant with no loans, then capped bonuses
    history_floor: float = 50
    history_points_per_loan: float = 6
    history_loan_points_cap: float = 30
    history_points_per_year_span: float = 5
    history_span_points_cap: float = 20

    # Credit mix: distinct institutions and loan types, each saturating
    mix_institution_points: float = 70
    mix_loan_type_points: float = 30
    mix_saturation: int = 3

    # New credit: penalty per enquiry in each window
    enquiry_penalty_3_months: float = 10
    enquiry_penalty_12_months: float = 4
    enquiry_penalty_36_months: float = 1

    # Fraud rules
    fraud_max_active_loans: int = 5
    fraud_max_recent_enquiries: int = 5

    # Risk level cut-offs on the public scale, highest first
    risk_levels: List[Tuple[int, str]] = Field(default_factory=lambda: [
        (750, "LOW"), (650, "MEDIUM"), (550, "HIGH"),
    ])
    lowest_risk_level: str = "CRITICAL"
    risk_score_buckets: List[Tuple[int, int]] = Field(default_factory=lambda: [
        (750, 0), (650, 25), (550, 50), (450, 75),
    ])
    highest_risk_score: int = 100

    # Factor impact labels
    positive_impact_threshold: int = 80
    neutral_impact_threshold: int = 60

    @model_validator(mode="after")
    def check_weights(self):
        missing = [name for name in FACTOR_NAMES if name not in self.weights]
        if missing:
            raise ValueError(f"weights missing for factors: {', '.join(missing)}")
        total = sum(self.weights[name] for name in FACTOR_NAMES)
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"factor weights must sum to 1.0, got {total}")
        if self.max_score <= self.min_score:
            raise ValueError("max_score must be greater than min_score")
        bounds = [bound for bound, _ in self.utilization_bands]
        if bounds != sorted(bounds):
            raise ValueError("utilization_bands must be ordered by ratio")
        return self


DEFAULT_SCORING_CONFIG = ScoringConfig()
