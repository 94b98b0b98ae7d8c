"""
Report Normalizer.

Turns the vendor's bureau payload (``entity.score.<field> = [{source, value}, ...]``)
into a :class:`NormalizedReport` whose fields are always present. All of the
defensive access to the loosely-typed vendor shape is confined to this module;
everything downstream may assume a complete, numeric report.
"""
import math
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from dateutil import parser as date_parser

from .schemas import LoanRecord, NormalizedReport

CLOSED_LOAN_STATUSES = {"closed", "settled", "paid", "paidoff", "writtenoff", "repaid"}
NON_PERFORMING_STATUSES = {"nonperforming", "delinquent", "lost", "doubtful", "default", "defaulted"}

# Vendor field -> NormalizedReport field, for scalar summary values
COUNT_FIELDS = {
    "totalNoOfActiveLoans": "total_active_loans",
    "totalNoOfClosedLoans": "total_closed_loans",
    "totalNoOfLoans": "total_loans",
    "totalNoOfDelinquentFacilities": "delinquent_facilities",
    "totalNoOfOverdueAccounts": "overdue_accounts",
    "totalNoOfInstitutions": "total_institutions",
}
AMOUNT_FIELDS = {
    "totalBorrowed": "total_borrowed",
    "totalOutstanding": "total_outstanding",
    "totalOverdue": "total_overdue",
}


def to_number(value: Any) -> float:
    """Coerce a vendor value to a finite float; anything unusable becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not cleaned:
            return 0.0
        try:
            number = float(cleaned)
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number

def to_count(value: Any) -> int:
    return max(0, int(to_number(value)))

def _is_number_like(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", ""))
        except ValueError:
            return False
    else:
        return False
    # "NaN" and "inf" parse but are not usable counts or amounts
    return math.isfinite(number)

def _source_entries(score: Dict[str, Any], field: str) -> List[Dict[str, Any]]:
    entries = score.get(field)
    if isinstance(entries, dict): # A single un-wrapped {source, value}
        entries = [entries]
    if not isinstance(entries, list):
        return []
    return [entry for entry in entries if isinstance(entry, dict)]

def first_source_value(score: Dict[str, Any], field: str, accepts) -> Any:
    """Value of the first bureau source whose value passes ``accepts``, else None."""
    for entry in _source_entries(score, field):
        value = entry.get("value")
        if accepts(value):
            return value
    return None

def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date_parser.parse(value).date()
    except (ValueError, OverflowError):
        return None

def _squash(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    return text.strip().lower().replace("-", "").replace(" ", "").replace("_", "")

def normalize_loan(raw: Dict[str, Any]) -> LoanRecord:
    status = _squash(raw.get("status") or raw.get("accountStatus"))
    outstanding = to_number(raw.get("outstandingBalance"))
    if status:
        is_active = status not in CLOSED_LOAN_STATUSES
    else:
        is_active = outstanding > 0
    performance = _squash(raw.get("performanceStatus"))

    institution = raw.get("loanProvider")
    loan_type = raw.get("type") or raw.get("loanType")
    return LoanRecord(
        is_active=is_active,
        is_performing=performance not in NON_PERFORMING_STATUSES,
        loan_amount=to_number(raw.get("loanAmount")),
        outstanding_balance=outstanding,
        overdue_amount=to_number(raw.get("overdueAmount")),
        institution=institution.strip() if isinstance(institution, str) else "",
        loan_type=loan_type.strip() if isinstance(loan_type, str) else "",
        reported_date=_parse_date(raw.get("dateReported") or raw.get("reportedDate")),
    )

def _sum_performance(score: Dict[str, Any], key: str) -> int:
    # Performance counts are added up over every bureau source, not just the first
    total = 0
    for entry in _source_entries(score, "loanPerformance"):
        loans = entry.get("value")
        if not isinstance(loans, list):
            continue
        for loan in loans:
            if isinstance(loan, dict):
                total += to_count(loan.get(key))
    return total

def _dicts(items: Iterable[Any]) -> List[Dict[str, Any]]:
    return [item for item in items if isinstance(item, dict)]


def normalize_report(raw_report: Any) -> NormalizedReport:
    """Normalize a vendor credit bureau payload. Never raises; missing data reads as zero."""
    entity = raw_report.get("entity") if isinstance(raw_report, dict) else None
    if not isinstance(entity, dict):
        entity = {}
    score = entity.get("score")
    if not isinstance(score, dict):
        score = {}

    values: Dict[str, Any] = {}
    for vendor_field, field in COUNT_FIELDS.items():
        values[field] = to_count(first_source_value(score, vendor_field, _is_number_like))
    for vendor_field, field in AMOUNT_FIELDS.items():
        values[field] = max(0.0, to_number(first_source_value(score, vendor_field, _is_number_like)))

    loans = first_source_value(score, "loanHistory", lambda v: isinstance(v, list)) or []
    values["loan_history"] = [normalize_loan(loan) for loan in _dicts(loans)]

    values["non_performing_loans"] = _sum_performance(score, "noOfNonPerforming")
    performing = _sum_performance(score, "noOfPerforming")
    if not performing:
        performing = to_count(first_source_value(score, "totalNoOfPerformingLoans", _is_number_like))
    values["performing_loans"] = performing

    summary = first_source_value(score, "creditEnquiriesSummary", lambda v: isinstance(v, dict)) or {}
    values["enquiries_last_3_months"] = to_count(summary.get("Last3MonthCount"))
    values["enquiries_last_12_months"] = to_count(summary.get("Last12MonthCount"))
    values["enquiries_last_36_months"] = to_count(summary.get("Last36MonthCount"))

    enquiries = first_source_value(score, "creditEnquiries", lambda v: isinstance(v, list)) or []
    values["enquiry_records"] = len(_dicts(enquiries))

    bvn = entity.get("bvn")
    values["bvn"] = bvn.strip() if isinstance(bvn, str) else ""

    return NormalizedReport(**values)
