# Mock credit data for development and testing when the Dojah API is unavailable.
# Reports are derived from the BVN digits so the same BVN always yields the same profile.
import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

from kyc_portal.credit_scoring.engine import mask_bvn

logger = logging.getLogger(__name__)

LENDERS = ['Access Bank', 'GTBank', 'First Bank', 'UBA', 'Wema Bank']
LOAN_TYPES = ['Personal Loan', 'Mortgage', 'Auto Loan', 'Business Loan']
ENQUIRY_REASONS = ['New loan application', 'Credit limit increase', 'Account review']


def _crc(value: Any) -> list:
    return [{"source": "crc", "value": value}]

def generate_mock_credit_data(bvn: str, reference_date: Optional[date] = None) -> Dict[str, Any]:
    """
    Build a Dojah-shaped credit bureau payload for ``bvn`` (11 digits).

    The last digit picks the risk profile (0-4 low, 5-7 medium, 8-9 high) and
    the second-last digit the number of loans.
    """
    today = reference_date or date.today()
    last_digit = int(bvn[-1])
    second_last_digit = int(bvn[-2])

    risk_profile = 'high' if last_digit > 7 else 'medium' if last_digit > 4 else 'low'

    total_loans = 1 + (second_last_digit % 5)
    active_loans = second_last_digit % 3
    closed_loans = total_loans - active_loans
    overdue_accounts = {'high': 2, 'medium': 1, 'low': 0}[risk_profile]

    total_borrowed = 500000 + int(bvn[5:8]) * 10000
    outstanding_share = {'high': 0.7, 'medium': 0.4, 'low': 0.2}[risk_profile]
    outstanding_balance = total_borrowed * outstanding_share
    overdue_share = {'high': 0.4, 'medium': 0.15, 'low': 0}[risk_profile]
    overdue_amount = outstanding_balance * overdue_share

    loan_history = []
    for i in range(total_loans):
        is_active = i < active_loans
        is_performing = not (risk_profile == 'high' and i == 0) and \
            not (risk_profile == 'medium' and i == 0 and not is_active)
        loan_amount = 100000 + i * 50000
        loan_history.append({
            "loanProvider": LENDERS[i % 5],
            "type": LOAN_TYPES[i % 4],
            "loanAmount": str(loan_amount),
            "status": "Open" if is_active else "Closed",
            "performanceStatus": "Performing" if is_performing else "Non-performing",
            "dateReported": (today - timedelta(days=i * 30)).isoformat(),
            "accountNumber": str(100000 + int(bvn[i:i + 5])),
            "lastPaymentDate": (today - timedelta(days=(i + 1) * 5)).isoformat(),
            "installmentAmount": str(5000 + i * 2500),
            "outstandingBalance": str(loan_amount * 0.6 if is_active else 0),
            "overdueAmount": str(0 if is_performing else loan_amount * 0.2),
            "paymentHistory": [],
        })

    loan_performance = [{
        "loanProvider": loan["loanProvider"],
        "accountNumber": loan["accountNumber"],
        "loanAmount": int(loan["loanAmount"]),
        "loanCount": 1,
        "noOfNonPerforming": 1 if loan["performanceStatus"] == "Non-performing" else 0,
        "noOfPerforming": 1 if loan["performanceStatus"] == "Performing" else 0,
        "outstandingBalance": int(float(loan["outstandingBalance"])),
        "overdueAmount": int(float(loan["overdueAmount"])),
        "performanceStatus": loan["performanceStatus"],
        "status": loan["status"],
    } for loan in loan_history]

    enquiries = [{
        "loanProvider": LENDERS[(i + last_digit) % 5],
        "date": (today - timedelta(days=i * 15)).isoformat(),
        "reason": ENQUIRY_REASONS[i % 3],
        "contactPhone": f"+234{9000000000 + int(bvn[i:i + 7])}",
    } for i in range(last_digit % 5)]

    return {
        "entity": {
            "address": "123 Mock Street, Lagos, Nigeria",
            "bvn": bvn,
            "dateOfBirth": "1980-01-01",
            "email": f"user{bvn[:4]}@example.com",
            "name": f"Mock User {bvn[:4]}",
            "phone": f"+234{9000000000 + int(bvn[:7])}",
            "searchedDate": today.isoformat(),
            "score": {
                "bureauStatus": {"crc": "Available", "creditRegistry": "Available", "firstCentral": "Available"},
                "creditEnquiries": _crc(enquiries),
                "creditEnquiriesSummary": _crc({
                    "Last3MonthCount": str(last_digit % 3),
                    "Last12MonthCount": str(last_digit % 5),
                    "Last36MonthCount": str(last_digit % 7),
                }),
                "loanHistory": _crc(loan_history),
                "loanPerformance": _crc(loan_performance),
                "totalBorrowed": _crc(total_borrowed),
                "totalMonthlyInstallment": _crc(total_borrowed * 0.05),
                "totalNoOfActiveLoans": _crc(active_loans),
                "totalNoOfClosedLoans": _crc(closed_loans),
                "totalNoOfDelinquentFacilities": _crc(1 if risk_profile == 'high' else 0),
                "totalNoOfInstitutions": _crc(min(total_loans, 3)),
                "totalNoOfLoans": _crc(total_loans),
                "totalNoOfOverdueAccounts": _crc(overdue_accounts),
                "totalNoOfPerformingLoans": _crc(total_loans - overdue_accounts),
                "totalOutstanding": _crc(outstanding_balance),
                "totalOverdue": _crc(overdue_amount),
            },
        }
    }


class MockCreditBureauClient:
    """Stands in for DojahCreditBureauClient; same ``fetch_credit_report`` signature."""
    service_name = "dojah_credit_bureau_mock"

    def __init__(self, reference_date: Optional[date] = None):
        self.reference_date = reference_date

    def fetch_credit_report(self, bvn: str, correlation_id: Optional[str] = None) -> Dict[str, Any]:
        logger.info("Serving mock credit bureau report for BVN %s", mask_bvn(bvn))
        return generate_mock_credit_data(bvn, self.reference_date)
