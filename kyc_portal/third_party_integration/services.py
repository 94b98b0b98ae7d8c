import json
import time
import uuid
import logging
import httpx # For making HTTP requests to the identity-data provider
from typing import Optional, Dict, Any, Callable
from sqlalchemy.orm import Session
from datetime import datetime, timezone

from . import models
from .mock_data import MockCreditBureauClient
from kyc_portal.config import settings as default_settings, Settings
from kyc_portal.credit_scoring.exceptions import UpstreamUnavailable, CreditBureauError
from kyc_portal.credit_scoring.engine import mask_bvn

logger = logging.getLogger(__name__)

DOJAH_CREDIT_BUREAU_PATH = "/api/v1/credit_bureau"
MAX_BACKOFF_SECONDS = 5.0


def retry_backoff_seconds(attempt: int) -> float:
    # 1s, 2s, 4s, ... capped
    return min(1.0 * (2 ** attempt), MAX_BACKOFF_SECONDS)

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- ExternalServiceLog Service ---
class ExternalServiceLogService:
    def log_outgoing_call(
        self, db: Session, service_name: str, http_method: str, endpoint_url: str,
        response_status_code: Optional[int] = None, is_success: Optional[bool] = None,
        error_message: Optional[str] = None, duration_ms: Optional[int] = None,
        attempts: int = 1, correlation_id: Optional[str] = None
    ) -> models.ExternalServiceLog:
        db_log = models.ExternalServiceLog(
            service_name_called=service_name,
            http_method=http_method.upper(),
            endpoint_url_called=endpoint_url,
            response_timestamp=_utcnow() if response_status_code is not None else None,
            status_code_received=response_status_code,
            is_success=is_success,
            error_message=error_message,
            duration_ms=duration_ms,
            attempts=attempts,
            correlation_id=correlation_id,
        )
        db.add(db_log)
        db.commit()
        db.refresh(db_log)
        return db_log


# --- Dojah credit bureau client ---
class DojahCreditBureauClient:
    """
    Fetches a borrower's credit bureau report from Dojah, which aggregates the
    CRC, CreditRegistry and FirstCentral bureaus.

    Timeouts are retried with exponential backoff; any other transport failure
    fails fast. Non-2xx answers become CreditBureauError carrying the provider's
    status code and a user-facing suggestion.
    """
    service_name = "dojah_credit_bureau"

    def __init__(self, settings: Settings = default_settings,
                 transport: Optional[httpx.BaseTransport] = None,
                 db: Optional[Session] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 log_service: Optional[ExternalServiceLogService] = None):
        self.settings = settings
        self.transport = transport
        self.db = db
        self.sleep = sleep
        self.log_service = log_service or external_service_log_service

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": self.settings.DOJAH_SECRET_KEY or "", # No prefix for Dojah API
            "AppId": self.settings.DOJAH_APP_ID or "",
            "Content-Type": "application/json",
        }

    def _log_call(self, bvn: str, status_code: Optional[int], is_success: bool,
                  error_message: Optional[str], started: float, attempts: int,
                  correlation_id: Optional[str]):
        if self.db is None:
            return
        url = f"{self.settings.dojah_base_url}{DOJAH_CREDIT_BUREAU_PATH}?bvn={mask_bvn(bvn)}"
        self.log_service.log_outgoing_call(
            self.db, service_name=self.service_name, http_method="GET", endpoint_url=url,
            response_status_code=status_code, is_success=is_success, error_message=error_message,
            duration_ms=int((time.monotonic() - started) * 1000), attempts=attempts,
            correlation_id=correlation_id,
        )

    def _get_with_retry(self, client: httpx.Client, bvn: str):
        """Returns (response, attempts). Only timeouts are retried."""
        max_retries = max(0, self.settings.DOJAH_MAX_RETRIES)
        for attempt in range(max_retries + 1):
            try:
                return client.get(DOJAH_CREDIT_BUREAU_PATH, params={"bvn": bvn}), attempt + 1
            except httpx.TimeoutException as e:
                logger.warning("Dojah call attempt %d/%d timed out for BVN %s: %s",
                               attempt + 1, max_retries + 1, mask_bvn(bvn), e)
                if attempt >= max_retries:
                    raise
                delay = retry_backoff_seconds(attempt)
                logger.info("Waiting %.1fs before retrying Dojah call...", delay)
                self.sleep(delay)

    def fetch_credit_report(self, bvn: str, correlation_id: Optional[str] = None) -> Dict[str, Any]:
        correlation_id = correlation_id or str(uuid.uuid4())
        if not self.settings.DOJAH_APP_ID or not self.settings.DOJAH_SECRET_KEY:
            logger.error("Missing Dojah credentials (app id set: %s, secret key set: %s)",
                         bool(self.settings.DOJAH_APP_ID), bool(self.settings.DOJAH_SECRET_KEY))

        started = time.monotonic()
        attempts = self.settings.DOJAH_MAX_RETRIES + 1
        try:
            with httpx.Client(base_url=self.settings.dojah_base_url,
                              timeout=self.settings.DOJAH_TIMEOUT_SECONDS,
                              headers=self._headers(),
                              transport=self.transport) as client:
                response, attempts = self._get_with_retry(client, bvn)
        except httpx.TimeoutException as e:
            self._log_call(bvn, None, False, f"Timed out: {e}", started, attempts, correlation_id)
            raise UpstreamUnavailable("Credit bureau service is currently unavailable") from e
        except httpx.RequestError as e:
            error_msg = f"HTTP Request failed: {type(e).__name__} - {str(e)}"
            logger.error("Dojah API connection error for BVN %s: %s", mask_bvn(bvn), error_msg)
            self._log_call(bvn, None, False, error_msg, started, 1, correlation_id)
            raise UpstreamUnavailable("Failed to connect to credit bureau API") from e

        if not response.is_success:
            error = self._map_error_response(bvn, response)
            self._log_call(bvn, response.status_code, False, error.message, started, attempts, correlation_id)
            raise error

        try:
            report = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            self._log_call(bvn, response.status_code, False, "Non-JSON response body", started, attempts, correlation_id)
            raise UpstreamUnavailable("Invalid response from credit bureau API") from e
        if not isinstance(report, dict):
            self._log_call(bvn, response.status_code, False, "Unexpected response shape", started, attempts, correlation_id)
            raise UpstreamUnavailable("Invalid response from credit bureau API")

        self._log_call(bvn, response.status_code, True, None, started, attempts, correlation_id)
        logger.info("Fetched credit bureau report for BVN %s in %d attempt(s)", mask_bvn(bvn), attempts)
        return report

    def _map_error_response(self, bvn: str, response: httpx.Response) -> CreditBureauError:
        try:
            error_data = response.json()
        except (json.JSONDecodeError, ValueError):
            logger.error("Dojah API non-JSON error response: %s", response.text[:500])
            error_data = {"message": "Invalid response from Dojah API"}
        if not isinstance(error_data, dict):
            error_data = {"message": str(error_data)}
        logger.error("Dojah API request failed with status %s for BVN %s (%s environment): %s",
                     response.status_code, mask_bvn(bvn), self.settings.DOJAH_ENVIRONMENT, error_data)

        message = "Failed to fetch credit bureau data"
        suggestion = ""
        vendor_error = error_data.get("error")
        if vendor_error == "Unable to reach service":
            message = "Credit bureau service is currently unavailable"
            suggestion = ("This is typically a temporary issue with Dojah's connection to the credit bureau. "
                          "Please try again later.")
        if response.status_code == 404 and vendor_error == "No credit data available for this borrower":
            message = "No credit data found"
            suggestion = ("This BVN does not have any credit history in the bureau database. "
                          "This may be normal for individuals who have not taken loans before.")
        if response.status_code == 424:
            # Failed Dependency: an upstream bureau is down
            message = "Credit bureau upstream service unavailable"
            suggestion = "The credit bureau service is temporarily unavailable. Please try again later."

        return CreditBureauError(message, status_code=response.status_code,
                                 suggestion=suggestion, details=error_data)


def get_credit_bureau_provider(db: Optional[Session] = None, settings: Settings = default_settings):
    """Picks the mock or the real provider from USE_MOCK_CREDIT_DATA."""
    if settings.USE_MOCK_CREDIT_DATA:
        logger.warning("USE_MOCK_CREDIT_DATA is enabled; credit bureau reports are mocked")
        return MockCreditBureauClient()
    return DojahCreditBureauClient(settings=settings, db=db)


# Instantiate services
external_service_log_service = ExternalServiceLogService()
