from datetime import date

import httpx
import pytest

from kyc_portal.config import Settings
from kyc_portal.credit_scoring.exceptions import UpstreamUnavailable, CreditBureauError
from kyc_portal.third_party_integration import models
from kyc_portal.third_party_integration.mock_data import generate_mock_credit_data, MockCreditBureauClient
from kyc_portal.third_party_integration.services import (
    DojahCreditBureauClient, get_credit_bureau_provider, retry_backoff_seconds,
)

from conftest import build_report

BVN = "22212345890"


def dojah_settings(**overrides):
    test_settings = Settings()
    test_settings.DOJAH_APP_ID = "app-123"
    test_settings.DOJAH_SECRET_KEY = "test_sk_abc"
    test_settings.DOJAH_ENVIRONMENT = "sandbox"
    test_settings.DOJAH_BASE_URL_SANDBOX = "https://sandbox.dojah.test"
    test_settings.DOJAH_MAX_RETRIES = 2
    test_settings.USE_MOCK_CREDIT_DATA = False
    for key, value in overrides.items():
        setattr(test_settings, key, value)
    return test_settings

def make_client(handler, db=None, **overrides):
    sleeps = []
    client = DojahCreditBureauClient(
        settings=dojah_settings(**overrides), transport=httpx.MockTransport(handler),
        db=db, sleep=sleeps.append,
    )
    return client, sleeps


def test_fetch_sends_credentials_and_bvn():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        seen["headers"] = request.headers
        return httpx.Response(200, json=build_report())

    client, sleeps = make_client(handler)
    report = client.fetch_credit_report(BVN)

    assert report["entity"]["bvn"] == BVN
    assert seen["url"].host == "sandbox.dojah.test"
    assert seen["url"].path == "/api/v1/credit_bureau"
    assert seen["url"].params["bvn"] == BVN
    assert seen["headers"]["Authorization"] == "test_sk_abc"
    assert seen["headers"]["AppId"] == "app-123"
    assert sleeps == []

def test_base_url_follows_environment():
    assert dojah_settings(DOJAH_ENVIRONMENT="production").dojah_base_url == Settings.DOJAH_BASE_URL_PRODUCTION
    assert dojah_settings().dojah_base_url == "https://sandbox.dojah.test"

def test_timeouts_are_retried_with_backoff():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json=build_report())

    client, sleeps = make_client(handler)
    assert client.fetch_credit_report(BVN)["entity"]["bvn"] == BVN
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]

def test_timeouts_after_all_retries_are_upstream_unavailable():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectTimeout("timed out", request=request)

    client, sleeps = make_client(handler)
    with pytest.raises(UpstreamUnavailable) as exc_info:
        client.fetch_credit_report(BVN)
    assert not isinstance(exc_info.value, CreditBureauError)
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]

def test_connection_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client, sleeps = make_client(handler)
    with pytest.raises(UpstreamUnavailable):
        client.fetch_credit_report(BVN)
    assert len(calls) == 1
    assert sleeps == []

def test_backoff_is_capped():
    assert [retry_backoff_seconds(attempt) for attempt in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

@pytest.mark.parametrize("status_code,body,message", [
    (404, {"error": "No credit data available for this borrower"}, "No credit data found"),
    (424, {"error": "Failed dependency"}, "Credit bureau upstream service unavailable"),
    (503, {"error": "Unable to reach service"}, "Credit bureau service is currently unavailable"),
    (401, {"error": "Invalid app id"}, "Failed to fetch credit bureau data"),
])
def test_error_statuses_map_to_credit_bureau_error(status_code, body, message):
    client, _ = make_client(lambda request: httpx.Response(status_code, json=body))
    with pytest.raises(CreditBureauError) as exc_info:
        client.fetch_credit_report(BVN)
    assert exc_info.value.status_code == status_code
    assert exc_info.value.message == message
    assert exc_info.value.details == body

def test_non_json_error_body():
    client, _ = make_client(lambda request: httpx.Response(500, text="<html>Bad gateway</html>"))
    with pytest.raises(CreditBureauError) as exc_info:
        client.fetch_credit_report(BVN)
    assert exc_info.value.status_code == 500
    assert exc_info.value.details == {"message": "Invalid response from Dojah API"}

def test_non_json_success_body_is_upstream_unavailable():
    client, _ = make_client(lambda request: httpx.Response(200, text="not json"))
    with pytest.raises(UpstreamUnavailable) as exc_info:
        client.fetch_credit_report(BVN)
    assert not isinstance(exc_info.value, CreditBureauError)

def test_calls_are_logged_with_masked_bvn(db_session):
    client, _ = make_client(lambda request: httpx.Response(200, json=build_report()), db=db_session)
    client.fetch_credit_report(BVN, correlation_id="corr-1")

    failing, _ = make_client(lambda request: httpx.Response(424, json={}), db=db_session)
    with pytest.raises(CreditBureauError):
        failing.fetch_credit_report(BVN)

    logs = db_session.query(models.ExternalServiceLog).order_by(models.ExternalServiceLog.id).all()
    assert len(logs) == 2
    assert logs[0].is_success is True
    assert logs[0].status_code_received == 200
    assert logs[0].correlation_id == "corr-1"
    assert "222****890" in logs[0].endpoint_url_called
    assert BVN not in logs[0].endpoint_url_called
    assert logs[1].is_success is False
    assert logs[1].status_code_received == 424


def test_mock_data_is_deterministic_for_a_bvn():
    first = generate_mock_credit_data(BVN, date(2024, 6, 1))
    second = generate_mock_credit_data(BVN, date(2024, 6, 1))
    assert first == second
    assert first["entity"]["bvn"] == BVN

def test_mock_risk_profile_follows_last_digit():
    high = generate_mock_credit_data("22212345619", date(2024, 6, 1))["entity"]["score"]
    low = generate_mock_credit_data("22212345611", date(2024, 6, 1))["entity"]["score"]
    assert high["totalNoOfDelinquentFacilities"][0]["value"] == 1
    assert high["totalNoOfOverdueAccounts"][0]["value"] == 2
    assert low["totalNoOfDelinquentFacilities"][0]["value"] == 0
    assert low["totalNoOfOverdueAccounts"][0]["value"] == 0

def test_provider_factory_honours_mock_flag():
    assert isinstance(get_credit_bureau_provider(settings=dojah_settings(USE_MOCK_CREDIT_DATA=True)),
                      MockCreditBureauClient)
    assert isinstance(get_credit_bureau_provider(settings=dojah_settings()), DojahCreditBureauClient)

def test_mock_client_returns_dojah_shaped_report():
    report = MockCreditBureauClient(reference_date=date(2024, 6, 1)).fetch_credit_report(BVN)
    assert set(report["entity"]["score"]) >= {"loanHistory", "creditEnquiriesSummary", "totalBorrowed"}
