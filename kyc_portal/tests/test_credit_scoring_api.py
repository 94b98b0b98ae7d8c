from kyc_portal.credit_scoring.exceptions import UpstreamUnavailable, CreditBureauError

from conftest import build_report, session_cookie

USER_COOKIE = session_cookie({"userId": "user-1"})
ADMIN_COOKIE = session_cookie({"userId": "admin-1", "email": "admin@example.com", "role": "ADMIN"})


def sign_in(client):
    client.cookies.set("session", USER_COOKIE)
    return client

def sign_in_admin(client):
    client.cookies.set("admin_session", ADMIN_COOKIE)
    return client


def test_credit_score_requires_session(client):
    assert client.get("/api/v1/user/cibil-score").status_code == 401
    assert client.post("/api/v1/user/cibil-score", json={"bvn": "22212345890"}).status_code == 401
    assert client.get("/api/v1/user/cibil-score/history").status_code == 401

def test_malformed_session_cookie_is_unauthorized(client):
    client.cookies.set("session", "not-json")
    assert client.get("/api/v1/user/cibil-score").status_code == 401

def test_no_stored_score_is_not_found(client):
    response = sign_in(client).get("/api/v1/user/cibil-score")
    assert response.status_code == 404, response.text
    assert response.json()["detail"] == "No credit score data found"

def test_calculate_then_read_credit_score(client, fake_provider):
    sign_in(client)
    response = client.post("/api/v1/user/cibil-score", json={"bvn": "22212345890", "accountType": "INDIVIDUAL"})
    assert response.status_code == 200, response.text
    data = response.json()
    assert 300 <= data["score"] <= 850
    assert data["scoreChange"] == 0
    assert data["fraudReasons"] == []
    assert data["isFraudSuspected"] is False
    assert set(data["factors"]) == {"paymentHistory", "creditUtilization", "creditHistoryLength",
                                    "creditMix", "newCredit"}
    assert fake_provider.calls == ["22212345890"]

    response = client.get("/api/v1/user/cibil-score")
    assert response.status_code == 200, response.text
    stored = response.json()
    assert stored["score"] == data["score"]
    assert stored["accountType"] == "INDIVIDUAL"
    assert stored["factors"]["paymentHistory"]["score"] == data["factors"]["paymentHistory"]["score"]
    assert "lastUpdated" in stored

def test_read_back_score_keeps_the_posted_timestamp(client):
    sign_in(client)
    posted = client.post("/api/v1/user/cibil-score", json={"bvn": "22212345890"}).json()
    stored = client.get("/api/v1/user/cibil-score").json()
    assert stored["lastUpdated"] == posted["lastUpdated"]

def test_invalid_bvn_is_bad_request(client, fake_provider):
    sign_in(client)
    assert client.post("/api/v1/user/cibil-score", json={"bvn": "123"}).status_code == 400
    assert client.post("/api/v1/user/cibil-score", json={}).status_code == 400
    assert fake_provider.calls == []

def test_bureau_error_status_is_passed_through(client, fake_provider):
    fake_provider.error = CreditBureauError("No credit data found", status_code=404,
                                            suggestion="This BVN does not have any credit history")
    response = sign_in(client).post("/api/v1/user/cibil-score", json={"bvn": "22212345890"})
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "No credit data found"

def test_unreachable_provider_is_service_unavailable(client, fake_provider):
    fake_provider.error = UpstreamUnavailable()
    response = sign_in(client).post("/api/v1/user/cibil-score", json={"bvn": "22212345890"})
    assert response.status_code == 503

def test_unexpected_failure_is_internal_error(client, fake_provider):
    fake_provider.error = RuntimeError("boom")
    response = sign_in(client).post("/api/v1/user/cibil-score", json={"bvn": "22212345890"})
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to calculate credit score"

def test_history_lists_newest_first(client, fake_provider):
    sign_in(client)
    client.post("/api/v1/user/cibil-score", json={"bvn": "22212345890"})
    fake_provider.report = build_report(overdue=2, borrowed=1000, outstanding=900)
    client.post("/api/v1/user/cibil-score", json={"bvn": "22212345890"})

    response = client.get("/api/v1/user/cibil-score/history")
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["total"] == 2
    assert [item["changeReason"] for item in data["items"]] == ["Score decreased", "Initial score"]
    assert data["items"][0]["fraudReasons"] == ["Has overdue accounts"]
    assert data["items"][0]["factors"]["paymentHistory"]["score"] == 80


def test_admin_routes_require_admin_role(client):
    assert client.get("/api/v1/admin/credit-bureau/check", params={"bvn": "22212345890"}).status_code == 401
    client.cookies.set("admin_session", session_cookie({"userId": "user-1", "role": "USER"}))
    assert client.get("/api/v1/admin/credit-bureau/history").status_code == 401

def test_admin_check_previews_without_storing(client):
    sign_in_admin(client)
    response = client.get("/api/v1/admin/credit-bureau/check", params={"bvn": "22212345890"})
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["bvn"] == "22212345890"
    assert "entity" in data["report"]
    assert 300 <= data["result"]["score"] <= 850

    assert client.get("/api/v1/admin/credit-bureau/history").json()["total"] == 0

def test_admin_check_rejects_short_bvn(client):
    response = sign_in_admin(client).get("/api/v1/admin/credit-bureau/check", params={"bvn": "1234"})
    assert response.status_code == 400

def test_admin_check_unexpected_failure_is_internal_error(client, fake_provider):
    fake_provider.error = RuntimeError("boom")
    response = sign_in_admin(client).get("/api/v1/admin/credit-bureau/check", params={"bvn": "22212345890"})
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to fetch credit bureau data"

def test_admin_save_and_list_checks(client):
    sign_in_admin(client)
    payload = {
        "bvn": "22212345890",
        "name": "Ada Obi",
        "riskScore": 80,
        "responseData": build_report(active=6),
    }
    response = client.post("/api/v1/admin/credit-bureau/save", json=payload)
    assert response.status_code == 201, response.text
    saved = response.json()
    assert saved["isFraudSuspected"] is True
    assert saved["fraudReasons"] == ["Multiple active loans (high risk)"]
    assert saved["checkedBy"] == "admin@example.com"
    assert saved["accountType"] == "INDIVIDUAL"

    response = client.get("/api/v1/admin/credit-bureau/history", params={"bvn": "22212345890"})
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == saved["id"]
    assert client.get("/api/v1/admin/credit-bureau/history", params={"bvn": "99999999999"}).json()["total"] == 0

def test_admin_save_with_empty_report_stores_baseline(client):
    payload = {"bvn": "22212345890", "riskScore": 10, "responseData": {}}
    response = sign_in_admin(client).post("/api/v1/admin/credit-bureau/save", json=payload)
    assert response.status_code == 201, response.text
    assert response.json()["creditScore"] == 754
    assert response.json()["isFraudSuspected"] is False

def test_admin_save_validates_bvn(client):
    payload = {"bvn": "12", "riskScore": 10, "responseData": {}}
    assert sign_in_admin(client).post("/api/v1/admin/credit-bureau/save", json=payload).status_code == 422

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"
