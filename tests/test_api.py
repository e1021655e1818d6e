"""End-to-end flows through the HTTP surface with an injected clock, in-memory stores and a stub analyzer."""
import pytest
from fastapi.testclient import TestClient

from legalai.dependencies import build_services
from legalai.main import create_app
from legalai.services.credential_store import InMemoryCredentialStore
from legalai.services.document_store import InMemoryDocumentStore
from legalai.services.notifier import EmailNotifier

CONTRACT = ("contract.txt", b"This Services Agreement is made between Acme Ltd and Beta LLC.", "text/plain")


def upload(client, headers=None, file=CONTRACT):
    return client.post("/documents/upload", files={"file": file}, headers=headers or {})


def register_and_login(client, email="jane@example.com", password="passw0rd"):
    client.post("/auth/register", json={"name": "Jane Doe", "email": email, "password": password})
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def test_health(client):
    assert client.get("/").json()["status"] == "running"


def test_anonymous_quota_scenario(client, clock):
    for remaining in (2, 1, 0):
        response = upload(client)
        assert response.status_code == 201
        assert response.json()["remainingUploads"] == remaining
        assert response.json()["documentId"] is None

    clock.advance(minutes=45)
    response = upload(client)
    assert response.status_code == 429
    assert response.json()["waitTime"] == 75
    assert response.json()["waitUnit"] == "minutes"

    clock.advance(minutes=75, seconds=1)
    response = upload(client)
    assert response.status_code == 201
    assert response.json()["remainingUploads"] == 2


def test_upload_returns_structured_analysis(client, analyzer):
    body = upload(client).json()
    assert body["analysis"]["risks"] == ["Unlimited liability for the customer"]
    assert body["analysis"]["keyPoints"] == ["Term: 12 months"]
    assert "Acme Ltd" in analyzer.calls[0]


def test_invalid_upload_does_not_cost_quota(client):
    response = upload(client, file=("photo.png", b"\x89PNG", "image/png"))
    assert response.status_code == 400
    assert "Invalid file type" in response.json()["error"]

    response = upload(client, file=("empty.txt", b"   ", "text/plain"))
    assert response.status_code == 400

    assert client.get("/documents/quota").json()["remaining"] == 3


def test_analysis_failure_is_502_and_refunded(client, analyzer):
    analyzer.fail = True
    response = upload(client)
    assert response.status_code == 502
    assert response.json() == {"error": "Document analysis failed. Please try again."}
    assert client.get("/documents/quota").json()["remaining"] == 3


def test_missing_file_is_400(client):
    assert client.post("/documents/upload").status_code == 400


def test_bad_token_rejected_not_downgraded(client):
    response = upload(client, headers={"Authorization": "Bearer forged.token.value"})
    assert response.status_code == 401
    assert client.get("/documents/quota").json()["remaining"] == 3


def test_read_only_endpoints_do_not_consume_quota(client):
    headers = register_and_login(client)
    for _ in range(5):
        client.get("/documents/history", headers=headers)
        client.get("/documents/quota", headers=headers)
    assert client.get("/documents/quota", headers=headers).json()["remaining"] == 10


def test_authenticated_history_and_delete_reclaims_one_unit(client, clock):
    headers = register_and_login(client)
    ids = []
    for _ in range(7):
        response = upload(client, headers=headers)
        assert response.status_code == 201
        ids.append(response.json()["documentId"])
        clock.advance(seconds=1)

    history = client.get("/documents/history", headers=headers).json()["documents"]
    assert [doc["id"] for doc in history] == list(reversed(ids))
    assert history[0]["filename"] == "contract.txt"

    response = client.delete(f"/documents/{ids[0]}", headers=headers)
    assert response.status_code == 200
    assert response.json()["remainingUploads"] == 4

    quota = client.get("/documents/quota", headers=headers).json()
    assert quota["authenticated"] is True
    assert quota["used"] == 6
    assert quota["remaining"] == 4
    assert len(client.get("/documents/history", headers=headers).json()["documents"]) == 6


def test_authenticated_cap_reports_hours(client, clock):
    headers = register_and_login(client)
    for _ in range(10):
        assert upload(client, headers=headers).status_code == 201
    clock.advance(hours=3)

    response = upload(client, headers=headers)
    assert response.status_code == 429
    assert response.json()["waitTime"] == 21
    assert response.json()["waitUnit"] == "hours"


def test_delete_other_users_document_is_404(client):
    jane = register_and_login(client)
    bob = register_and_login(client, email="bob@example.com")
    document_id = upload(client, headers=jane).json()["documentId"]

    assert client.delete(f"/documents/{document_id}", headers=bob).status_code == 404
    assert client.delete("/documents/does-not-exist", headers=jane).status_code == 404


def test_history_requires_login(client):
    response = client.get("/documents/history")
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized. Please log in."


def test_register_sends_welcome_and_rejects_duplicates(client, notifier):
    response = client.post("/auth/register", json={"name": "Jane", "email": "jane@example.com", "password": "passw0rd"})
    assert response.status_code == 201
    assert notifier.last("registration") == {"name": "Jane"}

    response = client.post("/auth/register", json={"name": "Jane", "email": "jane@example.com", "password": "passw0rd"})
    assert response.status_code == 409


def test_login_errors(client):
    register_and_login(client)
    assert client.post("/auth/login", json={"email": "x@example.com", "password": "passw0rd"}).status_code == 400
    assert client.post("/auth/login", json={"email": "jane@example.com", "password": "nope1234"}).status_code == 400


def test_password_reset_flow(client, notifier):
    register_and_login(client)

    response = client.post("/auth/forgot-password", json={"email": "jane@example.com"})
    assert response.status_code == 200
    assert response.json() == {"message": "OTP sent to your email."}
    otp = notifier.last("otp")["otp"]

    wrong = "000000" if otp != "000000" else "111111"
    response = client.post("/auth/verify-otp", json={"email": "jane@example.com", "otp": wrong})
    assert response.status_code == 400

    response = client.post("/auth/verify-otp", json={"email": "jane@example.com", "otp": otp})
    assert response.status_code == 200
    reset_token = response.json()["resetToken"]

    payload = {"email": "jane@example.com", "password": "new-passw0rd", "resetToken": reset_token}
    assert client.post("/auth/reset-password", json=payload).status_code == 200
    assert notifier.last("password_changed") == {"name": "Jane Doe"}

    response = client.post("/auth/reset-password", json=payload)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or expired reset token"

    response = client.post("/auth/login", json={"email": "jane@example.com", "password": "new-passw0rd"})
    assert response.status_code == 200


def test_otp_expires_over_http(client, notifier, clock):
    register_and_login(client)
    client.post("/auth/forgot-password", json={"email": "jane@example.com"})
    otp = notifier.last("otp")["otp"]
    clock.advance(minutes=10, seconds=1)

    response = client.post("/auth/verify-otp", json={"email": "jane@example.com", "otp": otp})
    assert response.status_code == 400


def test_resend_otp_status_codes(client, notifier, monkeypatch):
    codes = iter(["111111", "222222"])
    monkeypatch.setattr("legalai.services.recovery.generate_otp", lambda: next(codes))
    register_and_login(client)
    assert client.post("/auth/resend-otp", json={"email": "nobody@example.com"}).status_code == 404

    response = client.post("/auth/resend-otp", json={"email": "jane@example.com"})
    assert response.status_code == 400
    assert "No active password reset request" in response.json()["error"]

    client.post("/auth/forgot-password", json={"email": "jane@example.com"})
    assert client.post("/auth/resend-otp", json={"email": "jane@example.com"}).status_code == 200
    assert notifier.last("otp")["otp"] == "222222"

    response = client.post("/auth/verify-otp", json={"email": "jane@example.com", "otp": "111111"})
    assert response.status_code == 400
    response = client.post("/auth/verify-otp", json={"email": "jane@example.com", "otp": "222222"})
    assert response.status_code == 200


def test_forgot_password_unknown_account_is_404(client):
    response = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert response.status_code == 404
    assert response.json()["error"] == "User not found"


def test_forgot_password_is_rate_limited(client):
    register_and_login(client)
    for _ in range(5):
        assert client.post("/auth/forgot-password", json={"email": "jane@example.com"}).status_code == 200

    response = client.post("/auth/forgot-password", json={"email": "jane@example.com"})
    assert response.status_code == 429
    assert response.json()["waitUnit"] == "minutes"


@pytest.mark.parametrize("path", ["/auth/verify-otp", "/auth/reset-password"])
def test_malformed_bodies_are_400(client, path):
    assert client.post(path, json={"email": "jane@example.com"}).status_code == 400


def test_forgot_password_fails_when_email_delivery_is_off(test_settings, clock, analyzer):
    services = build_services(
        test_settings,
        clock=clock,
        credentials=InMemoryCredentialStore(),
        documents=InMemoryDocumentStore(),
        analyzer=analyzer,
    )
    assert isinstance(services.notifier, EmailNotifier)

    with TestClient(create_app(services, start_sweeper=False)) as client:
        register_and_login(client)
        response = client.post("/auth/forgot-password", json={"email": "jane@example.com"})

    assert response.status_code == 502
    assert response.json() == {"error": "Could not send the verification code. Please try again."}


def test_verify_otp_attempts_are_limited_per_email(client, notifier, monkeypatch):
    monkeypatch.setattr("legalai.services.recovery.generate_otp", lambda: "482913")
    register_and_login(client)
    client.post("/auth/forgot-password", json={"email": "jane@example.com"})

    for _ in range(5):
        response = client.post("/auth/verify-otp", json={"email": "Jane@Example.com", "otp": "000000"})
        assert response.status_code == 400

    response = client.post("/auth/verify-otp", json={"email": "jane@example.com", "otp": "482913"})
    assert response.status_code == 429
    assert response.json()["waitUnit"] == "minutes"
    assert response.json()["error"].startswith("Attempt limit reached for code verification")


def test_resend_otp_shares_the_reset_request_limit(client):
    register_and_login(client)
    client.post("/auth/forgot-password", json={"email": "jane@example.com"})
    for _ in range(4):
        assert client.post("/auth/resend-otp", json={"email": "jane@example.com"}).status_code == 200

    assert client.post("/auth/resend-otp", json={"email": "jane@example.com"}).status_code == 429
