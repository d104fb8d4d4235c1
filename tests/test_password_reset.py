"""Tests for the forgot/reset password flow."""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import TEST_PASSWORD, RecordingEmailService, bearer, login, run_in_app, signup
from tourbook.core.auth import hash_reset_token
from tourbook.core.exceptions import BadRequestError, InternalServerError, NotFoundError
from tourbook.models.base import as_utc, utcnow
from tourbook.schemas.auth import PasswordResetRequest
from tourbook.services import email as email_module
from tourbook.services.email import EmailService
from tourbook.services.password_reset import PasswordResetService
from tourbook.services.users import UserStore


def reset_url(token: str) -> str:
    return f"http://testserver/api/v1/users/reset-password/{token}"


async def _load(store: UserStore, email: str):
    return await store.find_by_email(email)


async def _expire_reset(store: UserStore, email: str) -> None:
    user = await store.find_by_email(email)
    user.password_reset_expires = utcnow() - timedelta(seconds=1)
    await store.save(user, skip_validation=True)


def forgot(client: TestClient, email: str):
    return client.post("/api/v1/users/forgot-password", json={"email": email})


def reset(client: TestClient, token: str, password: str, confirm: str = None):
    return client.patch(
        f"/api/v1/users/reset-password/{token}",
        json={"password": password, "password_confirm": confirm or password},
    )


# HTTP flow

def test_forgot_and_reset_password(client: TestClient, outbox: RecordingEmailService):
    """Forgot, reset, log in with the new password; the link works once."""
    old_token = signup(client, "b@x.com").json()["token"]

    response = forgot(client, "b@x.com")
    assert response.status_code == 200
    assert response.json()["message"] == "Token sent to email."
    assert len(outbox.outbox) == 1
    assert outbox.outbox[0]["recipient"] == "b@x.com"
    assert "valid for 10 minutes" in outbox.outbox[0]["subject"]

    raw_token = outbox.last_reset_token()
    stored = run_in_app(client, _load, "b@x.com")
    assert stored.password_reset_token == hash_reset_token(raw_token)
    assert stored.password_reset_token != raw_token

    response = reset(client, raw_token, "Fresh123")
    assert response.status_code == 200
    assert response.json()["message"] == "User logged in with new password."
    assert response.json()["token"]

    assert login(client, "b@x.com", "Fresh123").status_code == 200
    assert login(client, "b@x.com", TEST_PASSWORD).status_code == 401

    client.cookies.clear()
    stale = client.get("/api/v1/users/me", headers=bearer(old_token))
    assert stale.status_code == 401

    replay = reset(client, raw_token, "Another123")
    assert replay.status_code == 400
    assert replay.json()["message"] == "Token is invalid or has expired."

    cleared = run_in_app(client, _load, "b@x.com")
    assert cleared.password_reset_token is None
    assert cleared.password_reset_expires is None


def test_reset_with_expired_token(client: TestClient, outbox: RecordingEmailService):
    """An expired token is refused with the same message as an unknown one."""
    signup(client, "late@example.com")
    forgot(client, "late@example.com")
    raw_token = outbox.last_reset_token()
    run_in_app(client, _expire_reset, "late@example.com")

    expired = reset(client, raw_token, "Fresh123")
    unknown = reset(client, "0" * 64, "Fresh123")

    assert expired.status_code == 400
    assert expired.json()["message"] == "Token is invalid or has expired."
    assert unknown.json()["message"] == expired.json()["message"]
    assert login(client, "late@example.com").status_code == 200


def test_reset_password_mismatch(client: TestClient, outbox: RecordingEmailService):
    """A mismatched confirmation leaves the token usable."""
    signup(client, "typo@example.com")
    forgot(client, "typo@example.com")
    raw_token = outbox.last_reset_token()

    mismatch = reset(client, raw_token, "Fresh123", "Fresh124")
    retry = reset(client, raw_token, "Fresh123")

    assert mismatch.status_code == 400
    assert mismatch.json()["message"] == "Passwords do not match."
    assert retry.status_code == 200


def test_forgot_password_unknown_email(client: TestClient, outbox: RecordingEmailService):
    """Unknown addresses are reported and nothing is sent."""
    response = forgot(client, "nobody@example.com")

    assert response.status_code == 404
    assert response.json()["message"] == "There is no user with that email address."
    assert outbox.outbox == []


def test_forgot_password_delivery_failure(client: TestClient, outbox: RecordingEmailService):
    """A failed send leaves no reset pending."""
    signup(client, "nomail@example.com")
    outbox.fail = True

    response = forgot(client, "nomail@example.com")

    assert response.status_code == 500
    assert response.json()["status"] == "error"
    assert response.json()["message"] == "There was an error sending the email. Try again later."
    stored = run_in_app(client, _load, "nomail@example.com")
    assert stored.password_reset_token is None
    assert stored.password_reset_expires is None


def test_second_request_replaces_first_token(client: TestClient, outbox: RecordingEmailService):
    """Only the most recently mailed token is valid."""
    signup(client, "twice@example.com")
    forgot(client, "twice@example.com")
    first = outbox.last_reset_token()
    forgot(client, "twice@example.com")
    second = outbox.last_reset_token()

    assert first != second
    assert reset(client, first, "Fresh123").status_code == 400
    assert reset(client, second, "Fresh123").status_code == 200


# Service level

@pytest.mark.asyncio
async def test_request_reset_stores_only_digest(async_session, test_user):
    """The stored token is a digest with a ten minute expiry."""
    notifier = RecordingEmailService()
    service = PasswordResetService(expire_minutes=10)
    before = utcnow()

    await service.request_reset(async_session, "test@example.com", notifier, reset_url)

    raw_token = notifier.last_reset_token()
    assert len(raw_token) == 64
    assert raw_token in notifier.outbox[0]["body"]
    assert test_user.password_reset_token == hash_reset_token(raw_token)
    expires = as_utc(test_user.password_reset_expires)
    assert before + timedelta(minutes=10) <= expires <= utcnow() + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_request_reset_unknown_email(async_session, test_user):
    """Unknown email is NotFound."""
    with pytest.raises(NotFoundError):
        await PasswordResetService().request_reset(
            async_session, "missing@example.com", RecordingEmailService(), reset_url
        )


@pytest.mark.asyncio
async def test_request_reset_delivery_failure(async_session, test_user):
    """Delivery failure clears the pending token and surfaces a server error."""
    notifier = RecordingEmailService()
    notifier.fail = True

    with pytest.raises(InternalServerError) as exc_info:
        await PasswordResetService().request_reset(
            async_session, "test@example.com", notifier, reset_url
        )

    assert exc_info.value.status_code == 500
    assert exc_info.value.error_code == "INTERNAL_ERROR"
    assert test_user.password_reset_token is None
    assert test_user.password_reset_expires is None


@pytest.mark.asyncio
async def test_reset_password_consumes_token(async_session, test_user):
    """A token sets the password once and stamps the change time."""
    service = PasswordResetService()
    raw_token = service.issue_token(test_user)
    await UserStore(async_session).save(test_user, skip_validation=True)
    assert test_user.password_changed_at is None

    user = await service.reset_password(
        async_session,
        raw_token,
        PasswordResetRequest(password="Fresh123", password_confirm="Fresh123"),
    )

    assert user.id == test_user.id
    assert user.password_changed_at is not None
    assert user.password_reset_token is None

    with pytest.raises(BadRequestError):
        await service.reset_password(
            async_session,
            raw_token,
            PasswordResetRequest(password="Again1234", password_confirm="Again1234"),
        )


@pytest.mark.asyncio
async def test_reset_password_expired_token(async_session, test_user):
    """A token past its expiry is refused."""
    service = PasswordResetService()
    raw_token = service.issue_token(test_user)
    test_user.password_reset_expires = utcnow() - timedelta(minutes=1)
    await UserStore(async_session).save(test_user, skip_validation=True)

    with pytest.raises(BadRequestError) as exc_info:
        await service.reset_password(
            async_session,
            raw_token,
            PasswordResetRequest(password="Fresh123", password_confirm="Fresh123"),
        )

    assert exc_info.value.message == "Token is invalid or has expired."


@pytest.mark.asyncio
async def test_dev_mode_mail_does_not_log_reset_link(monkeypatch):
    """Without an SMTP host the notifier logs who and what, never the body."""
    records = []

    class RecordingLogger:
        def info(self, event, **kw):
            records.append((event, kw))

        error = info

    monkeypatch.setattr(email_module, "logger", RecordingLogger())
    raw_token = "a" * 64

    await EmailService().send("someone@example.com", "Reset", reset_url(raw_token))

    assert [event for event, _ in records] == ["email_dev_mode"]
    logged = records[0][1]
    assert logged["subject"] == "Reset"
    assert "someone@example.com" not in str(logged)
    assert raw_token not in str(logged)
