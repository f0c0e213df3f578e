import json
import logging
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest

from fulfillment_api.core.constants import NotificationType
from fulfillment_api.core.settings import AppSettings
from fulfillment_api.services import notifications
from fulfillment_api.services.email import EmailClient, EmailDeliveryError
from fulfillment_api.services.notifications import NotificationService, render_notification
from tests.conftest import PLATFORM_ID, FakeSession, make_user


def email_settings(**overrides):
    values = dict(RESEND_API_KEY="re_test", EMAIL_FROM="ops@example.com", CLIENT_URL="https://app.example.com/")
    values.update(overrides)
    return AppSettings(**values)


@pytest.mark.anyio
async def test_email_client_posts_to_provider():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "msg_1"})

    client = EmailClient(settings=email_settings(), transport=httpx.MockTransport(handler))
    message_id = await client.send(["a@example.com"], "Hello", "<p>Hi</p>")
    assert message_id == "msg_1"
    assert seen["auth"] == "Bearer re_test"
    assert seen["body"]["from"] == "ops@example.com"
    assert seen["body"]["to"] == ["a@example.com"]


@pytest.mark.anyio
async def test_email_client_wraps_provider_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "bad"}))
    client = EmailClient(settings=email_settings(), transport=transport)
    with pytest.raises(EmailDeliveryError, match="422"):
        await client.send(["a@example.com"], "Hello", "<p>Hi</p>")


@pytest.mark.anyio
async def test_email_client_rejects_non_json_success_body():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>OK</html>"))
    client = EmailClient(settings=email_settings(), transport=transport)
    with pytest.raises(EmailDeliveryError, match="invalid response"):
        await client.send(["a@example.com"], "Hello", "<p>Hi</p>")


@pytest.mark.anyio
async def test_email_client_requires_api_key():
    client = EmailClient(settings=email_settings(RESEND_API_KEY=None))
    with pytest.raises(EmailDeliveryError, match="not configured"):
        await client.send(["a@example.com"], "Hello", "<p>Hi</p>")


def make_order(**extra):
    fields = dict(
        id=uuid.uuid4(),
        order_id="ORD-20250114-001",
        platform_id=PLATFORM_ID,
        contact_email="planner@client.example.com",
        venue_name="Expo Hall 3",
        pricing=SimpleNamespace(final_total=1250),
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


def test_render_includes_total_and_link():
    subject, html = render_notification("QUOTE_SENT", make_order())
    assert subject == "Quote ready for order ORD-20250114-001"
    assert "1,250.00" in html
    assert "/orders/ORD-20250114-001" in html


def test_render_escapes_order_fields_in_html():
    subject, html = render_notification(
        "IN_TRANSIT", make_order(venue_name="<script>alert(1)</script>", order_id="ORD-1\"&")
    )
    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
    assert "/orders/ORD-1&quot;&amp;\"" in html
    assert subject == "Order ORD-1\"& is on its way"


class FakeLogRepo:
    store = {}

    def __init__(self, _session):
        pass

    async def get(self, platform_id, log_id):
        return self.store.get(log_id)

    async def create(self, platform_id, fields):
        log = SimpleNamespace(
            id=uuid.uuid4(),
            platform_id=platform_id,
            attempts=0,
            last_attempt_at=None,
            sent_at=None,
            message_id=None,
            error_message=None,
            created_at=datetime.now(tz=timezone.utc),
            **fields,
        )
        self.store[log.id] = log
        return log

    async def update(self, log, fields):
        for key, value in fields.items():
            setattr(log, key, value)
        return log


class FakeUserRepo:
    admins = ["admin@example.com"]

    def __init__(self, _session):
        pass

    async def admin_emails(self, platform_id):
        return list(self.admins)


class BrokenUserRepo(FakeUserRepo):
    async def admin_emails(self, platform_id):
        raise RuntimeError("database went away")


class FakeOrderRepo:
    def __init__(self, _session):
        pass

    async def get(self, platform_id, ref):
        return make_order(id=ref)


class FakeEmail:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send(self, to, subject, html):
        if self.fail:
            raise EmailDeliveryError("provider down")
        self.sent.append((to, subject))
        return "msg_42"


@pytest.fixture
def fakes(monkeypatch):
    FakeLogRepo.store = {}
    monkeypatch.setattr(notifications, "NotificationLogRepository", FakeLogRepo, raising=True)
    monkeypatch.setattr(notifications, "UserRepository", FakeUserRepo, raising=True)
    monkeypatch.setattr(notifications, "OrderRepository", FakeOrderRepo, raising=True)
    return FakeLogRepo


@pytest.mark.anyio
async def test_notify_sends_to_admins_and_contact(fakes):
    email = FakeEmail()
    log = await NotificationService(FakeSession(), email_client=email).notify_order(
        make_order(), NotificationType.ORDER_SUBMITTED
    )
    assert log.status == "SENT"
    assert log.attempts == 1
    assert log.message_id == "msg_42"
    assert email.sent[0][0] == ["admin@example.com", "planner@client.example.com"]


@pytest.mark.anyio
async def test_failed_delivery_is_recorded(fakes):
    log = await NotificationService(FakeSession(), email_client=FakeEmail(fail=True)).notify_order(
        make_order(), NotificationType.QUOTE_SENT
    )
    assert log.status == "FAILED"
    assert log.error_message == "provider down"


@pytest.mark.anyio
async def test_unexpected_errors_are_logged_not_raised(fakes, monkeypatch, caplog):
    monkeypatch.setattr(notifications, "UserRepository", BrokenUserRepo, raising=True)
    with caplog.at_level(logging.ERROR, logger="fulfillment_api.services.notifications"):
        result = await NotificationService(FakeSession(), email_client=FakeEmail()).notify_order(
            make_order(), NotificationType.ORDER_CLOSED
        )
    assert result is None
    assert "Failed to send ORDER_CLOSED notification for order ORD-20250114-001" in caplog.text


@pytest.mark.anyio
async def test_retry_endpoint_resends_failed_notification(client_for, fakes, monkeypatch):
    monkeypatch.setattr(notifications, "EmailClient", lambda: FakeEmail(), raising=True)
    failed = await FakeLogRepo(None).create(
        PLATFORM_ID,
        {"order_id": uuid.uuid4(), "notification_type": "QUOTE_SENT", "recipients": ["a@example.com"], "status": "FAILED"},
    )
    async with client_for(make_user("ADMIN")) as ac:
        resp = await ac.post(f"/api/v1/notification-logs/{failed.id}/retry")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Notification sent"
        assert resp.json()["data"]["attempts"] == 1

        again = await ac.post(f"/api/v1/notification-logs/{failed.id}/retry")
    assert again.status_code == 400
    assert again.json()["message"] == "Notification was already sent"


@pytest.mark.anyio
async def test_garbled_provider_response_marks_log_failed(fakes):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="not json"))
    email = EmailClient(settings=email_settings(), transport=transport)
    log = await NotificationService(FakeSession(), email_client=email).notify_order(
        make_order(), NotificationType.ORDER_CONFIRMED
    )
    assert log.status == "FAILED"
    assert log.error_message.startswith("Email provider returned an invalid response (200)")
