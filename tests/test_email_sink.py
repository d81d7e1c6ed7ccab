"""Tests for the EmailJS and logging notification sinks.

HTTP traffic goes through ``httpx.MockTransport``; nothing leaves the
process.
"""

from __future__ import annotations

import json

import httpx
import pytest

from config.settings import Settings
from src.models.enums import DeliveryState, NotificationKind
from src.models.notification import NotificationMessage
from src.services.email_sink import EmailJSSink, LoggingSink, create_sink
from src.services.errors import SinkUnavailable


def _message() -> NotificationMessage:
    return NotificationMessage(
        to="owner@example.com",
        subject="URGENT: Compliance Item Overdue - VAT",
        body="Compliance Item Overdue",
        item_id="item-1",
        kind=NotificationKind.OVERDUE,
        metadata={"item_title": "VAT", "notification_type": "overdue"},
    )


def _sink(handler, **overrides) -> EmailJSSink:
    fields = {
        "service_id": "service_x",
        "template_id": "template_y",
        "public_key": "public_z",
    }
    fields.update(overrides)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmailJSSink(client=client, **fields)


# ---------------------------------------------------------------------------
# EmailJSSink
# ---------------------------------------------------------------------------


class TestEmailJSSink:
    async def test_successful_send_posts_template_params(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, text="OK")

        sink = _sink(handler, private_key="secret")
        result = await sink.send(_message())

        assert result.state == DeliveryState.SENT
        assert result.sent is True
        assert len(captured) == 1
        assert str(captured[0].url) == "https://api.emailjs.com/api/v1.0/email/send"

        payload = json.loads(captured[0].content)
        assert payload["service_id"] == "service_x"
        assert payload["template_id"] == "template_y"
        assert payload["user_id"] == "public_z"
        assert payload["accessToken"] == "secret"
        params = payload["template_params"]
        assert params["to_email"] == "owner@example.com"
        assert params["subject"].startswith("URGENT")
        assert params["message"] == "Compliance Item Overdue"
        assert params["item_title"] == "VAT"
        assert params["notification_type"] == "overdue"

    async def test_access_token_omitted_without_private_key(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, text="OK")

        await _sink(handler).send(_message())
        assert "accessToken" not in bodies[0]

    async def test_error_response_is_failed_result(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="The template ID is invalid")

        result = await _sink(handler).send(_message())
        assert result.state == DeliveryState.FAILED
        assert result.sent is False
        assert "400" in (result.error or "")

    async def test_transport_error_retries_then_raises(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SinkUnavailable):
            await _sink(handler).send(_message())
        assert calls == 3

    async def test_transient_error_recovers(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, text="OK")

        result = await _sink(handler).send(_message())
        assert result.state == DeliveryState.SENT
        assert calls == 2

    async def test_not_configured_sends_nothing(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        sink = _sink(handler, template_id="")
        assert sink.is_configured is False
        result = await sink.send(_message())
        assert result.state == DeliveryState.NOT_CONFIGURED
        assert result.error == "EmailJS not configured"


# ---------------------------------------------------------------------------
# LoggingSink and factory
# ---------------------------------------------------------------------------


class TestLoggingSink:
    async def test_records_message(self) -> None:
        sink = LoggingSink()
        result = await sink.send(_message())
        assert result.state == DeliveryState.LOGGED
        assert result.sent is True
        assert sink.messages[0].item_id == "item-1"

    async def test_retained_messages_are_bounded(self) -> None:
        sink = LoggingSink(max_messages=3)
        for _ in range(10):
            await sink.send(_message())
        assert len(sink.messages) == 3


class TestCreateSink:
    async def test_log_provider(self) -> None:
        assert isinstance(create_sink(Settings(email_provider="log")), LoggingSink)

    async def test_emailjs_provider_reflects_settings(self) -> None:
        cfg = Settings(
            email_provider="emailjs",
            emailjs_service_id="s",
            emailjs_template_id="t",
            emailjs_public_key="p",
        )
        sink = create_sink(cfg)
        try:
            assert isinstance(sink, EmailJSSink)
            assert sink.is_configured is True
            assert cfg.email_configured is True
        finally:
            await sink.close()
