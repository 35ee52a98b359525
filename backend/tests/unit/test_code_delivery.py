"""Tests for one-time code delivery (Resend email and log-only sender)."""

import json
import logging
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from pydantic import SecretStr

from auth_service.core.config import Settings
from auth_service.core.email import send_verification_code_email
from auth_service.services.code_delivery import (
    EmailCodeSender,
    LogCodeSender,
    code_sender_from_settings,
)

_PATCH_SEND_EMAIL = "auth_service.services.code_delivery.send_verification_code_email"
_REAL_ASYNC_CLIENT = httpx.AsyncClient


def _mock_client(handler):
    """Patch httpx.AsyncClient so requests go to ``handler``."""
    return patch(
        "auth_service.core.email.httpx.AsyncClient",
        lambda: _REAL_ASYNC_CLIENT(transport=httpx.MockTransport(handler)),
    )


class TestSendVerificationCodeEmail:
    async def test_posts_code_to_resend(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"id": "email-1"})

        with _mock_client(handler):
            await send_verification_code_email(
                to_email="u@test.io", code="123456", ttl_minutes=5
            )

        assert len(captured) == 1
        body = json.loads(captured[0].content)
        assert body["to"] == "u@test.io"
        assert "123456" in body["text"]
        assert "5 minutes" in body["text"]
        assert captured[0].headers["Authorization"].startswith("Bearer")

    async def test_delivery_failure_is_logged_not_raised(self, caplog):
        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        with _mock_client(handler), caplog.at_level(logging.WARNING):
            await send_verification_code_email(
                to_email="u@test.io", code="123456", ttl_minutes=5
            )

        assert "Failed to send verification code email" in caplog.text
        assert "123456" not in caplog.text


class TestCodeSenders:
    async def test_email_sender_forwards_code(self):
        sender = EmailCodeSender(ttl_minutes=7)

        with patch(_PATCH_SEND_EMAIL, new_callable=AsyncMock) as mock_send:
            await sender.send(identifier="u@test.io", code="654321")

        mock_send.assert_awaited_once_with(
            to_email="u@test.io", code="654321", ttl_minutes=7
        )

    async def test_log_sender_never_logs_code(self, caplog):
        with caplog.at_level(logging.INFO):
            await LogCodeSender().send(identifier="u@test.io", code="654321")

        assert "u@test.io" in caplog.text
        assert "654321" not in caplog.text

    @pytest.mark.parametrize(
        ("api_key", "expected"),
        [("", LogCodeSender), ("re_test_key", EmailCodeSender)],
    )
    def test_sender_chosen_from_settings(self, api_key, expected):
        sender = code_sender_from_settings(Settings(resend_api_key=SecretStr(api_key)))
        assert isinstance(sender, expected)
