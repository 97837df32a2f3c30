"""Unit tests for the email hook: redirects, templates, webhook
signatures, send limits, delivery and request handling."""

import json
import time
from unittest.mock import AsyncMock

import httpx
import pytest

from nested.email import (
    EmailActionType,
    EmailRateLimiter,
    ResendSender,
    SendEmailHook,
    TransactionalType,
    auth_email,
    get_safe_redirect_url,
    is_allowed_redirect,
    is_valid_email,
    rate_limit_for,
    sign,
    transactional_email,
    verify,
)
from nested.email.templates import EmailTemplate
from nested.email.validation import SAFE_DEFAULT_URL, redirect_patterns
from nested.email.webhook import decode_secret
from nested.exceptions import ConfigurationError, EmailDeliveryError, WebhookVerificationError

# Matches the secret configured in test_settings
HOOK_SECRET = "v1,whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"
PATTERNS = ["https://nested.social", "https://*.nested.social", "http://localhost:*"]


# =============================================================================
# VALIDATION
# =============================================================================


@pytest.mark.parametrize(
    "url,allowed",
    [
        ("https://nested.social/welcome", True),
        ("https://app.nested.social/auth?x=1", True),
        ("http://localhost:5173/callback", True),
        ("https://evil.com/https://nested.social", False),
        ("https://nested.social.evil.com", False),
        ("https://user:pw@nested.social", False),
        ("javascript:alert(1)", False),
        ("http://nested.social", False),
        ("", False),
        (None, False),
    ],
)
def test_is_allowed_redirect(url, allowed):
    assert is_allowed_redirect(url, PATTERNS) is allowed


def test_safe_redirect_prefers_url_then_fallback(test_settings):
    assert get_safe_redirect_url("https://nested.social/a", "https://nested.social/b", test_settings) == (
        "https://nested.social/a"
    )
    assert get_safe_redirect_url("https://evil.com", "https://nested.social/b", test_settings) == (
        "https://nested.social/b"
    )


def test_safe_redirect_falls_back_to_site_url(test_settings):
    test_settings.site_url = "https://app.nested.social"
    assert get_safe_redirect_url("https://evil.com", None, test_settings) == "https://app.nested.social"


def test_safe_redirect_final_default(test_settings):
    test_settings.site_url = "https://evil.com"
    assert get_safe_redirect_url(None, None, test_settings) == SAFE_DEFAULT_URL


def test_redirect_patterns_from_settings(test_settings):
    test_settings.allowed_redirect_patterns = " https://a.edu , ,https://b.edu"
    assert redirect_patterns(test_settings) == ["https://a.edu", "https://b.edu"]


@pytest.mark.parametrize(
    "email,valid",
    [("ada@nyu.edu", True), ("a b@nyu.edu", False), ("ada@nyu", False), ("", False), (None, False)],
)
def test_is_valid_email(email, valid):
    assert is_valid_email(email) is valid


def test_rate_limit_for(test_settings):
    assert rate_limit_for("auth_email_change", test_settings) == 3
    assert rate_limit_for("transactional", test_settings) == 20
    assert rate_limit_for("auth_reauthentication", test_settings) == test_settings.email_rate_limit_per_hour

    test_settings.email_rate_limit_overrides = {"auth_signup": 1}
    assert rate_limit_for("auth_signup", test_settings) == 1


# =============================================================================
# TEMPLATES
# =============================================================================


class TestTemplates:
    def test_confirm_link_uses_safe_redirect(self, test_settings):
        email = auth_email(
            EmailActionType.SIGNUP,
            token_hash="abc",
            redirect_to="https://evil.com",
            site_url="https://nested.social",
            settings=test_settings,
        )

        assert email.subject == "Confirm your Nested account"
        assert "https://abcdefgh.supabase.co/auth/v1/verify?token=abc&amp;type=signup" in email.html
        assert "redirect_to=https%3A%2F%2Fnested.social" in email.text
        assert "evil.com" not in email.html

    def test_reauthentication_shows_code(self, test_settings):
        email = auth_email(EmailActionType.REAUTHENTICATION, token="123456", settings=test_settings)

        assert "123456" in email.html
        assert "/auth/v1/verify" not in email.html

    def test_new_email_is_escaped(self, test_settings):
        email = auth_email(
            EmailActionType.EMAIL_CHANGE,
            token_hash="t",
            new_email="<b>x</b>@nyu.edu",
            settings=test_settings,
        )
        assert "&lt;b&gt;x&lt;/b&gt;@nyu.edu" in email.html

    def test_transactional_escapes_user_text(self, test_settings):
        email = transactional_email(
            TransactionalType.NOTIFICATION,
            recipient_name="<script>alert(1)</script>",
            message="Hi & welcome",
            settings=test_settings,
        )

        assert "<script>" not in email.html
        assert "&lt;script&gt;" in email.html
        assert "Hi &amp; welcome" in email.html
        assert email.subject == "New notification from Nested"

    def test_disallowed_cta_becomes_site_url(self, test_settings):
        email = transactional_email(
            TransactionalType.MATCH,
            cta_url="https://evil.com/phish",
            settings=test_settings,
        )

        assert "evil.com" not in email.html
        assert 'href="https://nested.social"' in email.html

    def test_no_cta_no_button(self, test_settings):
        email = transactional_email(TransactionalType.WELCOME, recipient_name="Ada", settings=test_settings)

        assert "Welcome, Ada!" in email.html
        assert 'class="button"' not in email.html

    def test_event_reminder_default(self, test_settings):
        email = transactional_email(TransactionalType.EVENT_REMINDER, settings=test_settings)
        assert "don&#39;t forget about your upcoming event!" in email.html

    def test_unknown_kind_is_generic(self, test_settings):
        email = transactional_email(None, subject="Hello", settings=test_settings)

        assert email.subject == "Hello"
        assert email.text == "You have a message from Nested."


# =============================================================================
# WEBHOOK SIGNATURES
# =============================================================================


def _signed_headers(body: bytes, ts: int | None = None, secret: str = HOOK_SECRET) -> dict[str, str]:
    ts = int(time.time()) if ts is None else ts
    return {
        "webhook-id": "msg_1",
        "webhook-timestamp": str(ts),
        "webhook-signature": sign(decode_secret(secret), "msg_1", ts, body),
    }


class TestWebhook:
    def test_valid_signature(self):
        body = b'{"hello": "world"}'
        assert verify(HOOK_SECRET, body, _signed_headers(body)) == {"hello": "world"}

    def test_any_listed_signature_matches(self):
        body = b"{}"
        headers = _signed_headers(body)
        headers["webhook-signature"] = "v1,bm9wZQ== " + headers["webhook-signature"]
        assert verify(HOOK_SECRET, body, headers) == {}

    def test_tampered_body(self):
        headers = _signed_headers(b'{"a": 1}')
        with pytest.raises(WebhookVerificationError):
            verify(HOOK_SECRET, b'{"a": 2}', headers)

    def test_wrong_secret(self):
        body = b"{}"
        headers = _signed_headers(body, secret="whsec_b3RoZXJzZWNyZXQ=")
        with pytest.raises(WebhookVerificationError):
            verify(HOOK_SECRET, body, headers)

    @pytest.mark.parametrize("offset", [-301, 301])
    def test_timestamp_outside_tolerance(self, offset):
        now = 1_700_000_000
        body = b"{}"
        headers = _signed_headers(body, ts=now + offset)
        with pytest.raises(WebhookVerificationError, match="timestamp"):
            verify(HOOK_SECRET, body, headers, now=now)

    def test_timestamp_at_tolerance_edge(self):
        now = 1_700_000_000
        body = b"{}"
        assert verify(HOOK_SECRET, body, _signed_headers(body, ts=now - 300), now=now) == {}

    def test_missing_headers(self):
        with pytest.raises(WebhookVerificationError, match="Missing"):
            verify(HOOK_SECRET, b"{}", {"webhook-id": "x"})

    def test_non_ascii_signature_is_rejected(self):
        body = b"{}"
        headers = _signed_headers(body)
        headers["webhook-signature"] = "v1,\u00e9\u00e9\u00e9"
        with pytest.raises(WebhookVerificationError, match="No matching"):
            verify(HOOK_SECRET, body, headers)

    def test_undecodable_body_is_rejected(self):
        body = b"\xff\xfe"
        with pytest.raises(WebhookVerificationError, match="not valid JSON"):
            verify(HOOK_SECRET, body, _signed_headers(body))

    def test_invalid_secret(self):
        with pytest.raises(WebhookVerificationError):
            decode_secret("whsec_***")


# =============================================================================
# SEND LIMITS
# =============================================================================


def test_rate_limiter_counts_only_recorded_sends(test_settings):
    test_settings.email_rate_limit_overrides = {"auth_signup": 2}
    limiter = EmailRateLimiter(test_settings)

    assert limiter.allow("u1", "auth_signup")
    assert limiter.allow("u1", "auth_signup")
    limiter.record("u1", "auth_signup")
    limiter.record("u1", "auth_signup")

    assert not limiter.allow("u1", "auth_signup")
    assert limiter.allow("u2", "auth_signup")
    assert limiter.allow("u1", "auth_recovery")
    assert limiter.remaining("u1", "auth_signup") == 0

    limiter.reset()
    assert limiter.allow("u1", "auth_signup")


# =============================================================================
# DELIVERY
# =============================================================================

TEMPLATE = EmailTemplate("Subject", "<p>hi</p>", "hi")


@pytest.mark.asyncio
class TestResendSender:
    async def test_success_returns_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email_123"})

        sender = ResendSender("re_key", "Nested <hi@nested.social>", transport=httpx.MockTransport(handler))

        assert await sender.send("ada@nyu.edu", TEMPLATE, reply_to="team@nested.social") == "email_123"
        assert seen["auth"] == "Bearer re_key"
        assert seen["body"]["to"] == ["ada@nyu.edu"]
        assert seen["body"]["reply_to"] == "team@nested.social"

    async def test_provider_error(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(422, json={"message": "Invalid `to` field"})
        )
        sender = ResendSender("re_key", "x@nested.social", transport=transport)

        with pytest.raises(EmailDeliveryError) as exc_info:
            await sender.send("ada@nyu.edu", TEMPLATE)
        assert exc_info.value.status_code == 422

    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        sender = ResendSender("re_key", "x@nested.social", transport=httpx.MockTransport(handler))
        with pytest.raises(EmailDeliveryError):
            await sender.send("ada@nyu.edu", TEMPLATE)

    async def test_requires_api_key(self, test_settings):
        from pydantic import SecretStr

        test_settings.resend_api_key = SecretStr("")
        with pytest.raises(ConfigurationError):
            ResendSender.from_settings(test_settings)


# =============================================================================
# HOOK
# =============================================================================


def _auth_body(action="signup", email="ada@nyu.edu") -> bytes:
    return json.dumps(
        {
            "user": {"id": "user-1", "email": email},
            "email_data": {
                "token": "123456",
                "token_hash": "hash",
                "redirect_to": "https://nested.social/welcome",
                "email_action_type": action,
                "site_url": "https://nested.social",
            },
        }
    ).encode()


@pytest.fixture
def sender():
    mock = AsyncMock(spec=ResendSender)
    mock.send.return_value = "email_1"
    return mock


@pytest.fixture
def hook(sender, remote, test_settings):
    return SendEmailHook(sender, EmailRateLimiter(test_settings), remote, test_settings)


@pytest.mark.asyncio
class TestAuthHook:
    async def test_sends_signed_request(self, hook, sender):
        body = _auth_body()

        response = await hook.handle(body, _signed_headers(body))

        assert response.status_code == 200
        assert response.body == {}
        to, template = sender.send.call_args.args
        assert to == "ada@nyu.edu"
        assert template.subject == "Confirm your Nested account"

    async def test_bad_signature(self, hook, sender):
        headers = _signed_headers(_auth_body())

        response = await hook.handle(_auth_body(action="recovery"), headers)

        assert response.status_code == 401
        assert response.body == {"error": "Invalid webhook signature"}
        sender.send.assert_not_called()

    async def test_non_ascii_signature_is_unauthorized(self, hook, sender):
        headers = _signed_headers(_auth_body())
        headers["webhook-signature"] = "v1,\u00e9\u00e9\u00e9"

        response = await hook.handle(_auth_body(), headers)

        assert response.status_code == 401
        sender.send.assert_not_called()

    async def test_unknown_action(self, hook):
        body = _auth_body(action="phish")
        response = await hook.handle(body, _signed_headers(body))
        assert response.status_code == 400

    async def test_invalid_recipient(self, hook):
        body = _auth_body(email="not-an-email")
        response = await hook.handle(body, _signed_headers(body))
        assert response.body == {"error": "Invalid email address"}

    async def test_malformed_payload(self, hook):
        body = b'{"user": {}}'
        response = await hook.handle(body, _signed_headers(body))
        assert response.status_code == 400

    async def test_missing_secret(self, hook, test_settings):
        from pydantic import SecretStr

        test_settings.send_email_hook_secret = SecretStr("")
        body = _auth_body()

        response = await hook.handle(body, _signed_headers(body))

        assert response.status_code == 500
        assert response.body == {"error": "Server configuration error"}

    async def test_rate_limited(self, hook, sender, test_settings):
        test_settings.email_rate_limit_overrides = {"auth_signup": 1}
        body = _auth_body()

        first = await hook.handle(body, _signed_headers(body))
        second = await hook.handle(body, _signed_headers(body))

        assert first.status_code == 200
        assert second.status_code == 429
        assert sender.send.await_count == 1

    async def test_delivery_failure_shape(self, hook, sender):
        sender.send.side_effect = EmailDeliveryError("nope", status_code=500)
        body = _auth_body()

        response = await hook.handle(body, _signed_headers(body))

        assert response.status_code == 500
        assert response.body == {"error": {"http_code": 500, "message": "Failed to send email"}}

    async def test_failed_sends_do_not_count(self, hook, sender, test_settings):
        test_settings.email_rate_limit_overrides = {"auth_signup": 1}
        sender.send.side_effect = [EmailDeliveryError("nope"), "email_2"]
        body = _auth_body()

        await hook.handle(body, _signed_headers(body))
        retry = await hook.handle(body, _signed_headers(body))

        assert retry.status_code == 200


@pytest.mark.asyncio
class TestTransactional:
    async def test_requires_bearer(self, hook, sender):
        response = await hook.handle(b"{}", {})

        assert response.status_code == 401
        assert response.body == {"error": "Authorization required"}
        sender.send.assert_not_called()

    async def test_unknown_token(self, hook):
        response = await hook.handle(b"{}", {"authorization": "Bearer nope"})
        assert response.body == {"error": "Invalid or expired token"}

    async def test_sends_for_signed_in_user(self, hook, sender, remote):
        remote.users["tok"] = {"id": "user-1"}
        body = json.dumps({"to": "bo@nyu.edu", "type": "welcome", "recipientName": "Bo"}).encode()

        response = await hook.handle(body, {"authorization": "Bearer tok"})

        assert response.status_code == 200
        assert response.body == {"success": True, "id": "email_1"}
        assert "Welcome, Bo!" in sender.send.call_args.args[1].html

    async def test_unknown_type_is_generic(self, hook, sender, remote):
        remote.users["tok"] = {"id": "user-1"}
        body = json.dumps({"to": "bo@nyu.edu", "type": "promo", "message": "Hello"}).encode()

        response = await hook.handle(body, {"authorization": "Bearer tok"})

        assert response.status_code == 200
        assert sender.send.call_args.args[1].text == "Hello"

    async def test_invalid_recipient(self, hook, remote):
        remote.users["tok"] = {"id": "user-1"}
        response = await hook.handle(b'{"to": "nope"}', {"authorization": "Bearer tok"})
        assert response.body == {"error": "Valid recipient email required"}

    async def test_invalid_json(self, hook, remote):
        remote.users["tok"] = {"id": "user-1"}
        response = await hook.handle(b"not json", {"authorization": "Bearer tok"})
        assert response.body == {"error": "Invalid JSON body"}

    async def test_provider_not_configured(self, remote, test_settings):
        remote.users["tok"] = {"id": "user-1"}
        hook = SendEmailHook(None, EmailRateLimiter(test_settings), remote, test_settings)

        response = await hook.handle(b'{"to": "bo@nyu.edu"}', {"authorization": "Bearer tok"})

        assert response.status_code == 500
