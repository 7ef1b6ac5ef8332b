"""Tests for email rendering and the Resend sender."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import httpx
import pytest
from app.config import Settings
from app.email import RESEND_API_URL, ResendEmailSender, build_email_sender, render_email

from dealdesk.commerce.notifications import EmailScenario, FeaturedExpiryEmailData, Recipient
from dealdesk.commerce.notifications.sink import LoggingEmailSender

RECIPIENT = Recipient(email="seller@example.com", name="Sam <Seller>")
OFFER_DATA = {
    "project_title": "CRM <beta>",
    "counterparty_name": "bob",
    "offered_price": "$400.00",
    "original_price": "$500.00",
}


class TestRenderEmail:
    def test_escapes_payload_and_name(self):
        subject, body = render_email(EmailScenario.OFFER_RECEIVED, RECIPIENT, OFFER_DATA)

        assert subject == "New offer on CRM &lt;beta&gt;"
        assert "Hi Sam &lt;Seller&gt;," in body
        assert "<strong>$400.00</strong>" in body
        assert "listed at $500.00" in body

    def test_checkout_link_is_absolute(self):
        data = {"project_title": "CRM", "offered_price": "$400.00", "checkout_url": "/checkout/p?offerId=o"}
        _, body = render_email(
            EmailScenario.OFFER_ACCEPTED, RECIPIENT, data, base_url="https://dealdesk.dev/"
        )
        assert 'href="https://dealdesk.dev/checkout/p?offerId=o"' in body

    def test_accepted_without_checkout(self):
        _, body = render_email(
            EmailScenario.OFFER_ACCEPTED, RECIPIENT, {"project_title": "CRM", "offered_price": "$1.00"}
        )
        assert "href" not in body

    def test_escrow_release(self):
        data = {"project_title": "CRM", "seller_receives": "$410.00", "amount": "$500.00"}
        subject, body = render_email(EmailScenario.ESCROW_RELEASED, RECIPIENT, data)
        assert subject == "Funds released for CRM"
        assert "$410.00" in body

    def test_featured_expiring(self):
        payload = FeaturedExpiryEmailData(
            project_id="proj-1",
            project_title="CRM",
            featured_until=datetime(2026, 3, 8, 12, 0, tzinfo=timezone.utc),
        )
        subject, body = render_email(
            EmailScenario.FEATURED_EXPIRING, RECIPIENT, payload, base_url="https://dealdesk.dev"
        )
        assert subject == "Featured placement ending soon: CRM"
        assert "ends on March 08, 2026" in body
        assert 'href="https://dealdesk.dev/projects/proj-1"' in body


class TestResendEmailSender:
    def make_sender(self, client, **kwargs):
        return ResendEmailSender(
            api_key="re_test", sender="Dealdesk <n@dealdesk.dev>", client=client, **kwargs
        )

    def test_posts_to_resend(self):
        client = MagicMock()
        sender = self.make_sender(client)

        assert sender.send(EmailScenario.OFFER_RECEIVED, RECIPIENT, OFFER_DATA) is True

        args, kwargs = client.post.call_args
        assert args == (RESEND_API_URL,)
        assert kwargs["headers"] == {"Authorization": "Bearer re_test"}
        assert kwargs["json"]["to"] == ["seller@example.com"]
        assert kwargs["json"]["from"] == "Dealdesk <n@dealdesk.dev>"

    def test_test_override_redirects(self):
        client = MagicMock()
        sender = self.make_sender(client, test_override="qa@dealdesk.dev")

        sender.send(EmailScenario.OFFER_RECEIVED, RECIPIENT, OFFER_DATA)

        payload = client.post.call_args.kwargs["json"]
        assert payload["to"] == ["qa@dealdesk.dev"]
        assert payload["subject"].startswith("[to seller@example.com] ")

    def test_http_error_returns_false(self):
        client = MagicMock()
        client.post.side_effect = httpx.ConnectError("unreachable")
        sender = self.make_sender(client)

        assert sender.send(EmailScenario.OFFER_RECEIVED, RECIPIENT, OFFER_DATA) is False

    def test_error_status_returns_false(self):
        request = httpx.Request("POST", RESEND_API_URL)
        client = MagicMock()
        client.post.return_value = httpx.Response(422, request=request)
        sender = self.make_sender(client)

        assert sender.send(EmailScenario.OFFER_RECEIVED, RECIPIENT, OFFER_DATA) is False

    def test_close(self):
        client = MagicMock()
        self.make_sender(client).close()
        client.close.assert_called_once()


class TestBuildEmailSender:
    @pytest.fixture
    def base(self):
        return {
            "supabase_url": "https://test.supabase.co",
            "supabase_secret_key": "k",
            "jwt_secret_key": "j",
        }

    def test_without_key_logs_only(self, base):
        sender = build_email_sender(Settings(**base, resend_api_key=None))
        assert isinstance(sender, LoggingEmailSender)

    def test_with_key_uses_resend(self, base):
        sender = build_email_sender(
            Settings(**base, resend_api_key="re_live", email_test_override="qa@dealdesk.dev")
        )
        assert isinstance(sender, ResendEmailSender)
        assert sender.test_override == "qa@dealdesk.dev"
        sender.close()
