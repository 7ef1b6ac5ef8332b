"""Transactional email through the Resend HTTP API.

Runs on the notification dispatcher's worker threads, so it uses the
synchronous httpx client.
"""

import html
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from dealdesk.commerce.notifications import EmailScenario, Recipient
from dealdesk.commerce.notifications.sink import LoggingEmailSender

from .config import Settings
from .logging_config import get_logger

logger = get_logger("dealdesk.email")

RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_TIMEOUT = 10.0
LINK_FIELDS = ("checkout_url", "project_url")


def _offer_received(d: Dict[str, Any]) -> Tuple[str, str]:
    return (
        f"New offer on {d['project_title']}",
        f"<p>{d['counterparty_name']} offered <strong>{d['offered_price']}</strong> "
        f"(listed at {d['original_price']}).</p>",
    )


def _offer_countered(d: Dict[str, Any]) -> Tuple[str, str]:
    return (
        f"Counter-offer on {d['project_title']}",
        f"<p>The seller countered with <strong>{d['offered_price']}</strong>.</p>",
    )


def _offer_accepted(d: Dict[str, Any]) -> Tuple[str, str]:
    body = f"<p>The offer of <strong>{d['offered_price']}</strong> was accepted.</p>"
    if d.get("checkout_url"):
        body += f'<p><a href="{d["checkout_url"]}">Complete your purchase</a></p>'
    return f"Offer accepted: {d['project_title']}", body


def _offer_rejected(d: Dict[str, Any]) -> Tuple[str, str]:
    return (
        f"Offer declined: {d['project_title']}",
        f"<p>The offer of {d['offered_price']} was declined.</p>",
    )


def _offer_expired(d: Dict[str, Any]) -> Tuple[str, str]:
    return (
        f"Offer expired: {d['project_title']}",
        f"<p>The offer of {d['offered_price']} expired without a response.</p>",
    )


def _escrow_released(d: Dict[str, Any]) -> Tuple[str, str]:
    return (
        f"Funds released for {d['project_title']}",
        f"<p><strong>{d['seller_receives']}</strong> has been released to you "
        f"(sale amount {d['amount']}).</p>",
    )


def _featured_expiring(d: Dict[str, Any]) -> Tuple[str, str]:
    return (
        f"Featured placement ending soon: {d['project_title']}",
        f"<p>The featured placement for <strong>{d['project_title']}</strong> ends on "
        f"{d['featured_until_display']}.</p>"
        f'<p><a href="{d["project_url"]}">Extend it from your project page</a></p>',
    )


TEMPLATES: Dict[EmailScenario, Callable[[Dict[str, Any]], Tuple[str, str]]] = {
    EmailScenario.OFFER_RECEIVED: _offer_received,
    EmailScenario.OFFER_COUNTERED: _offer_countered,
    EmailScenario.OFFER_ACCEPTED: _offer_accepted,
    EmailScenario.OFFER_REJECTED: _offer_rejected,
    EmailScenario.OFFER_EXPIRED: _offer_expired,
    EmailScenario.ESCROW_RELEASED: _escrow_released,
    EmailScenario.FEATURED_EXPIRING: _featured_expiring,
}


def render_email(
    scenario: EmailScenario,
    recipient: Recipient,
    payload: Any,
    base_url: str = "",
) -> Tuple[str, str]:
    """Build (subject, html) for a scenario."""
    data = payload.to_dict() if hasattr(payload, "to_dict") else dict(payload or {})
    # Payload strings end up in HTML
    data = {k: html.escape(v) if isinstance(v, str) else v for k, v in data.items()}
    # Links are stored app-relative
    for key in LINK_FIELDS:
        if data.get(key):
            data[key] = base_url.rstrip("/") + data[key]
    subject, body = TEMPLATES[scenario](data)
    greeting = f"<p>Hi {html.escape(recipient.name)},</p>"
    return subject, greeting + body


class ResendEmailSender:
    """EmailSender backed by Resend.

    When test_override is set every message goes to that address instead,
    with the intended recipient noted in the subject.
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        base_url: str = "",
        test_override: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.base_url = base_url
        self.test_override = test_override
        self._client = client or httpx.Client(timeout=DEFAULT_TIMEOUT)

    def send(self, scenario: EmailScenario, recipient: Recipient, payload: Any) -> bool:
        subject, body = render_email(scenario, recipient, payload, self.base_url)
        to = recipient.email
        if self.test_override:
            subject = f"[to {recipient.email}] {subject}"
            to = self.test_override

        try:
            response = self._client.post(
                RESEND_API_URL,
                json={"from": self.sender, "to": [to], "subject": subject, "html": body},
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Email send failed | scenario={scenario.value} | to={to} | error={e}")
            return False

        logger.info(f"Email sent | scenario={scenario.value} | to={to}")
        return True

    def close(self) -> None:
        self._client.close()


def build_email_sender(settings: Settings):
    """Resend when an API key is configured, otherwise log-only."""
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY not set; emails will only be logged")
        return LoggingEmailSender()
    return ResendEmailSender(
        api_key=settings.resend_api_key,
        sender=settings.email_from,
        base_url=settings.app_base_url,
        test_override=settings.email_test_override,
    )
