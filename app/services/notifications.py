"""Email notifications (Mailgun HTTP API or SMTP; logged in development when neither is configured)."""
from __future__ import annotations

import html
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import httpx

from app.config import Settings

logger = logging.getLogger(__name__)

MAILGUN_US_BASE = "https://api.mailgun.net"
MAILGUN_EU_BASE = "https://api.eu.mailgun.net"


def send_email(settings: Settings, to_email: str, subject: str, html_content: str, text_content: str | None = None) -> bool:
    """Send one email. Returns True if sent (or logged in development), False on failure."""
    if settings.mailgun_api_key and settings.mailgun_domain:
        return _send_email_mailgun(settings, to_email, subject, html_content, text_content)
    if settings.smtp_host and settings.smtp_user:
        return _send_email_smtp(settings, to_email, subject, html_content, text_content)
    if settings.is_development:
        logger.info("[Email] (dev, not sent) to=%s subject=%s\n%s", to_email, subject, text_content or html_content[:200])
        return True
    logger.warning("[Email] NOT SENT: to=%s subject=%s. Configure SMTP_* or MAILGUN_* settings.", to_email, subject)
    return False


def _send_email_mailgun(settings: Settings, to_email: str, subject: str, html_content: str, text_content: str | None) -> bool:
    base = (settings.mailgun_base_url or MAILGUN_US_BASE).rstrip("/")
    domain = settings.mailgun_domain.lower()
    data = {
        "from": f"{settings.mailgun_from_name} <{settings.mailgun_from_email}>",
        "to": to_email,
        "subject": subject,
        "text": text_content or "",
        "html": html_content or "",
    }
    try:
        with httpx.Client(timeout=10.0) as client:
            r = client.post(f"{base}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
            if r.status_code == 401 and base == MAILGUN_US_BASE:
                logger.info("[Mailgun] 401 with US endpoint. Retrying with EU endpoint...")
                r = client.post(f"{MAILGUN_EU_BASE}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
    except httpx.HTTPError as e:
        logger.error("[Mailgun] request failed: to=%s error=%s: %s", to_email, type(e).__name__, e)
        return False
    if 200 <= r.status_code < 300:
        logger.info("[Mailgun] sent: to=%s status=%s", to_email, r.status_code)
        return True
    logger.error("[Mailgun] API failed: status=%s to=%s body=%s", r.status_code, to_email, r.text[:500])
    return False


def _send_email_smtp(settings: Settings, to_email: str, subject: str, html_content: str, text_content: str | None) -> bool:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from
    msg["To"] = to_email
    if text_content:
        msg.attach(MIMEText(text_content, "plain", "utf-8"))
    msg.attach(MIMEText(html_content, "html", "utf-8"))
    try:
        context = ssl.create_default_context()
        if settings.smtp_secure:
            server = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, context=context, timeout=10)
        else:
            server = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10)
            server.starttls(context=context)
        with server:
            server.login(settings.smtp_user, settings.smtp_pass)
            server.sendmail(settings.smtp_from, [to_email], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error("[SMTP] send failed: to=%s error=%s: %s", to_email, type(e).__name__, e)
        return False
    logger.info("[SMTP] sent: to=%s subject=%s", to_email, subject)
    return True


def _layout(title: str, body_html: str, button_label: str | None = None, button_url: str | None = None) -> str:
    button = ""
    if button_label and button_url:
        button = (
            f'<p style="text-align:center"><a href="{html.escape(button_url)}" '
            f'style="display:inline-block;background:#2563eb;color:#fff;padding:14px 28px;'
            f'text-decoration:none;border-radius:8px;font-weight:bold">{html.escape(button_label)}</a></p>'
        )
    return (
        '<div style="font-family:-apple-system,Segoe UI,Roboto,sans-serif;max-width:600px;margin:0 auto;color:#333">'
        f'<h2 style="color:#2563eb">{html.escape(title)}</h2>{body_html}{button}'
        '<p style="color:#6b7280;font-size:12px">Sent via Lumina</p></div>'
    )


def portal_url(settings: Settings, token: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}/client/{token}"


def dashboard_url(settings: Settings, link_id: int) -> str:
    return f"{settings.frontend_url.rstrip('/')}/dashboard/espace-client/{link_id}"


def send_questionnaire_link(
    settings: Settings, client_email: str, client_name: str, photographer_name: str, link_url: str, expires_at: str | None = None
) -> bool:
    expiry = f"This link is valid until {expires_at}." if expires_at else ""
    body = (
        f"<p>Hello {html.escape(client_name)},</p>"
        f"<p><strong>{html.escape(photographer_name)}</strong> invites you to fill in a questionnaire to prepare your photo project.</p>"
        f"<p>{html.escape(expiry)}</p>"
    )
    text = f"Hello {client_name},\n\n{photographer_name} invites you to fill in a questionnaire.\n\n{link_url}\n\n{expiry}"
    return send_email(
        settings,
        client_email,
        f"{photographer_name} - Questionnaire for your project",
        _layout("Welcome!", body, "Open the questionnaire", link_url),
        text,
    )


def send_questionnaire_validated(
    settings: Settings, photographer_email: str, client_name: str, event_type: str, link_url: str
) -> bool:
    body = f"<p><strong>{html.escape(client_name)}</strong> has validated the <em>{html.escape(event_type)}</em> questionnaire.</p>"
    text = f"{client_name} has validated the {event_type} questionnaire.\n\n{link_url}"
    return send_email(
        settings,
        photographer_email,
        f"Questionnaire validated - {client_name}",
        _layout("Questionnaire validated", body, "Open the client file", link_url),
        text,
    )


def send_contract_ready(settings: Settings, client_email: str, client_name: str, photographer_name: str, link_url: str) -> bool:
    body = (
        f"<p>Hello {html.escape(client_name)},</p>"
        f"<p>Your contract with <strong>{html.escape(photographer_name)}</strong> is ready to be reviewed and signed.</p>"
    )
    text = f"Hello {client_name},\n\nYour contract with {photographer_name} is ready to sign:\n{link_url}"
    return send_email(
        settings,
        client_email,
        f"{photographer_name} - Your contract is ready",
        _layout("Your contract is ready", body, "Review and sign", link_url),
        text,
    )


def send_contract_signed(settings: Settings, photographer_email: str, client_name: str, signed_at: str, link_url: str) -> bool:
    body = f"<p><strong>{html.escape(client_name)}</strong> signed the contract on {html.escape(signed_at)}.</p>"
    text = f"{client_name} signed the contract on {signed_at}.\n\n{link_url}"
    return send_email(
        settings,
        photographer_email,
        f"Contract signed - {client_name}",
        _layout("Contract signed", body, "Open the client file", link_url),
        text,
    )


def send_gallery_ready(
    settings: Settings, client_email: str, client_name: str, photographer_name: str, gallery_title: str, link_url: str
) -> bool:
    body = (
        f"<p>Hello {html.escape(client_name)},</p>"
        f"<p>Your gallery <strong>{html.escape(gallery_title)}</strong> from {html.escape(photographer_name)} is available.</p>"
    )
    text = f"Hello {client_name},\n\nYour gallery {gallery_title} is available:\n{link_url}"
    return send_email(
        settings,
        client_email,
        f"{photographer_name} - Your photos are ready",
        _layout("Your gallery is ready", body, "View the photos", link_url),
        text,
    )
