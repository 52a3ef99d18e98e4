# spentiva/services/mailer.py
"""Outbound email.

Sending never raises: when SMTP is not configured, or the server refuses the
message, the failure is logged and ``send_email`` returns False. Routes hand
these functions to ``BackgroundTasks`` so a slow SMTP server never blocks a
response.
"""
import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Iterable, List, Optional

from spentiva.core.config import settings

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£"}


def currency_symbol(code: Optional[str]) -> str:
    return CURRENCY_SYMBOLS.get((code or "").upper(), code or "")


def send_email(to: str, subject: str, html_body: str) -> bool:
    if not settings.smtp_configured:
        logger.warning("SMTP not configured, skipping email to=%s subject=%s", to, subject)
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to
    msg.set_content("This message requires an HTML capable email client.")
    msg.add_alternative(html_body, subtype="html")

    try:
        if settings.SMTP_PORT == 465:
            server = smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15)
        else:
            server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15)
            server.starttls()
        with server:
            server.login(settings.SMTP_USER, settings.SMTP_PASS)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email to=%s subject=%s", to, subject)
        return False

    logger.info("Email sent to=%s subject=%s", to, subject)
    return True


def _layout(title: str, body: str) -> str:
    return (
        "<html><body style=\"font-family:Arial,sans-serif;color:#1f2937\">"
        f"<h2 style=\"color:#4f46e5\">{html.escape(title)}</h2>"
        f"{body}"
        "<p style=\"color:#6b7280;font-size:12px\">Spentiva</p>"
        "</body></html>"
    )


def send_welcome_email(to: str, name: str) -> bool:
    body = f"<p>Hi {html.escape(name)},</p><p>Welcome to Spentiva! Start by creating your first tracker.</p>"
    return send_email(to, "Welcome to Spentiva! 🎉", _layout("Welcome to Spentiva", body))


_OTP_SUBJECTS = {
    "verification": "Verify Your Email - Spentiva",
    "reset": "Reset Your Password - Spentiva",
    "tracker-delete": "Confirm Tracker Deletion - Spentiva",
}


def send_otp_email(to: str, name: str, otp: str, purpose: str = "verification") -> bool:
    body = (
        f"<p>Hi {html.escape(name or '')},</p>"
        f"<p>Your code is <strong style=\"font-size:20px;letter-spacing:4px\">{otp}</strong></p>"
        f"<p>It expires in {settings.OTP_EXPIRE_MINUTES} minutes.</p>"
    )
    subject = _OTP_SUBJECTS.get(purpose, "Your Spentiva code")
    return send_email(to, subject, _layout(subject, body))


def send_password_reset_success_email(to: str, name: str) -> bool:
    body = f"<p>Hi {html.escape(name)},</p><p>Your password was changed. If this wasn't you, contact support.</p>"
    return send_email(to, "Password Reset Successful - Spentiva", _layout("Password changed", body))


def send_login_notification_email(to: str, name: str, device: str, when) -> bool:
    body = (
        f"<p>Hi {html.escape(name)},</p>"
        f"<p>New login at {when:%Y-%m-%d %H:%M} UTC from {html.escape(device or 'Unknown Device')}.</p>"
    )
    return send_email(to, "New Login to Your Spentiva Account", _layout("New login", body))


def send_tracker_invite_email(to: str, inviter: str, tracker_name: str, role: str) -> bool:
    body = (
        f"<p>{html.escape(inviter)} invited you to the tracker "
        f"<strong>{html.escape(tracker_name)}</strong> as {html.escape(role)}.</p>"
        f"<p><a href=\"{settings.APP_URL}/trackers\">Open Spentiva</a> to accept or reject the invite.</p>"
    )
    return send_email(to, f"You're invited to {tracker_name} - Spentiva", _layout("Tracker invite", body))


def send_support_ticket_user_email(to: str, name: str, ticket_id: str, subject: str, ticket_type: str) -> bool:
    body = (
        f"<p>Hi {html.escape(name)},</p>"
        f"<p>We received your ticket <strong>{ticket_id}</strong> ({html.escape(ticket_type)}): "
        f"{html.escape(subject)}</p><p>Our team will get back to you soon.</p>"
    )
    return send_email(to, f"Support Ticket Created - {ticket_id}", _layout("Ticket received", body))


def send_support_ticket_agent_email(ticket_id: str, user_email: str, subject: str, description: str) -> bool:
    if not settings.SUPPORT_EMAIL:
        logger.info("SUPPORT_EMAIL not set, agent notification skipped for %s", ticket_id)
        return False
    body = (
        f"<p><strong>{ticket_id}</strong> from {html.escape(user_email)}</p>"
        f"<p><strong>{html.escape(subject)}</strong></p><p>{html.escape(description)}</p>"
    )
    return send_email(settings.SUPPORT_EMAIL, f"New Support Ticket - {ticket_id}", _layout("New ticket", body))


def send_transaction_notification_email(
    recipients: Iterable[str],
    actor_name: str,
    tracker_name: str,
    currency: str,
    amount,
    category: str,
    kind: str = "expense",
) -> List[str]:
    """Notify every recipient about a new transaction; returns the addresses that were sent."""
    is_expense = kind != "income"
    symbol = currency_symbol(currency)
    verb = "spent" if is_expense else "received"
    subject = f"{'💸' if is_expense else '💰'} {symbol}{amount} {verb} - {tracker_name}"
    body = (
        f"<p>{html.escape(actor_name)} added a {html.escape(kind)} of "
        f"<strong>{symbol}{amount}</strong> in {html.escape(category)} to {html.escape(tracker_name)}.</p>"
    )
    sent = []
    for email in recipients:
        if send_email(email, subject, _layout("New transaction", body)):
            sent.append(email)
    return sent
