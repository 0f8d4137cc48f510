from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .settings import settings


def backoff_message(
    service: str,
    image: str,
    engaged: bool,
    failures: int,
    last_failure_at: str | None,
) -> tuple[str, str]:
    """Subject and body for a respawn-backoff transition.

    `failures` is the consecutive failing-tick count at the time of the
    transition (before the reset, for a recovery).
    """
    if engaged:
        subject = f"BACKOFF: {service} ({image})"
        detail = (
            f"Respawning paused for {settings.backoff_s:g}s after {failures} consecutive ticks "
            f"observed dead replicas (threshold {settings.failure_threshold})."
        )
    else:
        subject = f"RECOVERED: {service} ({image})"
        detail = (
            f"No dead replicas for {settings.failure_reset_s:g}s; "
            f"cleared {failures} consecutive failure(s). Respawning is allowed again."
        )
    body = (
        f"Service: {service}\n"
        f"Image: {image}\n"
        f"Consecutive failures: {failures}\n"
        f"Last failure: {last_failure_at or 'n/a'}\n"
        f"Detail: {detail}"
    )
    return subject, body


def send_email(subject: str, body: str) -> bool:
    """Send an email if SMTP settings are configured.

    Environment variables:
      - LSR_ENABLE_EMAIL=true
      - LSR_SMTP_HOST / LSR_SMTP_PORT
      - LSR_SMTP_USER / LSR_SMTP_PASSWORD
      - LSR_EMAIL_FROM / LSR_EMAIL_TO
    """
    if not settings.enable_email:
        return False
    if not all(
        [
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_user,
            settings.smtp_password,
            settings.email_from,
            settings.email_to,
        ]
    ):
        return False

    try:
        msg = MIMEMultipart()
        msg["From"] = settings.email_from
        msg["To"] = settings.email_to
        msg["Subject"] = f"[lsr] {subject}"
        msg.attach(MIMEText(body, "plain"))

        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.email_from, [settings.email_to], msg.as_string())
        return True
    except (OSError, smtplib.SMTPException):
        return False


def send_backoff_alert(
    service: str,
    image: str,
    engaged: bool,
    failures: int,
    last_failure_at: str | None,
) -> bool:
    if not settings.enable_email:
        return False
    subject, body = backoff_message(service, image, engaged, failures, last_failure_at)
    return send_email(subject, body)
