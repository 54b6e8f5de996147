from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .settings import Settings

log = logging.getLogger(__name__)


def send_email(settings: Settings, subject: str, body: str) -> bool:
    """Send an email if SMTP settings are configured.

    Environment variables:
      - VDR_ENABLE_EMAIL=true
      - VDR_SMTP_HOST / VDR_SMTP_PORT
      - VDR_SMTP_USER / VDR_SMTP_PASSWORD
      - VDR_EMAIL_FROM / VDR_EMAIL_TO
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
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.email_from, [settings.email_to], msg.as_string())
        return True
    except (smtplib.SMTPException, OSError) as e:
        log.warning("Could not send alert email '%s': %s", subject, e)
        return False


class EmailNotifier:
    """Reconciler notification hook that mails update and corruption notices."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def updated(self, container: str, old_version, new_version) -> None:
        send_email(
            self.settings,
            f"UPDATED: {container} {old_version} -> {new_version}",
            f"Container: {container}\nPrevious version: {old_version}\nNew version: {new_version}",
        )

    def excluded(self, container: str, detail: str) -> None:
        send_email(
            self.settings,
            f"EXCLUDED: {container} (corrupt state)",
            f"Container: {container}\nThe saved state could not be read and the container is no longer watched.\nDetail: {detail}",
        )
