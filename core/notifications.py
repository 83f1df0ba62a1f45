# core/notifications.py
import requests
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any, Callable, List, Optional
from core.config import settings
from core.logging_config import logger
from core.email_templates import render_email, render_in_app
from models.notification import EmailResult


# -----------------------------------------------------
# 📨 Send ops alert webhook (Discord, Slack, etc.)
# -----------------------------------------------------
def send_webhook_message(message: str):
    webhook_url = settings.ALERT_WEBHOOK_URL
    if not webhook_url:
        logger.debug("Alert webhook URL not configured; skipping.")
        return

    try:
        payload = {"content": message}
        response = requests.post(webhook_url, json=payload, timeout=10)
        logger.info(f"Alert webhook sent (status {response.status_code})")
    except Exception as e:
        logger.warning(f"Alert webhook failed: {e}")


# -----------------------------------------------------
# 📧 Send email (SMTP)
# -----------------------------------------------------
def send_email(
    subject: str,
    body: str,
    to: str = None,
    recipients: Optional[List[str]] = None,
    html_body: Optional[str] = None
) -> bool:
    """
    Send email via SMTP.

    Args:
        subject: Email subject
        body: Plain text email body
        to: Single recipient email
        recipients: List of recipient email addresses
        html_body: Optional HTML email body

    Returns:
        True when handed to the SMTP server, False when skipped
        (no recipients / SMTP not configured). SMTP errors raise.
    """
    smtp_host = settings.SMTP_HOST
    smtp_port = settings.SMTP_PORT
    smtp_user = settings.SMTP_USER
    smtp_pass = settings.SMTP_PASS

    # Determine recipients
    if recipients:
        recipient_list = recipients
    elif to:
        recipient_list = [to]
    else:
        recipient_list = []

    if not recipient_list:
        logger.warning("No recipients specified; skipping email.")
        return False

    if not all([smtp_host, smtp_port, smtp_user, smtp_pass]):
        logger.warning("Email credentials missing; skipping email.")
        return False

    try:
        msg = MIMEMultipart('alternative')
        msg["From"] = smtp_user
        msg["To"] = ", ".join(recipient_list)
        msg["Subject"] = subject

        msg.attach(MIMEText(body, "plain"))

        if html_body:
            msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP_SSL(smtp_host, smtp_port) as server:
            server.login(smtp_user, smtp_pass)
            server.send_message(msg)

        logger.info(f"Email sent to {', '.join(recipient_list)}")
        return True

    except Exception as e:
        logger.error(f"Email failed: {e}")
        raise


# -----------------------------------------------------
# Best-effort dispatch
# -----------------------------------------------------
def best_effort(action: str, func: Callable, *args, **kwargs) -> Optional[Any]:
    """
    Run a side effect whose failure must never fail the caller.
    Errors are logged with the action label and swallowed; returns
    None on failure.
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.error(f"{action} failed (non-blocking): {e}", exc_info=True)
        return None


# -----------------------------------------------------
# Notification dispatcher (email + in-app)
# -----------------------------------------------------
class NotificationDispatcher:
    """
    Sends templated emails and writes in-app notification rows.

    send_email never raises; it reports {success, error}.
    create_in_app_notification raises on storage errors and is
    expected to be wrapped with best_effort by callers.
    """

    def __init__(self, client, mailer: Callable[..., bool] = send_email):
        self.client = client
        self.mailer = mailer

    def send_email(self, payload, recipient: Optional[str]) -> EmailResult:
        if not recipient:
            return EmailResult(success=False, error="No recipient email")

        subject, body = render_email(payload)
        try:
            sent = self.mailer(subject=subject, body=body, to=recipient)
        except Exception as e:
            logger.warning(f"{payload.kind} email to {recipient} failed: {e}")
            return EmailResult(success=False, error=str(e))

        if not sent:
            return EmailResult(success=False, error="Email delivery not configured")
        return EmailResult(success=True)

    def create_in_app_notification(self, recipient_id: Optional[str], role: str, payload) -> Optional[str]:
        title, message, action_url = render_in_app(payload)

        row = {
            "recipient_id": recipient_id,
            "recipient_role": role,
            "kind": payload.kind,
            "title": title,
            "message": message,
            "action_url": action_url,
            "metadata": payload.model_dump(mode="json"),
            "is_read": False,
        }

        result = self.client.table("notifications").insert(row).execute()
        if not result.data:
            return None

        notification_id = result.data[0].get("id")
        logger.info(f"In-app notification {payload.kind} created for {role} {recipient_id or '(role-wide)'}")
        return notification_id
