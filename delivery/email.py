"""
Operator notification for contact submissions: a label/value table plus the submission time.
Sends via SMTP (implicit TLS on 465, STARTTLS otherwise) or SendGrid when SENDGRID_API_KEY is set.
Sending never raises; the caller only learns True/False.
"""
import html
import logging
import smtplib
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from delivery.storage import SubmissionRecord
from robochat.core.config import get_settings

logger = logging.getLogger(__name__)

SENDER_NAME = "Smart Contact Form"
NOT_PROVIDED = "(not provided)"


def render_text(record: SubmissionRecord, labels: dict[str, str]) -> str:
    lines = ["New Contact Form Submission:", "", "=" * 40, ""]
    for key, label in labels.items():
        lines.append(f"{label}: {record.data.get(key) or NOT_PROVIDED}")
    lines += ["", f"Submission Time: {record.timestamp}"]
    if record.source_ip:
        lines.append(f"IP Address: {record.source_ip}")
    lines += ["", "=" * 40]
    return "\n".join(lines)


def render_html(record: SubmissionRecord, labels: dict[str, str]) -> str:
    rows = []
    for key, label in labels.items():
        value = record.data.get(key) or NOT_PROVIDED
        rows.append(
            '<tr><td style="background:#f0f0f0;font-weight:bold;padding:8px;border:1px solid #ddd;">'
            f"{html.escape(label)}</td>"
            f'<td style="padding:8px;border:1px solid #ddd;">{html.escape(value)}</td></tr>'
        )
    footer = f"Submitted at: {html.escape(record.timestamp)}"
    if record.source_ip:
        footer += f" from {html.escape(record.source_ip)}"
    return (
        '<h2 style="color:#333;">New Customer Contact Info</h2>'
        '<table border="0" cellpadding="0" cellspacing="0" style="border-collapse:collapse;">'
        + "".join(rows)
        + "</table>"
        + f'<p style="color:#888;margin-top:16px;">{footer}</p>'
    )


def _ensure_email_configured() -> str | None:
    s = get_settings()
    has_smtp = s.email_smtp_host and s.email_smtp_user and s.email_smtp_password
    if not has_smtp and not s.sendgrid_api_key:
        return "Send is not configured. Set EMAIL_SMTP_* or SENDGRID_API_KEY."
    return None


def send_submission_email(
    record: SubmissionRecord,
    labels: dict[str, str],
    recipient: str,
    subject: str,
) -> bool:
    """Email one submission to the operator. Returns False (and logs) on any failure."""
    err = _ensure_email_configured()
    if err:
        logger.warning("Email not sent: %s", err)
        return False
    if not recipient:
        logger.warning("Email not sent: no recipient configured (CONTACT_RECIPIENT_EMAIL / targetEmail).")
        return False
    text_body = render_text(record, labels)
    html_body = render_html(record, labels)
    if get_settings().sendgrid_api_key:
        return _send_via_sendgrid(recipient, subject, text_body, html_body)
    return _send_via_smtp(recipient, subject, text_body, html_body)


def _send_via_smtp(to: str, subject: str, text_body: str, html_body: str) -> bool:
    s = get_settings()
    msg = MIMEMultipart("alternative")
    msg["Subject"] = str(Header(subject, "utf-8"))
    msg["From"] = formataddr((SENDER_NAME, s.email_smtp_user))
    msg["To"] = to
    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    to_list = [a.strip() for a in to.split(",") if a.strip()]
    timeout = s.email_smtp_timeout_seconds
    try:
        if s.email_smtp_port == 465:
            smtp = smtplib.SMTP_SSL(s.email_smtp_host, s.email_smtp_port, timeout=timeout)
        else:
            smtp = smtplib.SMTP(s.email_smtp_host, s.email_smtp_port, timeout=timeout)
        with smtp:
            if s.email_smtp_port != 465:
                smtp.starttls()
            smtp.login(s.email_smtp_user, s.email_smtp_password)
            smtp.sendmail(s.email_smtp_user, to_list, msg.as_string())
    except Exception as e:
        logger.error("Email sending failed: %s", e)
        return False
    logger.info("Email sent to %s", to)
    return True


def _send_via_sendgrid(to: str, subject: str, text_body: str, html_body: str) -> bool:
    from sendgrid import SendGridAPIClient
    from sendgrid.helpers.mail import Mail

    s = get_settings()
    message = Mail(
        from_email=s.email_smtp_user or "noreply@example.com",
        to_emails=[a.strip() for a in to.split(",") if a.strip()],
        subject=subject,
        plain_text_content=text_body,
        html_content=html_body,
    )
    try:
        client = SendGridAPIClient(s.sendgrid_api_key)
        client.send(message)
    except Exception as e:
        logger.error("SendGrid send failed: %s", e)
        return False
    logger.info("Email sent to %s via SendGrid", to)
    return True
