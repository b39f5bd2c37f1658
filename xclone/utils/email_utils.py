"""
Email utility functions
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from xclone.config import settings

logger = logging.getLogger(__name__)


def send_email(
    to_email: str,
    subject: str,
    body: str,
    is_html: bool = False,
    from_email: Optional[str] = None,
) -> bool:
    """
    Send an email.

    Without SMTP settings the message is only logged, which keeps
    development and test flows working.
    """
    if not settings.SMTP_SERVER:
        logger.info(f"Email to {to_email} ({subject}): {body[:100]}")
        return True

    msg = MIMEMultipart()
    msg['From'] = from_email or settings.EMAIL_FROM
    msg['To'] = to_email
    msg['Subject'] = subject
    msg.attach(MIMEText(body, 'html' if is_html else 'plain'))

    try:
        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT) as server:
            server.starttls()
            if settings.SMTP_USERNAME:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Error sending email to {to_email}: {e}")
        return False


def render_email_template(template_name: str, context: dict) -> str:
    """Render email template with context"""
    templates = {
        "verification": """
        Verify your email

        Hello {name},

        Your verification code is {otp}. It expires in {minutes} minutes.

        If you didn't create an account, please ignore this email.
        """,
        "welcome": """
        Welcome to X Clone!

        Hello {name},

        Your email is verified and your account is ready.
        """,
    }

    template = templates.get(template_name, "")

    # Simple template rendering
    for key, value in context.items():
        placeholder = "{" + key + "}"
        template = template.replace(placeholder, str(value))

    return template
