from celery import Celery
from xclone.config import settings
from xclone.utils.email_utils import send_email, render_email_template
import logging

logger = logging.getLogger(__name__)

celery_app = Celery(
    "xclone",
    broker=settings.redis_url,
    backend=settings.redis_url
)

# Run tasks inline when testing so no worker or broker is needed
celery_app.conf.update(
    task_always_eager=settings.is_testing,
    task_eager_propagates=True,
)


@celery_app.task
def send_verification_email(to_email: str, name: str, otp: str):
    """Send the OTP needed to verify a new account"""
    body = render_email_template("verification", {
        "name": name,
        "otp": otp,
        "minutes": settings.OTP_EXPIRE_MINUTES,
    })
    sent = send_email(to_email, "Verify your X Clone account", body)
    if not sent:
        logger.error(f"Verification email to {to_email} was not delivered")
    return sent


@celery_app.task
def send_welcome_email(to_email: str, name: str):
    """Greet a user once their email is verified"""
    body = render_email_template("welcome", {"name": name})
    sent = send_email(to_email, "Welcome to X Clone", body)
    if not sent:
        logger.error(f"Welcome email to {to_email} was not delivered")
    return sent
