import logging

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from dropbatch.core.config import settings

logger = logging.getLogger("dropbatch")


def send_email(to_email: str, subject: str, body: str) -> bool:
    """Send an HTML mail through the SendGrid API. Blocking; returns success."""
    message = Mail(
        from_email=(settings.EMAIL_FROM, settings.EMAIL_FROM_NAME),
        to_emails=to_email,
        subject=subject,
        html_content=body,
    )
    sg = SendGridAPIClient(settings.SENDGRID_API_KEY)
    response = sg.send(message)

    # 202 Accepted
    if response.status_code == 202:
        return True
    logger.warning("SendGrid API error: %s, %s", response.status_code, response.body)
    return False
