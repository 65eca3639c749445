"""Best-effort "your transfer is ready" mail to the uploader."""
import html
import logging

from starlette.concurrency import run_in_threadpool

from dropbatch.core.config import settings
from dropbatch.schemas.user import Identity
from dropbatch.utils import email
from dropbatch.utils.formatting import human_size

logger = logging.getLogger("dropbatch")


def render_share_email(share_link: str, file_count: int, total_size_label: str) -> tuple[str, str]:
    plural = "s" if file_count != 1 else ""
    subject = f"File Transfer Complete - {file_count} file{plural} ready"
    link = html.escape(share_link, quote=True)
    body = f"""<!DOCTYPE html>
<html>
  <body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; color: #333;">
    <h1>Upload Complete!</h1>
    <p>Your file{plural} are ready to share.</p>
    <p><strong>{file_count}</strong> file{plural} &middot; <strong>{html.escape(total_size_label)}</strong></p>
    <p>Use this link to access and download your files:</p>
    <p><code>{link}</code></p>
    <p><a href="{link}">Open Files</a></p>
  </body>
</html>"""
    return subject, body


async def notify_share_link(
    identity: Identity | None,
    share_link: str,
    file_count: int,
    total_bytes: int,
) -> bool:
    """Mail the link to the uploader. Never raises; returns whether a mail went out."""
    if identity is None or not identity.email:
        return False
    if not settings.SENDGRID_API_KEY or not settings.EMAIL_FROM:
        logger.info("notify skipped: mail not configured")
        return False

    subject, body = render_share_email(share_link, file_count, human_size(total_bytes))
    try:
        sent = await run_in_threadpool(email.send_email, identity.email, subject, body)
    except Exception:
        logger.exception("notify failed for %s", identity.email)
        return False
    if not sent:
        logger.warning("notify not accepted for %s", identity.email)
    return sent
