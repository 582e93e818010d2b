from typing import Optional

from app.core.config import settings
from app.core.logger import logger
from app.models.db_models import BookingRecord


def build_confirmation(record: BookingRecord) -> str:
    subjects = record.subjects_text()
    return (
        f"Hi {record.name},\n\n"
        f"your booking #{record.id} for {subjects} has been received.\n"
        f"Total: {record.total}\n"
    )


def send_booking_confirmation(record: BookingRecord, enabled: Optional[bool] = None) -> bool:
    """
    Notification hook fired after a booking is saved.
    Only composes and logs the message, mail delivery is not wired up.
    Returns: True if a message was produced, False if notifications are off.
    """
    if enabled is None:
        enabled = settings.EMAIL_NOTIFICATIONS_ENABLED

    if not enabled:
        logger.info("ℹ️ Email notifications are disabled in config.")
        return False

    body = build_confirmation(record)
    recipients = [record.email]
    if settings.OWNER_EMAIL:
        recipients.append(settings.OWNER_EMAIL)

    logger.info(f"📧 [stub] Confirmation for booking {record.id} to {', '.join(recipients)}:\n{body}")
    return True
