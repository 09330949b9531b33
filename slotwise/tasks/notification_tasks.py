# ===== slotwise/tasks/notification_tasks.py =====
from typing import Optional
import logging

from slotwise.config.celery_config import celery_app
from slotwise.services.email.email_service import EmailService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def send_booking_confirmation(
        self,
        email: str,
        client_name: str,
        service_name: str,
        provider_name: str,
        start_display: str,
        status: str
):
    """
    Send the client a confirmation for a new booking

    Args:
        email: Client's email address
        client_name: Client's name
        service_name: Booked service
        provider_name: Assigned provider
        start_display: Start time formatted in the tenant's zone
        status: Booking status at creation (pending or confirmed)
    """
    try:
        logger.info(f"Sending booking confirmation to {email}")

        EmailService.send_booking_confirmation(
            email=email,
            client_name=client_name,
            service_name=service_name,
            provider_name=provider_name,
            start_display=start_display,
            status=status
        )

        return {"status": "success", "email": email}

    except Exception as exc:
        logger.error(f"Failed to send booking confirmation to {email}: {exc}")

        # Retry with exponential backoff: 1min, 2min, 4min
        raise self.retry(
            exc=exc,
            countdown=60 * (2 ** self.request.retries)
        )


@celery_app.task(bind=True, max_retries=3)
def send_provider_notification(
        self,
        email: str,
        provider_name: str,
        client_name: str,
        service_name: str,
        start_display: str
):
    """Notify the provider about a booking on their calendar"""
    try:
        logger.info(f"Sending new booking notification to provider {email}")

        EmailService.send_provider_notification(
            email=email,
            provider_name=provider_name,
            client_name=client_name,
            service_name=service_name,
            start_display=start_display
        )

        return {"status": "success", "email": email}

    except Exception as exc:
        logger.error(f"Failed to notify provider {email}: {exc}")
        raise self.retry(
            exc=exc,
            countdown=60 * (2 ** self.request.retries)
        )


@celery_app.task(bind=True, max_retries=3)
def send_cancellation_notice(
        self,
        email: str,
        recipient_name: str,
        service_name: str,
        start_display: str,
        reason: Optional[str] = None
):
    """Tell a client or provider that a booking was cancelled"""
    try:
        logger.info(f"Sending cancellation notice to {email}")

        EmailService.send_cancellation_notice(
            email=email,
            recipient_name=recipient_name,
            service_name=service_name,
            start_display=start_display,
            reason=reason
        )

        return {"status": "success", "email": email}

    except Exception as exc:
        logger.error(f"Failed to send cancellation notice to {email}: {exc}")
        raise self.retry(
            exc=exc,
            countdown=60 * (2 ** self.request.retries)
        )
