# ===== slotwise/services/email/email_service.py =====
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional
import logging

from slotwise.config.settings import settings

logger = logging.getLogger(__name__)


def _wrap_html(title: str, body: str) -> str:
    return f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="UTF-8"></head>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="font-size: 24px;">{title}</h1>
            {body}
            <p style="font-size: 12px; color: #999;">{settings.EMAIL_FROM_NAME}</p>
        </body>
        </html>
        """


class EmailService:
    """Service for sending emails via SMTP"""

    @staticmethod
    def _get_smtp_connection():
        """Create and return SMTP connection"""
        try:
            if settings.EMAIL_USE_TLS:
                server = smtplib.SMTP(settings.EMAIL_HOST, settings.EMAIL_PORT)
                server.starttls()
            else:
                server = smtplib.SMTP_SSL(settings.EMAIL_HOST, settings.EMAIL_PORT)

            if settings.EMAIL_USERNAME and settings.EMAIL_PASSWORD:
                server.login(settings.EMAIL_USERNAME, settings.EMAIL_PASSWORD)

            return server
        except Exception as e:
            logger.error(f"Failed to connect to SMTP server: {e}")
            raise

    @staticmethod
    def send_email(
            to_email: str,
            subject: str,
            html_content: str,
            plain_text: Optional[str] = None,
            cc: Optional[List[str]] = None
    ) -> bool:
        """
        Send an email using SMTP

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML content of the email
            plain_text: Plain text version (fallback for non-HTML clients)
            cc: List of CC email addresses

        Returns:
            bool: True if email sent successfully
        """
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>"
        msg['To'] = to_email

        if cc:
            msg['Cc'] = ', '.join(cc)

        if plain_text:
            msg.attach(MIMEText(plain_text, 'plain'))
        msg.attach(MIMEText(html_content, 'html'))

        recipients = [to_email] + list(cc or [])

        try:
            server = EmailService._get_smtp_connection()
            server.sendmail(settings.EMAIL_FROM_ADDRESS, recipients, msg.as_string())
            server.quit()
        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            raise

        logger.info(f"Email sent successfully to {to_email}")
        return True

    @staticmethod
    def send_booking_confirmation(
            email: str,
            client_name: str,
            service_name: str,
            provider_name: str,
            start_display: str,
            status: str
    ) -> bool:
        """Tell the client their booking was received (pending) or confirmed"""
        headline = "Your booking is confirmed" if status == "confirmed" else "We received your booking request"

        html_content = _wrap_html(headline, f"""
            <p>Hi {client_name},</p>
            <p><strong>{service_name}</strong> with {provider_name}</p>
            <p>{start_display}</p>
            <p>Status: {status}</p>
        """)
        plain_text = (
            f"Hi {client_name},\n\n{headline}.\n\n"
            f"{service_name} with {provider_name}\n{start_display}\nStatus: {status}\n"
        )

        return EmailService.send_email(
            to_email=email,
            subject=headline,
            html_content=html_content,
            plain_text=plain_text
        )

    @staticmethod
    def send_provider_notification(
            email: str,
            provider_name: str,
            client_name: str,
            service_name: str,
            start_display: str
    ) -> bool:
        """Tell the provider a new booking landed on their calendar"""
        html_content = _wrap_html("New booking", f"""
            <p>Hi {provider_name},</p>
            <p>{client_name} booked <strong>{service_name}</strong> for {start_display}.</p>
        """)
        plain_text = f"Hi {provider_name},\n\n{client_name} booked {service_name} for {start_display}.\n"

        return EmailService.send_email(
            to_email=email,
            subject=f"New booking: {service_name}",
            html_content=html_content,
            plain_text=plain_text
        )

    @staticmethod
    def send_cancellation_notice(
            email: str,
            recipient_name: str,
            service_name: str,
            start_display: str,
            reason: Optional[str] = None
    ) -> bool:
        reason_line = f"Reason: {reason}" if reason else ""
        html_content = _wrap_html("Booking cancelled", f"""
            <p>Hi {recipient_name},</p>
            <p>The booking for <strong>{service_name}</strong> on {start_display} was cancelled.</p>
            <p>{reason_line}</p>
        """)
        plain_text = (
            f"Hi {recipient_name},\n\nThe booking for {service_name} on {start_display} was cancelled.\n"
            f"{reason_line}\n"
        )

        return EmailService.send_email(
            to_email=email,
            subject=f"Booking cancelled: {service_name}",
            html_content=html_content,
            plain_text=plain_text
        )
