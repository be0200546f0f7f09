"""Transactional email for listing, inquiry and booking notifications."""

from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from html import escape
import smtplib
from typing import List, Optional

from fastapi import Request

from config import Settings
from logger_config import Logger


@dataclass
class EmailResult:
    success: bool
    error: Optional[str] = None


def _escape(value) -> str:
    return escape("" if value is None else str(value))


def _full_name(user: dict) -> str:
    return f"{user.get('firstName', '')} {user.get('lastName', '')}".strip()


class EmailService:
    """Sends mail over SMTP. Constructed once per app, closed on shutdown."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.sender = settings.EMAIL_FROM
        self.admin_email = settings.ADMIN_EMAIL or settings.EMAIL_FROM
        self.frontend_url = settings.FRONTEND_URL
        self.is_configured = settings.EMAIL_BACKEND == "smtp" and bool(settings.SMTP_HOST)
        if self.is_configured:
            Logger.base.info(f"Email service configured for {settings.SMTP_HOST}:{settings.SMTP_PORT}")
        else:
            Logger.base.warning("Email service not configured. Email features will be disabled.")

    def _deliver(self, message: EmailMessage) -> None:
        settings = self.settings
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
            if settings.SMTP_USE_TLS:
                smtp.starttls()
            if settings.SMTP_USER:
                smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD.get_secret_value())
            smtp.send_message(message)

    def send_email(self, to: str, subject: str, html: str, text: Optional[str] = None) -> EmailResult:
        if not self.is_configured:
            Logger.base.warning("Email service not configured. Cannot send email.")
            return EmailResult(False, "Email service not configured")

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text or "This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")
        try:
            self._deliver(message)
        except (smtplib.SMTPException, OSError) as e:
            Logger.base.error(f"Email sending failed to {to}: {e}")
            return EmailResult(False, str(e))
        Logger.base.info(f"Email sent to {to}: {subject}")
        return EmailResult(True)

    def send_welcome_email(self, user: dict) -> EmailResult:
        subject = "Welcome to Sokogo Classifieds!"
        html = f"""
            <h2>Welcome, {_escape(user.get('firstName'))}!</h2>
            <p>Your Sokogo account has been created. You can now post items,
            contact sellers and book tickets.</p>
        """
        if self.frontend_url:
            html += f'<p><a href="{_escape(self.frontend_url)}">Start browsing</a></p>'
        return self.send_email(user["email"], subject, html)

    def send_item_posted_email(self, user: dict, item: dict) -> EmailResult:
        subject = "Your item has been posted successfully!"
        location = item.get("location") or {}
        html = f"""
            <h2>Hi {_escape(user.get('firstName'))},</h2>
            <p>Your listing <strong>{_escape(item.get('title'))}</strong> is now live.</p>
            <ul>
                <li>Category: {_escape(item.get('category'))}</li>
                <li>Price: {item.get('price')} {_escape(item.get('currency'))}</li>
                <li>Location: {_escape(location.get('city'))}, {_escape(location.get('district'))}</li>
            </ul>
        """
        return self.send_email(user["email"], subject, html)

    def send_contact_inquiry(self, buyer: dict, seller: dict, item: dict, message: str) -> EmailResult:
        subject = f"Inquiry about: {item.get('title')}"
        html = f"""
            <h2>New inquiry about {_escape(item.get('title'))}</h2>
            <p><strong>From:</strong> {_escape(_full_name(buyer))} ({_escape(buyer.get('email'))},
            {_escape(buyer.get('phoneNumber'))})</p>
            <p style="white-space: pre-wrap;">{_escape(message)}</p>
        """
        return self.send_email(seller["email"], subject, html)

    def send_contact_message(self, name: str, email: str, subject: str, message: str) -> EmailResult:
        html = f"""
            <h2>New Contact Form Submission</h2>
            <p><strong>Name:</strong> {_escape(name)}</p>
            <p><strong>Email:</strong> {_escape(email)}</p>
            <p><strong>Subject:</strong> {_escape(subject)}</p>
            <p style="white-space: pre-wrap;">{_escape(message)}</p>
        """
        return self.send_email(self.admin_email, f"Contact Form: {subject}", html)

    def send_booking_confirmation(self, user: dict, entry: dict) -> EmailResult:
        seats = ", ".join(str(seat["seatNo"]) for seat in entry.get("seat", []))
        subject = f"Booking confirmed - {entry.get('movieName')}"
        html = f"""
            <h2>Enjoy the show, {_escape(user.get('firstName'))}!</h2>
            <p>{_escape(entry.get('movieName'))} at {_escape(entry.get('showTime'))}
            ({_escape(entry.get('location') or 'cinema')})</p>
            <p>Seats: {seats}</p>
            <p>Total: {entry.get('price')}</p>
        """
        return self.send_email(user["email"], subject, html)

    def test_email_config(self) -> EmailResult:
        if not self.is_configured:
            return EmailResult(False, "Email service not configured")
        try:
            with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=10) as smtp:
                smtp.noop()
        except (smtplib.SMTPException, OSError) as e:
            return EmailResult(False, str(e))
        return EmailResult(True)

    def close(self) -> None:
        Logger.base.info("Email service closed")


class MockEmailService(EmailService):
    """Logs mails instead of sending them and keeps them in ``sent_emails``."""

    def __init__(self, settings: Settings, fail: bool = False):
        super().__init__(settings)
        self.is_configured = True
        self.fail = fail
        self.sent_emails: List[dict] = []

    def _deliver(self, message: EmailMessage) -> None:
        if self.fail:
            raise smtplib.SMTPException("Mock delivery failure")
        body = message.get_body(preferencelist=("html", "plain"))
        self.sent_emails.append(
            {
                "to": message["To"],
                "subject": message["Subject"],
                "body": body.get_content() if body else "",
                "sent_at": datetime.now(),
            }
        )
        Logger.base.info(f"MOCK EMAIL to {message['To']}: {message['Subject']}")

    def test_email_config(self) -> EmailResult:
        if self.fail:
            return EmailResult(False, "Mock delivery failure")
        return EmailResult(True)


def build_email_service(settings: Settings) -> EmailService:
    if settings.EMAIL_BACKEND == "console":
        return MockEmailService(settings)
    return EmailService(settings)


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service
