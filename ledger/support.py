# ledger/support.py - support tickets, inbox relay and admin replies
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
import requests
from flask import current_app, render_template_string
from flask_mail import Message
from sqlalchemy.exc import SQLAlchemyError
from extensions import db, mail
from models import SupportTicket, TicketStatus, NotificationType, utcnow
from ledger.exceptions import ValidationError, NotFoundError, UpstreamError, LedgerException
from ledger.admin_account import AdminAccountResolver
from ledger.notifications import NotificationHelper
from utils import retrying_session

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = (
    "Your message has been sent successfully! "
    "Our support team will get back to you within 24 hours."
)
SEND_FAILED_MESSAGE = "Failed to send message. Please try again later."

SUPPORT_MAIL_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2>💬 New Support Request</h2>
  <table style="width: 100%; border-collapse: collapse;">
    <tr><td><b>Name</b></td><td>{{ user_name }}</td></tr>
    <tr><td><b>Email</b></td><td><a href="mailto:{{ user_email }}">{{ user_email }}</a></td></tr>
    <tr><td><b>Phone</b></td><td>{{ user_phone or "Not provided" }}</td></tr>
    <tr><td><b>Subject</b></td><td><strong>{{ subject }}</strong></td></tr>
    {% if ticket_id %}<tr><td><b>Ticket ID</b></td><td>{{ ticket_id }}</td></tr>{% endif %}
    <tr><td><b>Received At</b></td><td>{{ received_at }}</td></tr>
  </table>
  <div style="background: white; padding: 20px; border-left: 4px solid #667eea;">
    <p style="white-space: pre-wrap;">{{ message }}</p>
  </div>
  <p style="color: #666; font-size: 12px;">
    This is an automated message from Refer &amp; Earn Platform.
    <a href="{{ app_url }}/admin/support">View in Admin Panel</a>
  </p>
</div>
"""

REPLY_MAIL_TEMPLATE = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <p>Hi {{ user_name }},</p>
  <p style="white-space: pre-wrap;">{{ reply }}</p>
  <hr>
  <p style="color: #666; font-size: 12px;">Your original message ({{ subject }}):</p>
  <p style="color: #666; font-size: 12px; white-space: pre-wrap;">{{ message }}</p>
</div>
"""


IST = timezone(timedelta(hours=5, minutes=30), "IST")


def _india_time() -> str:
    return datetime.now(IST).strftime("%d/%m/%Y, %I:%M:%S %p")


class SupportValidator:

    REQUIRED = ("userName", "userEmail", "subject", "message")

    @staticmethod
    def parse(data: dict) -> dict:
        values = {}
        for field in SupportValidator.REQUIRED:
            value = data.get(field)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError("Please fill all required fields")
            values[field] = value.strip()
        phone = data.get("userPhone")
        values["userPhone"] = phone.strip() if isinstance(phone, str) else ""
        return values


class SupportService:

    # ==========================================================
    #                  USER SUBMISSIONS
    # ==========================================================
    @staticmethod
    def submit_ticket(user_id: int, data: dict) -> SupportTicket:
        """
        Store the ticket, then relay it to the support inbox and notify the
        admin. Only the ticket insert can fail the call.
        """
        fields = SupportValidator.parse(data)

        ticket = SupportTicket(
            user_id=user_id,
            user_name=fields["userName"],
            user_email=fields["userEmail"],
            user_phone=fields["userPhone"],
            subject=fields["subject"],
            message=fields["message"],
            status=TicketStatus.PENDING.value,
        )
        try:
            db.session.add(ticket)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to store support ticket for user {user_id}: {e}")
            raise UpstreamError(SEND_FAILED_MESSAGE)

        logger.info(f"Support ticket {ticket.id} created for user {user_id}")

        SupportRelay.post_ticket(ticket)
        SupportService._notify_admin(ticket)
        return ticket

    @staticmethod
    def _notify_admin(ticket: SupportTicket):
        try:
            admin_id = AdminAccountResolver.get_admin_user_id()
        except LedgerException as e:
            logger.warning(f"No admin to notify about ticket {ticket.id}: {e.message}")
            return

        warning = NotificationHelper.send_best_effort(NotificationHelper.build(
            admin_id,
            NotificationType.SUPPORT_REQUEST,
            "New Support Request",
            f"{ticket.user_name} submitted: {ticket.subject}",
            ticket_id=ticket.id,
        ))
        if warning:
            logger.warning(f"Admin notification for ticket {ticket.id} not stored")

    @staticmethod
    def send_email(data: dict):
        """Mail a support request straight to the inbox; no ticket row."""
        fields = SupportValidator.parse(data)
        inbox = current_app.config.get("SUPPORT_EMAIL")
        if not inbox:
            logger.error("SUPPORT_EMAIL not configured")
            raise UpstreamError(SEND_FAILED_MESSAGE)

        msg = Message(
            subject=f"Support Request: {fields['subject']}",
            recipients=[inbox],
            reply_to=fields["userEmail"],
            html=render_template_string(
                SUPPORT_MAIL_TEMPLATE,
                user_name=fields["userName"],
                user_email=fields["userEmail"],
                user_phone=fields["userPhone"],
                subject=fields["subject"],
                message=fields["message"],
                ticket_id=None,
                received_at=_india_time(),
                app_url=current_app.config.get("APP_URL", ""),
            ),
        )
        try:
            mail.send(msg)
        except Exception as e:
            logger.error(f"Support email from {fields['userEmail']} failed: {e}", exc_info=True)
            raise UpstreamError(SEND_FAILED_MESSAGE)

        logger.info(f"Support email from {fields['userEmail']} sent")

    # ==========================================================
    #                  ADMIN TICKET MANAGEMENT
    # ==========================================================
    @staticmethod
    def list_tickets(status: Optional[str] = None, limit: int = 100):
        query = SupportTicket.query
        if status:
            query = query.filter_by(status=status.upper())
        return query.order_by(SupportTicket.created_at.desc()).limit(limit).all()

    @staticmethod
    def _get(ticket_id: int) -> SupportTicket:
        ticket = db.session.get(SupportTicket, ticket_id)
        if not ticket:
            raise NotFoundError("Ticket not found")
        return ticket

    @staticmethod
    def resolve(ticket_id: int) -> SupportTicket:
        ticket = SupportService._get(ticket_id)
        ticket.status = TicketStatus.RESOLVED.value
        ticket.resolved_at = utcnow()
        db.session.commit()
        logger.info(f"Support ticket {ticket_id} resolved")
        return ticket

    @staticmethod
    def reopen(ticket_id: int) -> SupportTicket:
        ticket = SupportService._get(ticket_id)
        ticket.status = TicketStatus.PENDING.value
        ticket.resolved_at = None
        db.session.commit()
        logger.info(f"Support ticket {ticket_id} reopened")
        return ticket

    @staticmethod
    def reply(ticket_id: int, reply_message) -> SupportTicket:
        if not isinstance(reply_message, str) or not reply_message.strip():
            raise ValidationError("Please enter a reply message")
        reply_message = reply_message.strip()
        ticket = SupportService._get(ticket_id)

        msg = Message(
            subject=f"Re: {ticket.subject}",
            recipients=[ticket.user_email],
            html=render_template_string(
                REPLY_MAIL_TEMPLATE,
                user_name=ticket.user_name,
                reply=reply_message,
                subject=ticket.subject,
                message=ticket.message,
            ),
        )
        try:
            mail.send(msg)
        except Exception as e:
            logger.error(f"Reply to ticket {ticket_id} failed: {e}", exc_info=True)
            raise UpstreamError("Failed to send reply")

        ticket.status = TicketStatus.REPLIED.value
        ticket.last_reply = reply_message
        ticket.replied_at = utcnow()
        db.session.commit()
        logger.info(f"Support ticket {ticket_id} replied")
        return ticket


class SupportRelay:
    """Form-post relay to the support inbox (FormSubmit-compatible endpoint)."""

    @staticmethod
    def endpoint() -> Optional[str]:
        url = current_app.config.get("SUPPORT_FORM_URL")
        if url:
            return url
        inbox = current_app.config.get("SUPPORT_EMAIL")
        return f"https://formsubmit.co/ajax/{inbox}" if inbox else None

    @staticmethod
    def post_ticket(ticket: SupportTicket) -> bool:
        url = SupportRelay.endpoint()
        if not url:
            logger.warning(f"No support relay configured; ticket {ticket.id} stored only")
            return False

        form = {
            "_subject": f"🆘 Support Request: {ticket.subject}",
            "_template": "box",
            "_captcha": "false",
            "Name": ticket.user_name,
            "Email": ticket.user_email,
            "Phone": ticket.user_phone or "Not provided",
            "Subject": ticket.subject,
            "Message": ticket.message,
            "TicketID": str(ticket.id),
            "SubmittedAt": _india_time(),
        }
        try:
            response = retrying_session(total=2).post(
                url,
                data=form,
                headers={"Accept": "application/json"},
                timeout=current_app.config.get("SUPPORT_FORM_TIMEOUT", 15),
            )
        except requests.exceptions.Timeout:
            logger.error(f"Support relay timeout for ticket {ticket.id}")
            return False
        except requests.exceptions.RequestException as e:
            logger.error(f"Support relay error for ticket {ticket.id}: {e}")
            return False

        if response.ok:
            logger.info(f"Support relay accepted ticket {ticket.id}")
            return True

        logger.warning(f"Support relay answered {response.status_code} for ticket {ticket.id}: {response.text[:200]}")
        return False
