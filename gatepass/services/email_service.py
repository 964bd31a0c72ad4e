"""
Email Service
Sends the host approval request and the visitor decision emails over SMTP.
"""
import logging
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from gatepass.core.config import Settings
from gatepass.models.visitor import Visitor

logger = logging.getLogger(__name__)


def _value(v) -> str:
    return escape(str(v)) if v not in (None, "") else "N/A"


class EmailService:
    def __init__(self, settings: Settings):
        self.enabled = settings.email_enabled
        self.smtp_host = settings.smtp_server
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_username
        self.smtp_password = settings.smtp_password
        self.from_email = settings.email_from
        self.sender_name = settings.email_sender_name
        self.backend_base_url = settings.backend_base_url.rstrip("/")

    def decision_link(self, token: str, decision: str) -> str:
        return f"{self.backend_base_url}/api/visitors/decision/{token}?status={decision}"

    def _build_message(self, to_email: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart('mixed')
        # From address must match SMTP username for authentication
        from_address = self.smtp_user or self.from_email
        msg['From'] = f"{self.sender_name} <{from_address}>"
        msg['To'] = to_email
        msg['Subject'] = subject
        msg.attach(MIMEText(html_body, 'html'))
        return msg

    def _send(self, msg: MIMEMultipart) -> bool:
        """
        Deliver a prepared message.

        Returns:
            True if the SMTP server accepted the message, False otherwise
        """
        to_email = msg['To']
        if not self.enabled:
            logger.warning("Email service is disabled. Set EMAIL_ENABLED=true to enable.")
            return False

        if not self.smtp_user or not self.smtp_password:
            logger.warning("SMTP credentials not configured. Email not sent.")
            return False

        try:
            logger.info(f"[Email] Connecting to SMTP server: {self.smtp_host}:{self.smtp_port}")
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls()
                try:
                    server.login(self.smtp_user, self.smtp_password)
                except smtplib.SMTPAuthenticationError as e:
                    logger.error(f"[Email] SMTP authentication failed: {e}")
                    logger.error("[Email] Verify SMTP_USERNAME and SMTP_PASSWORD; Gmail requires an App Password")
                    logger.error(f"[Email] Current SMTP_USERNAME: {self.smtp_user}")
                    return False

                server.send_message(msg)
                logger.info(f"[Email] Sent '{msg['Subject']}' to {to_email}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[Email] Failed to send '{msg['Subject']}' to {to_email}: {e}", exc_info=True)
            return False

    def send_approval_request_to_host(self, host_email: str, visitor: Visitor) -> bool:
        """
        Ask the host to approve or reject a visitor.

        The approve/reject buttons carry the visitor's approval token; no login is needed.
        """
        approve_link = self.decision_link(visitor.approval_token, "approved")
        reject_link = self.decision_link(visitor.approval_token, "rejected")
        created = visitor.created_at

        photo_block = (
            f'<p><img src="{escape(visitor.photo_url)}" alt="Visitor Photo" width="150" '
            f'style="border-radius:8px;border:1px solid #ccc;" /></p>'
            if visitor.photo_url else ""
        )

        html_body = f"""
        <div style="font-family:Arial;padding:20px;">
          <h2>New Visitor Request</h2>
          <p><strong>{_value(visitor.name)}</strong> wants to meet you.</p>
          <h3>Visitor Details:</h3>
          <ul>
            <li><strong>Visitor ID:</strong> {_value(visitor.visitor_code)}</li>
            <li><strong>Name:</strong> {_value(visitor.name)}</li>
            <li><strong>Email:</strong> {_value(visitor.email)}</li>
            <li><strong>Phone:</strong> {_value(visitor.mobile)}</li>
            <li><strong>Aadhar:</strong> {_value(visitor.aadhar)}</li>
            <li><strong>Organization:</strong> {_value(visitor.company_name)}</li>
            <li><strong>Visitor Type:</strong> {_value(visitor.person_type.value if visitor.person_type else None)}</li>
            <li><strong>Purpose:</strong> {_value(visitor.purpose)}</li>
            <li><strong>To Meet:</strong> {_value(visitor.to_meet or visitor.other_person)}</li>
            <li><strong>Gate Number:</strong> {_value(visitor.gate_number)}</li>
            <li><strong>Date:</strong> {created.strftime('%d/%m/%Y') if created else 'N/A'}</li>
            <li><strong>Time:</strong> {created.strftime('%H:%M') if created else 'N/A'} UTC</li>
          </ul>
          {photo_block}
          <p>Please take action:</p>
          <a href="{approve_link}" style="padding:10px 15px;background:#28a745;color:#fff;text-decoration:none;margin-right:10px;border-radius:5px;">Approve</a>
          <a href="{reject_link}" style="padding:10px 15px;background:#dc3545;color:#fff;text-decoration:none;border-radius:5px;">Reject</a>
        </div>
        """

        msg = self._build_message(host_email, f"New Visitor Request - {visitor.name}", html_body)
        return self._send(msg)

    def send_approval_to_visitor(self, visitor: Visitor, pdf_bytes: Optional[bytes]) -> bool:
        """Tell the visitor they were approved, with the gate pass attached when available."""
        html_body = f"""
        <div style="font-family:Arial;padding:20px;">
          <h2 style="color:#28a745;">Approval Confirmed</h2>
          <p>Hello <b>{_value(visitor.name)}</b>,</p>
          <p>Your visitor request has been <b style="color:#28a745;">APPROVED</b>.</p>
          <h3>Visit Details:</h3>
          <ul>
            <li><strong>Visitor ID:</strong> {_value(visitor.visitor_code)}</li>
            <li><strong>Name:</strong> {_value(visitor.name)}</li>
            <li><strong>Email:</strong> {_value(visitor.email)}</li>
            <li><strong>Phone:</strong> {_value(visitor.mobile)}</li>
            <li><strong>Organization:</strong> {_value(visitor.company_name)}</li>
            <li><strong>To Meet:</strong> {_value(visitor.to_meet or visitor.other_person)}</li>
            <li><strong>Gate Number:</strong> {_value(visitor.gate_number)}</li>
          </ul>
          <p>Your visitor pass (PDF) is attached. Please show it at the gate.</p>
        </div>
        """

        msg = self._build_message(visitor.email, "Your Visitor Request Approved", html_body)
        if pdf_bytes:
            attachment = MIMEApplication(pdf_bytes, _subtype="pdf")
            attachment.add_header(
                'Content-Disposition', 'attachment',
                filename=f"visitor-pass-{visitor.visitor_code}.pdf"
            )
            msg.attach(attachment)
        return self._send(msg)

    def send_rejection_to_visitor(self, visitor: Visitor) -> bool:
        """Send polite rejection email"""
        html_body = f"""
        <div style="font-family:Arial;padding:20px;">
          <h2 style="color:#dc3545;">Visit Request Declined</h2>
          <p>Hello <b>{_value(visitor.name)}</b>,</p>
          <p>We regret to inform you that your visitor request has been declined.</p>
          <p>Please contact reception for more details.</p>
        </div>
        """

        msg = self._build_message(visitor.email, "Visitor Request Declined", html_body)
        return self._send(msg)
