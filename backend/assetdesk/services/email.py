"""Email service for approval workflow notifications."""
import logging
from typing import Optional, Sequence
from assetdesk.config import settings

logger = logging.getLogger(__name__)


ACTION_LABELS = {
    "create": "creation",
    "edit": "edit",
    "decommission": "decommissioning",
}


def _wrap_html(heading: str, body_html: str) -> str:
    return f"""
        <html>
            <body style="font-family: Arial, sans-serif; background-color: #f4f4f4; padding: 20px;">
                <div style="max-width: 600px; margin: 0 auto; background-color: white; padding: 40px; border-radius: 8px; box-shadow: 0 2px 8px rgba(0,0,0,0.1);">
                    <h2 style="color: #333; margin-bottom: 20px;">{heading}</h2>
                    {body_html}
                </div>
            </body>
        </html>
        """


def _notes_html(notes: Optional[str]) -> str:
    if not notes:
        return ""
    return f"""
                    <p style="color: #666; font-size: 14px; border-left: 3px solid #ddd; padding-left: 12px;">
                        {notes}
                    </p>"""


class EmailService:
    """Handles email sending in dev and production modes."""

    def __init__(self, mode: Optional[str] = None):
        self.mode = mode or settings.email_mode
        if self.mode == "prod":
            try:
                from sendgrid import SendGridAPIClient
                self.sendgrid_client = SendGridAPIClient(settings.sendgrid_api_key)
            except ImportError:
                logger.error("SendGrid not installed but email_mode is 'prod'")
                raise
        else:
            self.sendgrid_client = None

    async def send_approval_submitted_email(
        self,
        recipients: Sequence[str],
        approval_id: str,
        requester_name: str,
        asset_name: str,
        action: str,
        notes: Optional[str] = None,
    ) -> bool:
        """Tell managers a new request is waiting for them."""
        label = ACTION_LABELS.get(action, action)
        subject = f"Approval needed: {asset_name} {label} ({approval_id})"

        html_content = _wrap_html(
            "New approval request",
            f"""
                    <p style="color: #666; font-size: 16px; line-height: 1.6;">
                        <strong>{requester_name}</strong> requested the {label} of <strong>{asset_name}</strong>.
                    </p>{_notes_html(notes)}
                    <p style="color: #999; font-size: 12px; margin-top: 20px;">Request {approval_id}</p>""",
        )

        text_content = f"""
        New approval request

        {requester_name} requested the {label} of {asset_name}.
        {notes or ""}
        Request {approval_id}
        """

        return await self._send_many(recipients, subject, text_content, html_content)

    async def send_approval_forwarded_email(
        self,
        recipients: Sequence[str],
        approval_id: str,
        manager_name: str,
        asset_name: str,
        action: str,
        notes: Optional[str] = None,
    ) -> bool:
        """Tell admins a manager has forwarded a request for final approval."""
        label = ACTION_LABELS.get(action, action)
        subject = f"Final approval needed: {asset_name} {label} ({approval_id})"

        html_content = _wrap_html(
            "Request forwarded for final approval",
            f"""
                    <p style="color: #666; font-size: 16px; line-height: 1.6;">
                        <strong>{manager_name}</strong> forwarded the {label} of <strong>{asset_name}</strong>.
                    </p>{_notes_html(notes)}
                    <p style="color: #999; font-size: 12px; margin-top: 20px;">Request {approval_id}</p>""",
        )

        text_content = f"""
        Request forwarded for final approval

        {manager_name} forwarded the {label} of {asset_name}.
        {notes or ""}
        Request {approval_id}
        """

        return await self._send_many(recipients, subject, text_content, html_content)

    async def send_approval_decision_email(
        self,
        recipient: str,
        approval_id: str,
        approver_name: str,
        asset_name: str,
        action: str,
        decision: str,
        notes: Optional[str] = None,
    ) -> bool:
        """Tell the requester how their request ended."""
        label = ACTION_LABELS.get(action, action)
        verdict = "approved ✅" if decision == "approved" else "rejected ❌"
        subject = f"Your request {approval_id} was {decision}"

        html_content = _wrap_html(
            f"Request {verdict}",
            f"""
                    <p style="color: #666; font-size: 16px; line-height: 1.6;">
                        <strong>{approver_name}</strong> {decision} the {label} of <strong>{asset_name}</strong>.
                    </p>{_notes_html(notes)}""",
        )

        text_content = f"""
        Request {decision}

        {approver_name} {decision} the {label} of {asset_name}.
        {notes or ""}
        """

        return await self._send_email(recipient, subject, text_content, html_content)

    async def _send_many(self, recipients: Sequence[str], subject: str, text_content: str, html_content: str) -> bool:
        results = [await self._send_email(r, subject, text_content, html_content) for r in recipients]
        return bool(results) and all(results)

    async def _send_email(self, to_email: str, subject: str, text_content: str, html_content: str) -> bool:
        """Internal method to send email via SendGrid or dev console."""
        if self.mode == "dev":
            logger.info(f"[DEV MODE] Email to {to_email}: {subject}")
            logger.info(f"[DEV MODE] Content:\n{text_content}")
            return True

        try:
            from sendgrid.helpers.mail import Mail, Email, To, Content

            mail = Mail(
                from_email=Email(settings.email_from_address, settings.email_from_name),
                to_emails=To(to_email),
                subject=subject,
                plain_text_content=Content("text/plain", text_content),
                html_content=Content("text/html", html_content)
            )

            response = self.sendgrid_client.send(mail)

            if 200 <= response.status_code < 300:
                logger.info(f"Email sent to {to_email}: {subject}")
                return True
            else:
                logger.error(f"Failed to send email to {to_email}: {response.status_code}")
                return False
        except Exception as e:
            logger.error(f"Error sending email to {to_email}: {str(e)}")
            return False


# Global email service instance
email_service = EmailService()
