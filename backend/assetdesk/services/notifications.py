"""
Notification dispatch for approval workflow transitions.

Every entry point here swallows its own failures: a lost email or in-app
notification must never undo or block an approval transition.
"""
import logging
from typing import List, Optional

from assetdesk.models.user import UserRole
from assetdesk.schemas.approval import ApprovalResponse
from assetdesk.schemas.notification import NotificationCreate
from assetdesk.schemas.user import UserResponse
from assetdesk.services.directory import UserDirectory
from assetdesk.services.email import EmailService, email_service

logger = logging.getLogger(__name__)


def asset_label(approval: ApprovalResponse) -> str:
    return f"Asset {approval.asset_id}"


class NotificationDispatcher:
    def __init__(self, directory: UserDirectory, remote, email: Optional[EmailService] = None):
        self.directory = directory
        self.remote = remote
        self.email = email or email_service

    async def _active_users(self) -> List[UserResponse]:
        return [u for u in await self.directory.list_users() if u.is_active() and u.email]

    async def get_manager_emails(self, department: Optional[str] = None) -> List[str]:
        """
        Emails of active managers in a department.

        Falls back to every active manager when the department is unknown or
        has no manager of its own.
        """
        managers = [u for u in await self._active_users() if u.has_role(UserRole.MANAGER)]
        dept = (department or "").strip().lower()
        if dept:
            scoped = [u for u in managers if (u.department or "").strip().lower() == dept]
            if scoped:
                return [u.email for u in scoped]
        return [u.email for u in managers]

    async def get_admin_emails(self) -> List[str]:
        return [u.email for u in await self._active_users() if u.has_role(UserRole.ADMIN)]

    async def _display_name(self, identifier: str) -> str:
        user = await self.directory.find(identifier)
        if user is None:
            return identifier
        return user.name or user.email or identifier

    async def _post_in_app(self, emails: List[str], title: str, message: str) -> None:
        users = await self.directory.list_users()
        for email in emails:
            user = UserDirectory.match(users, email)
            if user is None:
                continue
            result = await self.remote.create_notification(
                NotificationCreate(user_id=user.id, title=title, message=message, type="approval")
            )
            if not result.ok:
                logger.warning(f"Failed to post in-app notification for {email}: {result.error}")

    async def notify_submitted(self, approval: ApprovalResponse, requester: Optional[str] = None) -> None:
        try:
            recipients = await self.get_manager_emails(approval.department)
            if not recipients:
                logger.info(f"No managers to notify for approval {approval.id}")
                return
            requester_name = requester or await self._display_name(approval.requested_by)
            await self.email.send_approval_submitted_email(
                recipients=recipients,
                approval_id=approval.id,
                requester_name=requester_name,
                asset_name=asset_label(approval),
                action=approval.action.value,
                notes=approval.notes,
            )
            await self._post_in_app(
                recipients,
                title="Approval requested",
                message=f"{requester_name} requested {approval.action.value} of {asset_label(approval)}",
            )
        except Exception as e:
            logger.warning(f"Failed to send approval submitted notification: {e}")

    async def notify_forwarded(self, approval: ApprovalResponse, manager: str, notes: Optional[str] = None) -> None:
        try:
            recipients = await self.get_admin_emails()
            if not recipients:
                logger.info(f"No admins to notify for approval {approval.id}")
                return
            manager_name = await self._display_name(manager)
            await self.email.send_approval_forwarded_email(
                recipients=recipients,
                approval_id=approval.id,
                manager_name=manager_name,
                asset_name=asset_label(approval),
                action=approval.action.value,
                notes=notes,
            )
            await self._post_in_app(
                recipients,
                title="Final approval needed",
                message=f"{manager_name} forwarded {approval.id} for {asset_label(approval)}",
            )
        except Exception as e:
            logger.warning(f"Failed to send approval forwarded notification: {e}")

    async def notify_decision(
        self,
        approval: ApprovalResponse,
        admin: str,
        decision: str,
        notes: Optional[str] = None,
    ) -> None:
        try:
            recipient = approval.requested_by
            if "@" not in recipient:
                user = await self.directory.find(recipient)
                if user is None or not user.email:
                    logger.info(f"Cannot resolve requester {recipient} for approval {approval.id}")
                    return
                recipient = user.email
            admin_name = await self._display_name(admin)
            await self.email.send_approval_decision_email(
                recipient=recipient,
                approval_id=approval.id,
                approver_name=admin_name,
                asset_name=asset_label(approval),
                action=approval.action.value,
                decision=decision,
                notes=notes,
            )
            await self._post_in_app(
                [recipient],
                title=f"Request {decision}",
                message=f"{admin_name} {decision} {approval.id} for {asset_label(approval)}",
            )
        except Exception as e:
            logger.warning(f"Failed to send approval decision notification: {e}")
