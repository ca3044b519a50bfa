"""
Approval workflow service.

Drives requests through pending_manager -> pending_admin -> approved/rejected
against the REST API. When the API is unavailable the service degrades to the
local mirror instead of failing; a request the API actively rejects (4xx) is
surfaced to the caller.
"""
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from assetdesk.database import utcnow
from assetdesk.models.approval import ApprovalAction, ApprovalEventType, ApprovalStatus
from assetdesk.schemas.approval import (
    ApprovalCreate,
    ApprovalEventCreate,
    ApprovalEventResponse,
    ApprovalResponse,
    ApprovalSubmission,
    ApprovalUpdate,
    DepartmentResyncResult,
)
from assetdesk.schemas.user import UserResponse
from assetdesk.services.cache import APPROVAL_CACHE_PREFIX, ListCache, make_approval_cache_key
from assetdesk.services.directory import UserDirectory
from assetdesk.services.mirror import APPROVAL_EVENTS, APPROVALS, LocalMirror
from assetdesk.services.notifications import NotificationDispatcher
from assetdesk.services.remote import RemoteError
from assetdesk.services.state_machine import (
    DECISIONS,
    InvalidTransitionError,
    is_terminal,
    validate_transition,
)

logger = logging.getLogger(__name__)

OVERRIDE_NOTE = "admin approved it without level 1 approval"


def new_approval_id() -> str:
    return f"APR-{uuid.uuid4().hex[:12].upper()}"


def new_event_id() -> str:
    return f"AEV-{uuid.uuid4().hex[:12].upper()}"


def _normalize(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def plan_department_resync(
    approvals: Iterable[ApprovalResponse],
    users: List[UserResponse],
) -> List[Tuple[ApprovalResponse, Optional[str]]]:
    """
    Pair each approval whose stored department has drifted with the
    requester's current department.

    Requesters are resolved by email (case-insensitive), then by id.
    Approvals whose requester cannot be resolved are left out.
    """
    plan = []
    for approval in approvals:
        user = UserDirectory.match(users, approval.requested_by)
        if user is None:
            continue
        current = _normalize(user.department)
        if current != approval.department:
            plan.append((approval, current))
    return plan


def _matches(
    approval: ApprovalResponse,
    status: Optional[ApprovalStatus],
    department: Optional[str],
    requested_by: Optional[str],
    asset_ids: Optional[List[str]],
) -> bool:
    if status and approval.status != ApprovalStatus(status):
        return False
    if department and (approval.department or "").strip().lower() != department.strip().lower():
        return False
    if requested_by and approval.requested_by.strip().lower() != requested_by.strip().lower():
        return False
    if asset_ids and approval.asset_id.lower() not in {a.lower() for a in asset_ids}:
        return False
    return True


class ApprovalService:
    """Approval workflow operations with local mirror fallback."""

    def __init__(
        self,
        remote,
        mirror: LocalMirror,
        directory: UserDirectory,
        notifier: NotificationDispatcher,
        cache: Optional[ListCache] = None,
    ):
        self.remote = remote
        self.mirror = mirror
        self.directory = directory
        self.notifier = notifier
        self.cache = cache if cache is not None else ListCache()

    # Mirror helpers

    def _remember(self, approval: ApprovalResponse) -> None:
        self.mirror.upsert(APPROVALS, approval.model_dump(mode="json"))
        self.cache.invalidate_prefix(APPROVAL_CACHE_PREFIX)

    def _remember_event(self, event: ApprovalEventResponse) -> None:
        self.mirror.upsert(APPROVAL_EVENTS, event.model_dump(mode="json"))

    def _mirrored_approvals(self) -> List[ApprovalResponse]:
        approvals = []
        for row in self.mirror.load(APPROVALS):
            try:
                approvals.append(ApprovalResponse.model_validate(row))
            except ValueError:
                logger.warning(f"Skipping malformed mirrored approval {row.get('id')}")
        return approvals

    def _mirrored_approval(self, approval_id: str) -> Optional[ApprovalResponse]:
        row = self.mirror.find(APPROVALS, approval_id)
        if row is None:
            return None
        try:
            return ApprovalResponse.model_validate(row)
        except ValueError:
            logger.warning(f"Mirrored approval {approval_id} is malformed, ignoring it")
            return None

    @staticmethod
    def _degrade(error: Optional[RemoteError], what: str, transition: bool = True) -> None:
        """
        Decide whether a failed call may fall back to the mirror.

        Returns normally for outages (after logging). Raises for requests the
        API rejected: a 409 on a status change as InvalidTransitionError, any
        other status as ValueError.
        """
        if error is None or error.unavailable:
            logger.warning(f"Failed to {what} via API, using local mirror: {error or 'no response body'}")
            return
        if transition and error.status == 409:
            raise InvalidTransitionError(error.message)
        raise ValueError(f"Failed to {what}: {error}")

    async def _notify(self, send, *args, **kwargs) -> None:
        try:
            await send(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Notification for approval failed: {e}")

    # Reads

    async def get_approval(self, approval_id: str) -> Optional[ApprovalResponse]:
        result = await self.remote.get_approval(approval_id)
        if result.ok and result.value is not None:
            self.mirror.upsert(APPROVALS, result.value.model_dump(mode="json"))
            return result.value
        if result.ok:
            # Requests saved during an outage are only known to the mirror
            return self._mirrored_approval(approval_id)
        self._degrade(result.error, f"load approval {approval_id}")
        return self._mirrored_approval(approval_id)

    async def list_approvals(
        self,
        status: Optional[ApprovalStatus] = None,
        department: Optional[str] = None,
        requested_by: Optional[str] = None,
        asset_ids: Optional[List[str]] = None,
        force: bool = False,
    ) -> List[ApprovalResponse]:
        """
        List approvals, newest first.

        Department and requester filters compare case-insensitively. Results
        are cached for a short TTL unless ``force`` is set; writes through this
        service invalidate the cache.
        """
        status_value = ApprovalStatus(status).value if status else None
        key = make_approval_cache_key(status_value, department, requested_by, asset_ids)
        if not force:
            cached = self.cache.get(key)
            if cached is not None:
                return list(cached)

        result = await self.remote.list_approvals(
            status=status_value,
            department=department,
            requested_by=requested_by,
            asset_ids=asset_ids,
        )
        if result.ok and result.value is not None:
            approvals = result.value
            rows = [a.model_dump(mode="json") for a in approvals]
            if any([status_value, department, requested_by, asset_ids]):
                self.mirror.upsert_many(APPROVALS, rows)
            else:
                self.mirror.replace(APPROVALS, rows)
            self.cache.set(key, list(approvals))
            return approvals

        self._degrade(result.error, "load approvals")
        approvals = [
            a for a in self._mirrored_approvals()
            if _matches(a, status_value, department, requested_by, asset_ids)
        ]
        approvals.sort(key=lambda a: a.requested_at, reverse=True)
        synced = self.mirror.last_synced(APPROVALS)
        logger.info(
            f"Serving {len(approvals)} approvals from local mirror "
            f"(last full sync: {synced.isoformat() if synced else 'never'})"
        )
        return approvals

    async def list_approval_events(self, approval_id: str) -> List[ApprovalEventResponse]:
        """Events for one approval, oldest first."""
        result = await self.remote.list_approval_events(approval_id)
        if result.ok and result.value is not None:
            self.mirror.upsert_many(APPROVAL_EVENTS, [e.model_dump(mode="json") for e in result.value])
            return result.value

        self._degrade(result.error, f"load events for {approval_id}")
        events = []
        for row in self.mirror.filter(APPROVAL_EVENTS, lambda r: r.get("approval_id") == approval_id):
            try:
                events.append(ApprovalEventResponse.model_validate(row))
            except ValueError:
                logger.warning(f"Skipping malformed mirrored event {row.get('id')}")
        events.sort(key=lambda e: e.created_at)
        return events

    # Writes

    async def _resolve_department(
        self,
        submission: ApprovalSubmission,
        actor: Optional[UserResponse],
    ) -> Optional[str]:
        explicit = _normalize(submission.department)
        if explicit:
            return explicit
        if actor is not None and _normalize(actor.department):
            return _normalize(actor.department)
        user = await self.directory.find(submission.requested_by)
        return _normalize(user.department) if user else None

    async def submit_approval(
        self,
        data: Union[ApprovalSubmission, Dict[str, Any]],
        actor: Optional[UserResponse] = None,
    ) -> ApprovalResponse:
        """
        Create a request in pending_manager and notify the department's managers.

        Raises pydantic.ValidationError before any I/O when asset_id, action or
        requested_by is missing. Any status in ``data`` is ignored.
        """
        submission = (
            data if isinstance(data, ApprovalSubmission) else ApprovalSubmission.model_validate(data)
        )
        department = await self._resolve_department(submission, actor)
        now = utcnow()
        approval = ApprovalResponse(
            id=new_approval_id(),
            asset_id=submission.asset_id,
            action=submission.action,
            status=ApprovalStatus.PENDING_MANAGER,
            requested_by=submission.requested_by,
            requested_at=now,
            reviewed_by=None,
            reviewed_at=None,
            notes=submission.notes,
            patch=submission.patch,
            department=department,
        )
        event = ApprovalEventCreate(
            id=new_event_id(),
            approval_id=approval.id,
            event_type=ApprovalEventType.SUBMITTED,
            author=submission.requested_by,
            message=submission.notes,
            created_at=now,
        )

        payload = ApprovalCreate(**approval.model_dump(exclude={"status", "reviewed_by", "reviewed_at"}), event=event)
        result = await self.remote.create_approval(payload)
        if result.ok and result.value is not None:
            created = result.value
        else:
            self._degrade(result.error, "save approval", transition=False)
            created = approval

        self._remember(created)
        self._remember_event(ApprovalEventResponse.model_validate(event.model_dump()))
        logger.info(f"Submitted approval {created.id} for asset {created.asset_id} ({created.action.value})")

        requester = actor.name if actor is not None and actor.name else None
        await self._notify(self.notifier.notify_submitted, created, requester=requester)
        return created

    async def _write(
        self,
        current: ApprovalResponse,
        update: ApprovalUpdate,
        what: str,
    ) -> Optional[ApprovalResponse]:
        """Send a row update with its embedded event; fall back to the mirror on outage."""
        result = await self.remote.update_approval(current.id, update)
        if result.ok and result.value is not None:
            updated = result.value
        elif result.ok:
            if self._mirrored_approval(current.id) is None:
                logger.warning(f"Approval {current.id} disappeared before it could {what}")
                return None
            logger.info(f"Approval {current.id} is unknown to the API, keeping the change in the local mirror")
            updated = ApprovalResponse.model_validate({**current.model_dump(), **update.changes()})
        else:
            self._degrade(result.error, what)
            updated = ApprovalResponse.model_validate({**current.model_dump(), **update.changes()})

        self._remember(updated)
        if update.event is not None:
            self._remember_event(ApprovalEventResponse.model_validate(update.event.model_dump()))
        return updated

    def _event(
        self,
        approval_id: str,
        event_type: ApprovalEventType,
        author: Optional[str],
        message: Optional[str],
        created_at=None,
    ) -> ApprovalEventCreate:
        return ApprovalEventCreate(
            id=new_event_id(),
            approval_id=approval_id,
            event_type=event_type,
            author=author,
            message=message,
            created_at=created_at or utcnow(),
        )

    async def forward_approval_to_admin(
        self,
        approval_id: str,
        manager: str,
        notes: Optional[str] = None,
    ) -> Optional[ApprovalResponse]:
        """
        Manager sign-off: move a pending_manager request to pending_admin.

        Returns None for an unknown id. Raises InvalidTransitionError if the
        request is not waiting on a manager.
        """
        current = await self.get_approval(approval_id)
        if current is None:
            return None
        validate_transition(current.status, ApprovalStatus.PENDING_ADMIN)

        now = utcnow()
        update = ApprovalUpdate(
            status=ApprovalStatus.PENDING_ADMIN,
            reviewed_by=manager,
            reviewed_at=now,
            notes=notes,
            event=self._event(approval_id, ApprovalEventType.FORWARDED, manager, notes, now),
        )
        updated = await self._write(current, update, "forward approval")
        if updated is None:
            return None

        logger.info(f"Approval {approval_id} forwarded to admin by {manager}")
        await self._notify(self.notifier.notify_forwarded, updated, manager, notes)
        return updated

    async def decide_approval_final(
        self,
        approval_id: str,
        decision: ApprovalStatus,
        admin: str,
        notes: Optional[str] = None,
        override: bool = False,
    ) -> Optional[ApprovalResponse]:
        """
        Admin decision: approve or reject a request.

        Approving an edit with a non-empty patch also applies the patch to the
        asset. A failure there is logged and does not undo the approval.
        """
        try:
            decision = ApprovalStatus(decision)
        except ValueError:
            raise ValueError(f"Invalid decision: {decision}") from None
        if decision not in DECISIONS:
            raise ValueError(f"Invalid decision: {decision.value}")

        current = await self.get_approval(approval_id)
        if current is None:
            return None
        validate_transition(current.status, decision, override=override)

        now = utcnow()
        event_type = ApprovalEventType(decision.value)
        update = ApprovalUpdate(
            status=decision,
            reviewed_by=admin,
            reviewed_at=now,
            notes=notes,
            event=self._event(approval_id, event_type, admin, notes, now),
        )
        updated = await self._write(current, update, f"{decision.value} approval")
        if updated is None:
            return None

        logger.info(
            f"Approval {approval_id} {decision.value} by {admin}"
            + (" (override)" if override else "")
        )
        if decision == ApprovalStatus.APPROVED:
            await self._apply_patch(updated, admin)

        await self._notify(self.notifier.notify_decision, updated, admin, decision.value, notes)
        return updated

    async def _apply_patch(self, approval: ApprovalResponse, admin: str) -> None:
        if approval.action != ApprovalAction.EDIT or not approval.patch:
            return

        result = await self.remote.update_asset(approval.asset_id, approval.patch)
        if not result.ok:
            logger.warning(f"Patch for approval {approval.id} could not be applied: {result.error}")
            return
        if result.value is None:
            logger.warning(f"Patch for approval {approval.id} not applied: asset {approval.asset_id} not found")
            return

        fields = ", ".join(sorted(approval.patch))
        logger.info(f"Applied approval {approval.id} patch to asset {approval.asset_id}: {fields}")
        event = self._event(approval.id, ApprovalEventType.APPLIED, admin, f"applied: {fields}")
        try:
            await self._append_event(event, "record patch application")
        except (InvalidTransitionError, ValueError) as e:
            logger.warning(f"Could not record patch application for {approval.id}: {e}")

    async def admin_override_approve(
        self,
        approval_id: str,
        admin: str,
        notes: Optional[str] = None,
    ) -> Optional[ApprovalResponse]:
        """Approve directly from pending_manager, skipping the manager step."""
        message = notes if notes and notes.strip() else OVERRIDE_NOTE
        return await self.decide_approval_final(
            approval_id, ApprovalStatus.APPROVED, admin, message, override=True
        )

    async def update_approval_patch(
        self,
        approval_id: str,
        manager: str,
        patch_data: Dict[str, Any],
    ) -> Optional[ApprovalResponse]:
        """Replace the proposed patch of a pending request; status is unchanged."""
        current = await self.get_approval(approval_id)
        if current is None:
            return None
        if is_terminal(current.status):
            raise InvalidTransitionError(
                f"Cannot change the patch of a {current.status.value} approval"
            )

        previous = current.patch or {}
        changed = sorted(
            k for k in set(previous) | set(patch_data) if previous.get(k) != patch_data.get(k)
        )
        message = f"patch: {', '.join(changed)}" if changed else "patch: no changes"
        update = ApprovalUpdate(
            patch=patch_data,
            event=self._event(approval_id, ApprovalEventType.PATCH_UPDATED, manager, message),
        )
        updated = await self._write(current, update, "update approval patch")
        if updated is not None:
            logger.info(f"Approval {approval_id} patch updated by {manager}: {changed}")
        return updated

    async def _append_event(self, event: ApprovalEventCreate, what: str) -> Optional[ApprovalEventResponse]:
        result = await self.remote.create_approval_event(event)
        if result.ok and result.value is not None:
            saved = result.value
        elif result.ok:
            if self._mirrored_approval(event.approval_id) is None:
                logger.warning(f"Approval {event.approval_id} not found, could not {what}")
                return None
            logger.info(f"Approval {event.approval_id} is unknown to the API, keeping the event in the local mirror")
            saved = ApprovalEventResponse.model_validate(event.model_dump())
        else:
            self._degrade(result.error, what, transition=False)
            saved = ApprovalEventResponse.model_validate(event.model_dump())
        self._remember_event(saved)
        return saved

    async def add_approval_comment(
        self,
        approval_id: str,
        author: str,
        field: str,
        message: str,
    ) -> Optional[ApprovalEventResponse]:
        """Annotate one field of a request; stored as a ``comment`` event."""
        event = self._event(approval_id, ApprovalEventType.COMMENT, author, f"{field}: {message}")
        return await self._append_event(event, "add approval comment")

    async def resync_approval_departments(self) -> DepartmentResyncResult:
        """
        Bring stored departments back in line with requesters' current ones.

        Only drifted rows are written. No events are emitted.
        """
        approvals = await self.list_approvals(force=True)
        users = await self.directory.list_users()
        plan = plan_department_resync(approvals, users)

        updated = errors = 0
        for approval, department in plan:
            update = ApprovalUpdate(department=department)
            try:
                if await self._write(approval, update, "resync approval department"):
                    updated += 1
                else:
                    errors += 1
            except (InvalidTransitionError, ValueError) as e:
                logger.error(f"Failed to resync department of {approval.id}: {e}")
                errors += 1

        logger.info(f"Department resync: {updated} updated of {len(approvals)} ({errors} errors)")
        return DepartmentResyncResult(updated=updated, total=len(approvals), errors=errors)
