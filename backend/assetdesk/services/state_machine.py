"""
State machine for approval requests.
ALL status changes, on the server and in the client service, are validated here.
"""
import logging
from typing import Dict

from assetdesk.models.approval import ApprovalStatus

logger = logging.getLogger(__name__)


# Define allowed state transitions
ALLOWED_TRANSITIONS: Dict[ApprovalStatus, list[ApprovalStatus]] = {
    ApprovalStatus.PENDING_MANAGER: [ApprovalStatus.PENDING_ADMIN],
    ApprovalStatus.PENDING_ADMIN: [ApprovalStatus.APPROVED, ApprovalStatus.REJECTED],
    ApprovalStatus.APPROVED: [],  # Terminal state
    ApprovalStatus.REJECTED: [],  # Terminal state
}

# Admin override skips the manager step
OVERRIDE_TRANSITIONS: Dict[ApprovalStatus, list[ApprovalStatus]] = {
    ApprovalStatus.PENDING_MANAGER: [ApprovalStatus.APPROVED],
}

DECISIONS = {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED}


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted"""
    pass


def can_transition(
    from_state: ApprovalStatus,
    to_state: ApprovalStatus,
    override: bool = False
) -> bool:
    """Check if a transition is allowed without touching any storage"""
    from_state = ApprovalStatus(from_state)
    to_state = ApprovalStatus(to_state)
    if to_state in ALLOWED_TRANSITIONS.get(from_state, []):
        return True
    if override and to_state in OVERRIDE_TRANSITIONS.get(from_state, []):
        return True
    return False


def validate_transition(
    from_state: ApprovalStatus,
    to_state: ApprovalStatus,
    override: bool = False
) -> None:
    """
    Validate a status change.

    Args:
        from_state: Current status of the approval
        to_state: Requested status
        override: Also accept the admin-override shortcut

    Raises:
        InvalidTransitionError: If the move is not allowed
    """
    if not can_transition(from_state, to_state, override=override):
        raise InvalidTransitionError(
            f"Invalid transition from {ApprovalStatus(from_state).value} to {ApprovalStatus(to_state).value}"
        )
    logger.debug(
        f"Approval transition allowed: {ApprovalStatus(from_state).value} → {ApprovalStatus(to_state).value}",
        extra={"override": override},
    )


def is_terminal(status: ApprovalStatus) -> bool:
    return not ALLOWED_TRANSITIONS.get(ApprovalStatus(status), [])
