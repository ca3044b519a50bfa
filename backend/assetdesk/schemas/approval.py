"""Approval-related Pydantic schemas.

These are shared by the REST server and the approval client service, so the
wire format (snake_case JSON) is defined in exactly one place.
"""
from datetime import datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from assetdesk.models.approval import ApprovalAction, ApprovalStatus, ApprovalEventType


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything in-process is UTC-aware
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ApprovalEventCreate(BaseModel):
    """Schema for appending an event, standalone or embedded in an approval write."""
    id: Optional[str] = None
    approval_id: Optional[str] = None  # filled in by the server when embedded
    event_type: ApprovalEventType
    author: Optional[str] = None
    message: Optional[str] = None
    created_at: Optional[datetime] = None


class ApprovalEventResponse(BaseModel):
    """Schema for approval event response."""
    id: str
    approval_id: str
    event_type: ApprovalEventType
    author: Optional[str] = None
    message: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value):
        return _as_utc(value)


class ApprovalSubmission(BaseModel):
    """
    Caller input for submitting a request.

    Unknown keys (including any ``status``) are ignored: new requests always
    start in ``pending_manager``.
    """
    model_config = ConfigDict(extra="ignore")

    asset_id: str = Field(min_length=1)
    action: ApprovalAction
    requested_by: str = Field(min_length=1)
    notes: Optional[str] = None
    patch: Optional[dict[str, Any]] = None
    department: Optional[str] = None


class ApprovalCreate(ApprovalSubmission):
    """Schema for POST /approvals."""
    id: Optional[str] = None
    requested_at: Optional[datetime] = None
    event: Optional[ApprovalEventCreate] = None


class ApprovalUpdate(BaseModel):
    """
    Typed partial update for PUT /approvals/{id}.

    Only the mutable columns are accepted; anything else is a validation error.
    Fields that are not explicitly set are left untouched. An embedded
    ``event`` is committed in the same transaction as the row update.
    """
    model_config = ConfigDict(extra="forbid")

    status: Optional[ApprovalStatus] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    notes: Optional[str] = None
    patch: Optional[dict[str, Any]] = None
    department: Optional[str] = None
    event: Optional[ApprovalEventCreate] = None

    def changes(self) -> dict[str, Any]:
        """Column values to write, keyed by column name."""
        data = self.model_dump(exclude_unset=True, exclude={"event"})
        if data.get("status") is None:
            data.pop("status", None)
        else:
            data["status"] = ApprovalStatus(data["status"]).value
        return data


class ApprovalResponse(BaseModel):
    """Schema for an approval request as returned by the API and held in the mirror."""
    id: str
    asset_id: str
    action: ApprovalAction
    status: ApprovalStatus
    requested_by: str
    requested_at: datetime
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    notes: Optional[str] = None
    patch: Optional[dict[str, Any]] = None
    department: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("requested_at", "reviewed_at")
    @classmethod
    def _timestamps_utc(cls, value):
        return _as_utc(value)


class DepartmentResyncResult(BaseModel):
    """Outcome of reconciling stored departments with the user directory."""
    updated: int = 0
    total: int = 0
    errors: int = 0
