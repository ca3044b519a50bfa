from enum import Enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON, Index
from sqlalchemy.orm import relationship

from assetdesk.database import Base, utcnow


class ApprovalAction(str, Enum):
    """What the requester wants done to the asset"""
    CREATE = "create"
    EDIT = "edit"
    DECOMMISSION = "decommission"


class ApprovalStatus(str, Enum):
    """Valid states for approval requests"""
    PENDING_MANAGER = "pending_manager"
    PENDING_ADMIN = "pending_admin"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalEventType(str, Enum):
    """Kinds of entries in the approval audit trail"""
    SUBMITTED = "submitted"
    FORWARDED = "forwarded"
    APPROVED = "approved"
    REJECTED = "rejected"
    APPLIED = "applied"
    PATCH_UPDATED = "patch_updated"
    COMMENT = "comment"


class Approval(Base):
    __tablename__ = "approvals"

    id = Column(String(64), primary_key=True)
    asset_id = Column(String(64), nullable=False, index=True)  # not a FK: dangling references are tolerated
    action = Column(String(32), nullable=False)

    # State machine
    status = Column(String(32), nullable=False, default=ApprovalStatus.PENDING_MANAGER.value, index=True)

    # Requester (email or user id) and routing snapshot
    requested_by = Column(String(255), nullable=False, index=True)
    requested_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    department = Column(String(255), nullable=True, index=True)

    # Last reviewer; history lives in approval_events
    reviewed_by = Column(String(255), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    # Field diff applied to the asset on final approval of an edit
    # Structure: {"status": "retired", "location": "Store room"}
    patch = Column(JSON, nullable=True)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    events = relationship(
        "ApprovalEvent",
        back_populates="approval",
        order_by="ApprovalEvent.created_at",
    )

    __table_args__ = (
        Index("idx_approvals_listing", "status", "requested_at"),
    )


class ApprovalEvent(Base):
    """Append-only audit entry. Never updated or deleted."""
    __tablename__ = "approval_events"

    id = Column(String(64), primary_key=True)
    approval_id = Column(String(64), ForeignKey("approvals.id"), nullable=False, index=True)
    event_type = Column(String(32), nullable=False)
    author = Column(String(255), nullable=True)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    approval = relationship("Approval", back_populates="events")
