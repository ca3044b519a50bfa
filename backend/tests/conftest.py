"""
Pytest fixtures for testing.
"""
import pytest
import pytest_asyncio
from datetime import timedelta
from typing import AsyncGenerator, Dict, List, Optional

from httpx import AsyncClient, ASGITransport
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Import database module BEFORE app to allow override
import assetdesk.database
from assetdesk.database import Base, utcnow
# Import ALL models so Base.metadata knows about all tables
from assetdesk import models  # noqa: F401

# Now import app (after we can override database)
from assetdesk.main import app as fastapi_app

from assetdesk.models.approval import ApprovalStatus
from assetdesk.schemas.approval import (
    ApprovalCreate,
    ApprovalEventCreate,
    ApprovalEventResponse,
    ApprovalResponse,
    ApprovalUpdate,
)
from assetdesk.schemas.asset import AssetResponse, AssetUpdate
from assetdesk.schemas.notification import NotificationCreate, NotificationResponse
from assetdesk.schemas.user import UserResponse
from assetdesk.services.approvals import ApprovalService, new_event_id
from assetdesk.services.cache import ListCache
from assetdesk.services.directory import UserDirectory
from assetdesk.services.mirror import LocalMirror, MemoryStore
from assetdesk.services.notifications import NotificationDispatcher
from assetdesk.services.remote import RemoteResult
from assetdesk.services.state_machine import InvalidTransitionError, validate_transition


# Test database URL (use in-memory SQLite for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database for each test.
    Ensures cleanup happens even if test fails.
    """
    # StaticPool keeps a single connection so every session sees the same in-memory database
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    original_engine = assetdesk.database.engine
    original_sessionmaker = assetdesk.database.AsyncSessionLocal

    assetdesk.database.engine = test_engine
    assetdesk.database.AsyncSessionLocal = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)()

    try:
        yield session
    finally:
        try:
            await session.close()
        except Exception as e:
            print(f"Warning: Failed to close session: {e}")

        try:
            async with test_engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
        except Exception as e:
            print(f"Warning: Failed to drop tables: {e}")

        try:
            await test_engine.dispose()
        except Exception as e:
            print(f"Warning: Failed to dispose engine: {e}")

        assetdesk.database.engine = original_engine
        assetdesk.database.AsyncSessionLocal = original_sessionmaker


@pytest_asyncio.fixture
async def async_client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async HTTP client for testing endpoints.

    The db fixture already replaced assetdesk.database.engine with the test
    engine, so all endpoints use the test database.
    """
    transport = ASGITransport(app=fastapi_app)

    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True  # Follow 307 redirects for trailing slashes
    ) as client:
        yield client


# ============================================================
# APPROVAL SERVICE FIXTURES
# ============================================================

class FakeRemote:
    """
    In-memory stand-in for ApiClient.

    Mirrors the server's behaviour (forced pending_manager on create, 409 on
    disallowed status moves, 404 as an empty result). Set ``down = True`` to
    make every call fail like a refused connection.
    """

    def __init__(self):
        self.down = False
        self.approvals: Dict[str, ApprovalResponse] = {}
        self.events: List[ApprovalEventResponse] = []
        self.users: List[UserResponse] = []
        self.assets: Dict[str, AssetResponse] = {}
        self.notifications: List[NotificationCreate] = []
        self.asset_updates: List[tuple] = []
        self.calls: List[str] = []

    def _outage(self) -> RemoteResult:
        return RemoteResult.failure("ClientConnectorError: Connection refused")

    def _record_event(self, approval_id: str, event: ApprovalEventCreate) -> ApprovalEventResponse:
        saved = ApprovalEventResponse(
            id=event.id or new_event_id(),
            approval_id=approval_id,
            event_type=event.event_type,
            author=event.author,
            message=event.message,
            created_at=event.created_at or utcnow(),
        )
        self.events.append(saved)
        return saved

    async def list_approvals(self, status=None, department=None, requested_by=None, asset_ids=None):
        self.calls.append("list_approvals")
        if self.down:
            return self._outage()
        rows = list(self.approvals.values())
        if status:
            rows = [a for a in rows if a.status.value == status]
        if department:
            rows = [a for a in rows if (a.department or "").lower() == department.strip().lower()]
        if requested_by:
            rows = [a for a in rows if a.requested_by.lower() == requested_by.strip().lower()]
        if asset_ids:
            wanted = {a.lower() for a in asset_ids}
            rows = [a for a in rows if a.asset_id.lower() in wanted]
        rows.sort(key=lambda a: a.requested_at, reverse=True)
        return RemoteResult(value=rows)

    async def get_approval(self, approval_id):
        self.calls.append("get_approval")
        if self.down:
            return self._outage()
        return RemoteResult(value=self.approvals.get(approval_id))

    async def create_approval(self, payload: ApprovalCreate):
        self.calls.append("create_approval")
        if self.down:
            return self._outage()
        if payload.id in self.approvals:
            return RemoteResult.failure(f"Approval {payload.id} already exists", status=409)
        approval = ApprovalResponse(
            id=payload.id,
            asset_id=payload.asset_id,
            action=payload.action,
            status=ApprovalStatus.PENDING_MANAGER,
            requested_by=payload.requested_by,
            requested_at=payload.requested_at or utcnow(),
            notes=payload.notes,
            patch=payload.patch,
            department=payload.department,
        )
        self.approvals[approval.id] = approval
        if payload.event:
            self._record_event(approval.id, payload.event)
        return RemoteResult(value=approval)

    async def update_approval(self, approval_id, update: ApprovalUpdate):
        self.calls.append("update_approval")
        if self.down:
            return self._outage()
        current = self.approvals.get(approval_id)
        if current is None:
            return RemoteResult(value=None)
        changes = update.changes()
        new_status = changes.get("status")
        if new_status and new_status != current.status.value:
            try:
                validate_transition(current.status, ApprovalStatus(new_status), override=True)
            except InvalidTransitionError as e:
                return RemoteResult.failure(str(e), status=409)
        updated = ApprovalResponse.model_validate({**current.model_dump(), **changes})
        self.approvals[approval_id] = updated
        if update.event:
            self._record_event(approval_id, update.event)
        return RemoteResult(value=updated)

    async def list_approval_events(self, approval_id):
        self.calls.append("list_approval_events")
        if self.down:
            return self._outage()
        rows = [e for e in self.events if e.approval_id == approval_id]
        return RemoteResult(value=sorted(rows, key=lambda e: e.created_at))

    async def create_approval_event(self, event: ApprovalEventCreate):
        self.calls.append("create_approval_event")
        if self.down:
            return self._outage()
        if event.approval_id not in self.approvals:
            return RemoteResult(value=None)
        return RemoteResult(value=self._record_event(event.approval_id, event))

    async def list_users(self):
        self.calls.append("list_users")
        if self.down:
            return self._outage()
        return RemoteResult(value=list(self.users))

    async def update_asset(self, asset_id, patch):
        self.calls.append("update_asset")
        if self.down:
            return self._outage()
        asset = self.assets.get(asset_id)
        if asset is None:
            return RemoteResult(value=None)
        try:
            changes = AssetUpdate.model_validate(patch).changes()
        except ValidationError as e:
            return RemoteResult.failure(str(e), status=422)
        self.asset_updates.append((asset_id, changes))
        self.assets[asset_id] = asset.model_copy(update={**changes, "updated_at": utcnow()})
        return RemoteResult(value=self.assets[asset_id])

    async def create_notification(self, notification: NotificationCreate):
        self.calls.append("create_notification")
        if self.down:
            return self._outage()
        self.notifications.append(notification)
        return RemoteResult(value=NotificationResponse(
            id=f"NTF-{len(self.notifications)}",
            user_id=notification.user_id,
            title=notification.title,
            message=notification.message,
            type=notification.type,
            read=False,
            created_at=utcnow(),
        ))

    def seed_approval(self, **fields) -> ApprovalResponse:
        """Put an approval straight into the store, bypassing create."""
        data = {
            "asset_id": "AST-1",
            "action": "edit",
            "status": "pending_manager",
            "requested_by": "u1@x.com",
            "requested_at": utcnow(),
        }
        data.update(fields)
        approval = ApprovalResponse.model_validate(data)
        self.approvals[approval.id] = approval
        return approval


class RecordingEmail:
    """Captures outgoing approval emails instead of sending them."""

    def __init__(self, fail: bool = False):
        self.sent: List[tuple] = []
        self.fail = fail

    async def _record(self, kind, **kwargs):
        if self.fail:
            raise RuntimeError("SMTP relay unreachable")
        self.sent.append((kind, kwargs))
        return True

    async def send_approval_submitted_email(self, **kwargs):
        return await self._record("submitted", **kwargs)

    async def send_approval_forwarded_email(self, **kwargs):
        return await self._record("forwarded", **kwargs)

    async def send_approval_decision_email(self, **kwargs):
        return await self._record("decision", **kwargs)

    def of_kind(self, kind: str) -> List[dict]:
        return [kwargs for k, kwargs in self.sent if k == kind]


def make_user(user_id: str, email: str, role: str = "user", department: Optional[str] = None,
              status: str = "active", name: Optional[str] = None) -> UserResponse:
    return UserResponse(
        id=user_id,
        name=name or email.split("@")[0].upper(),
        email=email,
        role=role,
        department=department,
        status=status,
    )


@pytest.fixture
def remote() -> FakeRemote:
    fake = FakeRemote()
    fake.users = [
        make_user("usr-1", "u1@x.com", department="Ops", name="Uma User"),
        make_user("usr-2", "u2@x.com", department="Finance"),
        make_user("mgr-1", "m1@x.com", role="manager", department="Ops", name="Max Manager"),
        make_user("mgr-2", "m2@x.com", role="manager", department="Finance"),
        make_user("mgr-3", "m3@x.com", role="manager", department="Ops", status="inactive"),
        make_user("adm-1", "a1@x.com", role="admin", name="Ada Admin"),
    ]
    now = utcnow()
    fake.assets["AST-1"] = AssetResponse(
        id="AST-1",
        name="Forklift",
        type="vehicle",
        department="Ops",
        quantity=1,
        status="active",
        location="Warehouse",
        created_at=now - timedelta(days=30),
        updated_at=now - timedelta(days=30),
    )
    return fake


@pytest.fixture
def mirror() -> LocalMirror:
    return LocalMirror(MemoryStore())


@pytest.fixture
def outbox() -> RecordingEmail:
    return RecordingEmail()


@pytest.fixture
def directory(remote: FakeRemote, mirror: LocalMirror) -> UserDirectory:
    return UserDirectory(remote, mirror)


@pytest.fixture
def notifier(directory: UserDirectory, remote: FakeRemote, outbox: RecordingEmail) -> NotificationDispatcher:
    return NotificationDispatcher(directory, remote, email=outbox)


@pytest.fixture
def service(remote, mirror, directory, notifier) -> ApprovalService:
    return ApprovalService(remote, mirror, directory, notifier, cache=ListCache(ttl_seconds=30))
