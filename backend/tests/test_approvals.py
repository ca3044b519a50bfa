"""
Tests for the Approvals API.

Tests cover:
- Creating approval requests (status is always forced to pending_manager)
- Listing with case-insensitive filters and newest-first ordering
- Partial updates through the state machine (409 on disallowed moves)
- Embedded events committed together with the row
- Error cases
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.models.approval import Approval, ApprovalEvent


async def create_approval(client: AsyncClient, **fields) -> dict:
    body = {
        "asset_id": "AST-1",
        "action": "edit",
        "requested_by": "u1@x.com",
    }
    body.update(fields)
    response = await client.post("/api/approvals/", json=body)
    assert response.status_code == 201, response.text
    return response.json()


# ============================================================
# CREATE APPROVAL TESTS
# ============================================================

@pytest.mark.asyncio
async def test_create_approval(async_client: AsyncClient):
    """New requests start in pending_manager with no reviewer."""
    data = await create_approval(
        async_client,
        notes="Forklift retired",
        patch={"status": "retired"},
        department="  Ops ",
    )

    assert data["id"].startswith("APR-")
    assert data["status"] == "pending_manager"
    assert data["asset_id"] == "AST-1"
    assert data["patch"] == {"status": "retired"}
    assert data["department"] == "Ops"
    assert data["reviewed_by"] is None
    assert data["reviewed_at"] is None
    assert data["requested_at"] is not None


@pytest.mark.asyncio
async def test_create_approval_ignores_status_in_body(async_client: AsyncClient):
    data = await create_approval(async_client, status="approved")

    assert data["status"] == "pending_manager"


@pytest.mark.asyncio
async def test_create_approval_keeps_client_id(async_client: AsyncClient):
    data = await create_approval(async_client, id="APR-CLIENT1")

    assert data["id"] == "APR-CLIENT1"


@pytest.mark.asyncio
async def test_create_approval_duplicate_id(async_client: AsyncClient):
    await create_approval(async_client, id="APR-DUP")

    response = await async_client.post(
        "/api/approvals/",
        json={"id": "APR-DUP", "asset_id": "AST-2", "action": "create", "requested_by": "u1@x.com"},
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_approval_requires_fields(async_client: AsyncClient):
    response = await async_client.post(
        "/api/approvals/",
        json={"action": "edit", "requested_by": "u1@x.com"},
    )
    assert response.status_code == 422

    response = await async_client.post(
        "/api/approvals/",
        json={"asset_id": "AST-1", "action": "paint", "requested_by": "u1@x.com"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_approval_writes_embedded_event(async_client: AsyncClient, db: AsyncSession):
    """The submitted event lands in the same commit as the row."""
    data = await create_approval(
        async_client,
        id="APR-EVT",
        event={"event_type": "submitted", "author": "u1@x.com", "message": "please"},
    )

    result = await db.execute(select(ApprovalEvent).where(ApprovalEvent.approval_id == data["id"]))
    events = result.scalars().all()

    assert len(events) == 1
    assert events[0].event_type == "submitted"
    assert events[0].author == "u1@x.com"
    assert events[0].id.startswith("AEV-")


# ============================================================
# LIST / GET TESTS
# ============================================================

@pytest.mark.asyncio
async def test_list_approvals_empty(async_client: AsyncClient):
    response = await async_client.get("/api/approvals/")

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_list_approvals_newest_first(async_client: AsyncClient):
    await create_approval(async_client, id="APR-OLD", requested_at="2026-01-01T08:00:00+00:00")
    await create_approval(async_client, id="APR-NEW", requested_at="2026-03-01T08:00:00+00:00")
    await create_approval(async_client, id="APR-MID", requested_at="2026-02-01T08:00:00+00:00")

    response = await async_client.get("/api/approvals/")

    assert [a["id"] for a in response.json()] == ["APR-NEW", "APR-MID", "APR-OLD"]


@pytest.mark.asyncio
async def test_list_approvals_department_is_case_insensitive(async_client: AsyncClient):
    await create_approval(async_client, id="APR-OPS", department="Ops")
    await create_approval(async_client, id="APR-FIN", department="Finance")

    response = await async_client.get("/api/approvals/", params={"department": "ops"})

    assert [a["id"] for a in response.json()] == ["APR-OPS"]


@pytest.mark.asyncio
async def test_list_approvals_filters(async_client: AsyncClient):
    await create_approval(async_client, id="APR-1", asset_id="AST-1", requested_by="U1@x.com")
    await create_approval(async_client, id="APR-2", asset_id="AST-2", requested_by="u2@x.com")
    await create_approval(async_client, id="APR-3", asset_id="AST-3", requested_by="u1@x.com")

    response = await async_client.get("/api/approvals/", params={"requestedBy": "u1@X.com"})
    assert {a["id"] for a in response.json()} == {"APR-1", "APR-3"}

    response = await async_client.get(
        "/api/approvals/", params=[("assetId", "AST-1"), ("assetId", "AST-2")]
    )
    assert {a["id"] for a in response.json()} == {"APR-1", "APR-2"}

    await async_client.put("/api/approvals/APR-2", json={"status": "pending_admin"})
    response = await async_client.get("/api/approvals/", params={"status": "pending_admin"})
    assert [a["id"] for a in response.json()] == ["APR-2"]


@pytest.mark.asyncio
async def test_get_approval(async_client: AsyncClient):
    await create_approval(async_client, id="APR-GET")

    response = await async_client.get("/api/approvals/APR-GET")

    assert response.status_code == 200
    assert response.json()["id"] == "APR-GET"


@pytest.mark.asyncio
async def test_get_approval_not_found(async_client: AsyncClient):
    response = await async_client.get("/api/approvals/APR-MISSING")

    assert response.status_code == 404


# ============================================================
# UPDATE TESTS
# ============================================================

@pytest.mark.asyncio
async def test_forward_then_approve(async_client: AsyncClient):
    await create_approval(async_client, id="APR-FLOW")

    response = await async_client.put(
        "/api/approvals/APR-FLOW",
        json={
            "status": "pending_admin",
            "reviewed_by": "m1@x.com",
            "reviewed_at": "2026-10-19T09:00:00+00:00",
            "notes": "looks fine",
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending_admin"
    assert data["reviewed_by"] == "m1@x.com"
    assert data["notes"] == "looks fine"

    response = await async_client.put(
        "/api/approvals/APR-FLOW",
        json={"status": "approved", "reviewed_by": "a1@x.com"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "approved"
    assert data["reviewed_by"] == "a1@x.com"
    # Fields not sent are untouched
    assert data["notes"] == "looks fine"


@pytest.mark.asyncio
async def test_update_rejects_disallowed_transition(async_client: AsyncClient):
    await create_approval(async_client, id="APR-BAD")
    await async_client.put("/api/approvals/APR-BAD", json={"status": "pending_admin"})
    await async_client.put("/api/approvals/APR-BAD", json={"status": "rejected"})

    response = await async_client.put("/api/approvals/APR-BAD", json={"status": "pending_manager"})

    assert response.status_code == 409
    assert "rejected" in response.json()["detail"]


@pytest.mark.asyncio
async def test_update_allows_override_shortcut(async_client: AsyncClient):
    await create_approval(async_client, id="APR-OVR")

    response = await async_client.put("/api/approvals/APR-OVR", json={"status": "approved"})

    assert response.status_code == 200
    assert response.json()["status"] == "approved"


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(async_client: AsyncClient):
    await create_approval(async_client, id="APR-UNK")

    response = await async_client.put(
        "/api/approvals/APR-UNK",
        json={"requested_by": "someone-else@x.com"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_requires_fields(async_client: AsyncClient):
    await create_approval(async_client, id="APR-EMPTY")

    response = await async_client.put("/api/approvals/APR-EMPTY", json={})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_not_found(async_client: AsyncClient):
    response = await async_client.put("/api/approvals/APR-NOPE", json={"notes": "x"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_writes_embedded_event(async_client: AsyncClient, db: AsyncSession):
    await create_approval(async_client, id="APR-UEVT")

    response = await async_client.put(
        "/api/approvals/APR-UEVT",
        json={
            "status": "pending_admin",
            "reviewed_by": "m1@x.com",
            "event": {"event_type": "forwarded", "author": "m1@x.com"},
        },
    )
    assert response.status_code == 200

    result = await db.execute(select(ApprovalEvent).where(ApprovalEvent.approval_id == "APR-UEVT"))
    assert [e.event_type for e in result.scalars().all()] == ["forwarded"]


@pytest.mark.asyncio
async def test_rejected_update_writes_no_event(async_client: AsyncClient, db: AsyncSession):
    """A 409 leaves both the row and the audit trail untouched."""
    await create_approval(async_client, id="APR-ATOM")

    response = await async_client.put(
        "/api/approvals/APR-ATOM",
        json={"status": "rejected", "event": {"event_type": "rejected", "author": "a1@x.com"}},
    )
    assert response.status_code == 409

    events = await db.execute(select(ApprovalEvent).where(ApprovalEvent.approval_id == "APR-ATOM"))
    assert events.scalars().all() == []

    row = await db.execute(select(Approval).where(Approval.id == "APR-ATOM"))
    assert row.scalar_one().status == "pending_manager"
