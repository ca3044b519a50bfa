"""
Remote API port for the approval client service.

Every call returns a RemoteResult instead of raising, so callers decide
whether a failure should degrade to the local mirror. A 404 is a successful
result with ``value=None``.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar

import aiohttp

from assetdesk.config import settings
from assetdesk.schemas.approval import (
    ApprovalCreate,
    ApprovalUpdate,
    ApprovalResponse,
    ApprovalEventCreate,
    ApprovalEventResponse,
)
from assetdesk.schemas.asset import AssetResponse
from assetdesk.schemas.notification import NotificationCreate, NotificationResponse
from assetdesk.schemas.user import UserResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RemoteError:
    """Why a remote call did not produce a value."""
    message: str
    status: Optional[int] = None

    @property
    def unavailable(self) -> bool:
        """True for outages (network, timeout, 5xx, bad body) as opposed to a rejected request."""
        return self.status is None or self.status >= 500

    def __str__(self) -> str:
        return f"{self.status}: {self.message}" if self.status else self.message


@dataclass
class RemoteResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[RemoteError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str, status: Optional[int] = None) -> "RemoteResult[T]":
        return cls(error=RemoteError(message=message, status=status))


class ApiClient:
    """aiohttp client for the AssetDesk REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_s or settings.remote_timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Any] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> RemoteResult[Any]:
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().request(method, url, params=params, json=json) as resp:
                if resp.status == 404:
                    return RemoteResult(value=None)
                if not 200 <= resp.status < 300:
                    try:
                        body = await resp.json()
                        detail = body.get("detail", body) if isinstance(body, dict) else body
                    except (aiohttp.ContentTypeError, ValueError):
                        detail = resp.reason
                    return RemoteResult.failure(str(detail), status=resp.status)
                return RemoteResult(value=await resp.json())
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"{method} {url} failed: {type(e).__name__}: {e}")
            return RemoteResult.failure(f"{type(e).__name__}: {e}")
        except ValueError as e:
            # Unparseable JSON body on a 2xx response
            return RemoteResult.failure(f"Invalid response body: {e}")

    def _parse(self, result: RemoteResult[Any], schema) -> RemoteResult[Any]:
        if not result.ok or result.value is None:
            return result
        try:
            if isinstance(result.value, list):
                return RemoteResult(value=[schema.model_validate(row) for row in result.value])
            return RemoteResult(value=schema.model_validate(result.value))
        except ValueError as e:
            return RemoteResult.failure(f"Unexpected response shape: {e}")

    # Approvals

    async def list_approvals(
        self,
        status: Optional[str] = None,
        department: Optional[str] = None,
        requested_by: Optional[str] = None,
        asset_ids: Optional[List[str]] = None,
    ) -> RemoteResult[List[ApprovalResponse]]:
        params: List[tuple[str, str]] = []
        if status:
            params.append(("status", status))
        if department:
            params.append(("department", department))
        if requested_by:
            params.append(("requestedBy", requested_by))
        for asset_id in asset_ids or []:
            params.append(("assetId", asset_id))
        result = await self._request("GET", "/approvals/", params=params)
        return self._parse(result, ApprovalResponse)

    async def get_approval(self, approval_id: str) -> RemoteResult[ApprovalResponse]:
        result = await self._request("GET", f"/approvals/{approval_id}")
        return self._parse(result, ApprovalResponse)

    async def create_approval(self, payload: ApprovalCreate) -> RemoteResult[ApprovalResponse]:
        body = payload.model_dump(mode="json", exclude_none=True)
        result = await self._request("POST", "/approvals/", json=body)
        return self._parse(result, ApprovalResponse)

    async def update_approval(self, approval_id: str, update: ApprovalUpdate) -> RemoteResult[ApprovalResponse]:
        body = update.model_dump(mode="json", exclude_unset=True)
        result = await self._request("PUT", f"/approvals/{approval_id}", json=body)
        return self._parse(result, ApprovalResponse)

    async def list_approval_events(self, approval_id: str) -> RemoteResult[List[ApprovalEventResponse]]:
        result = await self._request("GET", "/approval-events/", params={"approvalId": approval_id})
        return self._parse(result, ApprovalEventResponse)

    async def create_approval_event(self, event: ApprovalEventCreate) -> RemoteResult[ApprovalEventResponse]:
        body = event.model_dump(mode="json", exclude_none=True)
        result = await self._request("POST", "/approval-events/", json=body)
        return self._parse(result, ApprovalEventResponse)

    # Collaborators

    async def list_users(self) -> RemoteResult[List[UserResponse]]:
        result = await self._request("GET", "/users/")
        return self._parse(result, UserResponse)

    async def update_asset(self, asset_id: str, patch: Dict[str, Any]) -> RemoteResult[AssetResponse]:
        result = await self._request("PUT", f"/assets/{asset_id}", json=patch)
        return self._parse(result, AssetResponse)

    async def create_notification(self, notification: NotificationCreate) -> RemoteResult[NotificationResponse]:
        body = notification.model_dump(mode="json", exclude_none=True)
        result = await self._request("POST", "/notifications/", json=body)
        return self._parse(result, NotificationResponse)
