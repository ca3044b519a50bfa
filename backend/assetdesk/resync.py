"""
Department resync entrypoint.
Rewrites each approval's department to its requester's current department.

    python -m assetdesk.resync [api_base_url]
"""
import asyncio
import logging
import sys
from typing import Optional

from assetdesk.schemas.approval import DepartmentResyncResult
from assetdesk.services.approvals import ApprovalService
from assetdesk.services.directory import UserDirectory
from assetdesk.services.mirror import LocalMirror
from assetdesk.services.notifications import NotificationDispatcher
from assetdesk.services.remote import ApiClient

logger = logging.getLogger(__name__)


def build_service(remote, mirror: Optional[LocalMirror] = None) -> ApprovalService:
    """Wire an ApprovalService around a remote port."""
    mirror = mirror or LocalMirror()
    directory = UserDirectory(remote, mirror)
    notifier = NotificationDispatcher(directory, remote)
    return ApprovalService(remote, mirror, directory, notifier)


async def resync_main(base_url: Optional[str] = None) -> DepartmentResyncResult:
    async with ApiClient(base_url=base_url) as remote:
        service = build_service(remote)
        return await service.resync_approval_departments()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    result = asyncio.run(resync_main(sys.argv[1] if len(sys.argv) > 1 else None))
    print(f"Updated {result.updated} of {result.total} approvals ({result.errors} errors)")
    sys.exit(1 if result.errors else 0)
