"""User directory lookups with local mirror fallback."""
import logging
from typing import List, Optional

from assetdesk.schemas.user import UserResponse
from assetdesk.services.mirror import LocalMirror, USERS

logger = logging.getLogger(__name__)


class UserDirectory:
    def __init__(self, remote, mirror: LocalMirror):
        self.remote = remote
        self.mirror = mirror

    async def list_users(self) -> List[UserResponse]:
        result = await self.remote.list_users()
        if result.ok and result.value is not None:
            self.mirror.replace(USERS, [u.model_dump(mode="json") for u in result.value])
            return result.value

        logger.warning(f"Failed to load users from API, using local mirror: {result.error}")
        users = []
        for row in self.mirror.load(USERS):
            try:
                users.append(UserResponse.model_validate(row))
            except ValueError:
                logger.warning(f"Skipping malformed mirrored user {row.get('id')}")
        return users

    @staticmethod
    def match(users: List[UserResponse], identifier: Optional[str]) -> Optional[UserResponse]:
        """Find a user by email (case-insensitive), then by id."""
        key = (identifier or "").strip()
        if not key:
            return None
        lowered = key.lower()
        for user in users:
            if (user.email or "").lower() == lowered:
                return user
        for user in users:
            if user.id == key:
                return user
        return None

    async def find(self, identifier: Optional[str]) -> Optional[UserResponse]:
        if not (identifier or "").strip():
            return None
        return self.match(await self.list_users(), identifier)
