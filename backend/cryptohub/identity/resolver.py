"""Maps identity-provider subjects to internal user records."""

from __future__ import annotations

import logging

from ..storage.interface import UserStore
from ..storage.models import UserRecord
from .models import Identity

logger = logging.getLogger(__name__)


class UserIdentityResolver:
    """Resolves a verified Identity to its UserRecord, creating it on first sight."""

    def __init__(self, users: UserStore) -> None:
        self._users = users

    async def resolve(self, identity: Identity) -> UserRecord:
        user = await self._users.get_user_by_subject(identity.subject)
        if user:
            return user
        logger.info("First contact from a new identity, creating user record")
        return await self._users.create_user(
            subject=identity.subject,
            email=identity.email,
            username=identity.username,
            avatar_url=identity.picture,
        )
