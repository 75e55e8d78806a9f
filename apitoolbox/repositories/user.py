"""User repository — active-user lookup for JWT authentication."""

from __future__ import annotations

from typing import Any

from apitoolbox.domain.user import User
from apitoolbox.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    model = User

    async def get_active(self, user_id: Any) -> User | None:
        user = await self.get(str(user_id))
        if user is None or not user.is_active:
            return None
        return user
