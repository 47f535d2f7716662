"""Static user directory used for chat mentions and the /users listing."""

from __future__ import annotations

from typing import Iterable

from oprelay.config import DirectoryEntry
from oprelay.openproject.models import UserSummary


class UserDirectory:
    def __init__(self, entries: Iterable[DirectoryEntry] = ()) -> None:
        self._users = [
            UserSummary(id=e.id, name=e.name, username=e.username, email=e.email)
            for e in entries
        ]

    @property
    def users(self) -> list[UserSummary]:
        return list(self._users)

    def find_by_name(self, name: str) -> UserSummary | None:
        # Two entries sharing a display name: which one matches is unspecified.
        wanted = name.lower()
        for user in self._users:
            if user.name and user.name.lower() == wanted:
                return user
        return None

    def mention(self, assignee: str | None) -> str:
        """Discord mention for *assignee*, or the plain name if unknown."""
        if not assignee:
            return ""
        user = self.find_by_name(assignee)
        if user is not None and user.username:
            return f"<@{user.username}>"
        return assignee

    def merge(self, remote: Iterable[UserSummary]) -> list[UserSummary]:
        """Remote records win on id collision; directory-only users follow."""
        merged = list(remote)
        seen = {u.id for u in merged}
        merged.extend(u for u in self._users if u.id not in seen)
        return merged
