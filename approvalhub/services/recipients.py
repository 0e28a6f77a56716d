"""Approver group lookup (group name -> phone numbers)."""

from typing import Protocol


class RecipientDirectory(Protocol):
    async def resolve(self, groups: list[str]) -> list[str]:
        """Phone numbers for the given groups, de-duplicated, in group order."""
        ...


class StaticRecipientDirectory:
    """Directory backed by the `recipient_groups` setting.

    Group names are matched case-insensitively; unknown groups resolve to nothing.
    """

    def __init__(self, groups: dict[str, list[str]]) -> None:
        self._groups = {name.lower(): list(members) for name, members in groups.items()}

    async def resolve(self, groups: list[str]) -> list[str]:
        seen: dict[str, None] = {}
        for group in groups:
            for member in self._groups.get(group.lower(), []):
                seen.setdefault(member, None)
        return list(seen)


__all__ = ["RecipientDirectory", "StaticRecipientDirectory"]
