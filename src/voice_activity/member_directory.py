"""Guild member directory collaborator and display-name enrichment."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Protocol

from voice_activity.data_models import MemberInfo
from voice_activity.exceptions import ApplicationError

logger = logging.getLogger(__name__)

DIRECTORY_ERRORS = (ApplicationError, LookupError, OSError, RuntimeError, TimeoutError)


class MemberDirectory(Protocol):
    async def list_members(self, tenant_id: str, filter_name: str) -> List[MemberInfo]: ...

    async def display_name(self, tenant_id: str, user_id: str) -> Optional[str]: ...


class StaticMemberDirectory:
    """In-memory directory keyed by tenant; a member matches a filter when it holds that role."""

    def __init__(self, members: Optional[Dict[str, Iterable[MemberInfo]]] = None):
        self._members: Dict[str, List[MemberInfo]] = {tenant: list(items) for tenant, items in (members or {}).items()}

    def add(self, tenant_id: str, member: MemberInfo) -> None:
        self._members.setdefault(tenant_id, []).append(member)

    async def list_members(self, tenant_id: str, filter_name: str) -> List[MemberInfo]:
        return [member for member in self._members.get(tenant_id, []) if filter_name in member.roles]

    async def display_name(self, tenant_id: str, user_id: str) -> Optional[str]:
        for member in self._members.get(tenant_id, []):
            if member.user_id == user_id:
                return member.display_name or None
        return None


async def resolve_display_name(directory: MemberDirectory, tenant_id: str, user_id: str, known: str = "") -> str:
    """``known`` if set, else the directory's name, else the raw user id."""
    if known:
        return known
    try:
        name = await directory.display_name(tenant_id, user_id)
    except DIRECTORY_ERRORS as exc:  # Degrade to the raw id  # policy_guard: allow-silent-handler
        logger.debug("Display name lookup failed for %s/%s: %s", tenant_id, user_id, exc)
        return user_id
    return name or user_id
