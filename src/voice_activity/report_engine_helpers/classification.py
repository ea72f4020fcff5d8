"""Activity classification of guild members into active/inactive/afk buckets."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from voice_activity.data_models import ClassificationBuckets, ClassifiedUser, DateRange, MemberInfo
from voice_activity.member_directory import MemberDirectory, resolve_display_name
from voice_activity.storage import TieredQueryRouter
from voice_activity.time_utils import MS_PER_HOUR

logger = logging.getLogger(__name__)


def has_afk_role(member: MemberInfo, afk_markers: Iterable[str]) -> bool:
    return any(marker in role for role in member.roles for marker in afk_markers)


def classify_members(
    members: Sequence[MemberInfo],
    totals: Mapping[str, int],
    names: Mapping[str, str],
    *,
    threshold_ms: int,
    afk_markers: Sequence[str],
) -> ClassificationBuckets:
    """AFK role wins; otherwise a member is active when total time reaches the threshold."""
    buckets = ClassificationBuckets()
    for member in members:
        user = ClassifiedUser(
            user_id=member.user_id,
            display_name=names.get(member.user_id, member.user_id),
            total_time_ms=int(totals.get(member.user_id, 0)),
        )
        if has_afk_role(member, afk_markers):
            buckets.afk.append(user)
        elif user.total_time_ms >= threshold_ms:
            buckets.active.append(user)
        else:
            buckets.inactive.append(user)
    return buckets


class UserClassifier:
    def __init__(self, router: TieredQueryRouter, directory: MemberDirectory):
        self._router = router
        self._directory = directory

    async def classify_batch(
        self,
        tenant_id: str,
        members: Sequence[MemberInfo],
        date_range: DateRange,
        *,
        threshold_hours: float,
        afk_markers: Sequence[str],
    ) -> ClassificationBuckets:
        totals = await self._router.query_batch(
            [member.user_id for member in members], tenant_id, date_range.start, date_range.end
        )
        names = {
            member.user_id: await resolve_display_name(self._directory, tenant_id, member.user_id, member.display_name)
            for member in members
        }
        return classify_members(
            members,
            totals,
            names,
            threshold_ms=int(threshold_hours * MS_PER_HOUR),
            afk_markers=afk_markers,
        )
