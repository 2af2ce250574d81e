"""Hand out pool members and reclaim them."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from scratchorg_pool.repos import AllocationStatus, Failed, PoolStatus, ScratchOrg, ScratchOrgRepository
from scratchorg_pool.storage import DevHubClient

from .pool_list import to_scratch_org
from .prerequisite import PoolContext, PrerequisiteChecker

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("scratchorg_pool.audit")


class AllocationService:
    """Claim and delete pool members.

    There is no lock around a claim: the status is re-read right before the
    update, but two fetchers racing between that read and the update can both
    win. Consumers are expected to verify an org before relying on it.
    """

    def __init__(self, client: DevHubClient, context: PoolContext) -> None:
        self._repo = ScratchOrgRepository(client)
        self._checker = PrerequisiteChecker(client, context)

    async def fetch(self, tag: str, count: int = 1, *, my_pool: bool = False) -> list[ScratchOrg]:
        if count < 1:
            raise ValueError("count must be at least 1")
        await self._checker.check_for_prerequisites()

        records = await self._repo.get_scratch_orgs_by_tag(tag, is_my_pool=my_pool, unassigned_only=True)
        candidates = [
            org for org in (to_scratch_org(record, True) for record in records) if org.status == PoolStatus.AVAILABLE
        ]

        fetched: list[ScratchOrg] = []
        for candidate in candidates:
            if len(fetched) >= count:
                break

            current = await self._repo.get_allocation_status(candidate.record_id)
            if current != AllocationStatus.AVAILABLE:
                logger.debug("Skipping %s, allocation status is now %r", candidate.username, current)
                continue

            result = await self._repo.set_scratch_org_info(
                {"Id": candidate.record_id, "Allocation_status__c": AllocationStatus.ASSIGNED}
            )
            if isinstance(result, Failed):
                logger.warning("Unable to assign %s: %s", candidate.username, result.reason)
                continue

            fetched.append(replace(candidate, status=PoolStatus.IN_USE))
            audit_logger.info(
                "scratch_org_assigned",
                extra={"tag": tag, "org_id": candidate.org_id, "username": candidate.username},
            )

        if len(fetched) < count:
            logger.warning("Requested %d scratch orgs from pool %s, fetched %d", count, tag, len(fetched))
        return fetched

    async def delete_scratch_orgs(self, scratch_orgs: Sequence[ScratchOrg]) -> list[str]:
        """Delete the active orgs behind ``scratch_orgs``; returns the deleted ActiveScratchOrg ids."""
        if not scratch_orgs:
            return []

        unresolved = [org for org in scratch_orgs if not org.record_id]
        resolved = [org for org in scratch_orgs if org.record_id]
        if unresolved:
            resolved.extend(await self._repo.get_scratch_org_record_ids(unresolved))

        active_records = await self._repo.get_active_scratch_orgs_by_info_ids(org.record_id for org in resolved)
        results = await self._repo.delete_active_scratch_orgs([record["Id"] for record in active_records])

        deleted = [result["id"] for result in results if result.get("success")]
        for result in results:
            if not result.get("success"):
                logger.warning("Unable to delete active scratch org %s: %s", result.get("id"), result.get("errors"))

        audit_logger.info("scratch_orgs_deleted", extra={"count": len(deleted)})
        return deleted

    async def reclaim_pool(
        self,
        tag: str,
        *,
        my_pool: bool = False,
        all_scratch_orgs: bool = False,
        in_progress_only: bool = False,
    ) -> list[ScratchOrg]:
        """Delete a pool's members; in-use orgs are kept unless ``all_scratch_orgs``."""
        is_new_version_compatible = await self._checker.check_for_new_version_compatible()
        records = await self._repo.get_scratch_orgs_by_tag(
            tag,
            is_my_pool=my_pool,
            unassigned_only=is_new_version_compatible and not all_scratch_orgs,
        )

        scratch_orgs = [to_scratch_org(record, is_new_version_compatible) for record in records]
        if not all_scratch_orgs:
            scratch_orgs = [org for org in scratch_orgs if org.status != PoolStatus.IN_USE]
        if in_progress_only:
            scratch_orgs = [org for org in scratch_orgs if org.status == PoolStatus.PROVISIONING]

        if scratch_orgs:
            await self.delete_scratch_orgs(scratch_orgs)
        return [replace(org, password=None) for org in scratch_orgs]
