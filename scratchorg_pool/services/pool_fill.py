"""Top up a pool with freshly provisioned scratch orgs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from scratchorg_pool.config import settings
from scratchorg_pool.repos import AllocationStatus, Failed, PoolStatus, ScratchOrg, ScratchOrgRepository
from scratchorg_pool.storage import DevHubClient

from .prerequisite import PoolContext, PrerequisiteChecker
from .provisioning import ProvisioningError, ProvisioningService

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("scratchorg_pool.audit")


@dataclass
class PoolFillResult:
    tag: str
    requested: int
    created: list[ScratchOrg] = field(default_factory=list)
    failures: dict[int, str] = field(default_factory=dict)


class PoolFillService:
    def __init__(
        self,
        client: DevHubClient,
        context: PoolContext,
        provisioning: ProvisioningService | None = None,
    ) -> None:
        self._repo = ScratchOrgRepository(client)
        self._checker = PrerequisiteChecker(client, context)
        self._provisioning = provisioning or ProvisioningService(client)

    async def capacity(self, tag: str, max_allocation: int) -> int:
        """Number of orgs to create: pool shortfall capped by DevHub headroom."""
        current = await self._repo.count_active_by_tag(tag)
        limits = await self._repo.get_scratch_org_limits()
        headroom = limits["remaining"] - settings.limit_buffer
        shortfall = max_allocation - current
        logger.debug(
            "Pool %s holds %d of %d; DevHub has %d remaining",
            tag,
            current,
            max_allocation,
            limits["remaining"],
        )
        return max(0, min(shortfall, headroom))

    async def fill(
        self,
        tag: str,
        max_allocation: int,
        *,
        config_file_path: str,
        admin_email: str | None = None,
        expiry_days: int | None = None,
    ) -> PoolFillResult:
        await self._checker.check_for_prerequisites()

        to_allocate = await self.capacity(tag, max_allocation)
        result = PoolFillResult(tag=tag, requested=to_allocate)

        for sequence_id in range(1, to_allocate + 1):
            try:
                scratch_org = await self._provisioning.create_scratch_org(
                    sequence_id, admin_email, config_file_path, expiry_days
                )
            except Exception as exc:
                logger.warning("Provisioning SO%d for pool %s failed: %s", sequence_id, tag, exc)
                result.failures[sequence_id] = str(exc)
                continue

            try:
                committed = await self._commit(tag, scratch_org)
            except ProvisioningError as exc:
                result.failures[sequence_id] = str(exc)
                continue
            result.created.append(committed)

        audit_logger.info(
            "pool_filled",
            extra={"tag": tag, "created": len(result.created), "failed": len(result.failures)},
        )
        return result

    async def _commit(self, tag: str, scratch_org: ScratchOrg) -> ScratchOrg:
        """Tag a provisioned org into the pool, deleting it when that fails."""
        try:
            [resolved] = await self._repo.get_scratch_org_record_ids([scratch_org])
            outcome = await self._repo.set_scratch_org_info(
                {
                    "Id": resolved.record_id,
                    "Pooltag__c": tag,
                    "Password__c": resolved.password,
                    "SfdxAuthUrl__c": resolved.sfdx_auth_url,
                    "Allocation_status__c": AllocationStatus.AVAILABLE,
                }
            )
            reason = outcome.reason if isinstance(outcome, Failed) else None
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__

        if reason is not None:
            logger.warning("Unable to add %s to pool %s: %s", scratch_org.username, tag, reason)
            await self._discard(scratch_org)
            raise ProvisioningError(f"Unable to add scratch org {scratch_org.username} to pool {tag}: {reason}")
        return replace(resolved, tag=tag, status=PoolStatus.AVAILABLE)

    async def _discard(self, scratch_org: ScratchOrg) -> None:
        try:
            active_id = await self._repo.get_active_scratch_org_record_id(scratch_org.org_id or "")
            await self._repo.delete_active_scratch_orgs([active_id])
        except Exception as exc:
            logger.error("Unable to delete orphaned scratch org %s: %s", scratch_org.username, exc)
            return
        audit_logger.info(
            "orphan_deleted",
            extra={"org_id": scratch_org.org_id, "username": scratch_org.username},
        )
