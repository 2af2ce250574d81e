"""List pool members and summarise their status."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from scratchorg_pool.repos import PoolStatus, ScratchOrg, ScratchOrgRepository
from scratchorg_pool.schemas import PoolListResponse, ScratchOrgDetail, TagCount
from scratchorg_pool.storage import DevHubClient

from .prerequisite import PoolContext, PrerequisiteChecker
from .status import derive_status


def to_scratch_org(record: Mapping[str, Any], is_new_version_compatible: bool) -> ScratchOrg:
    """Map a ScratchOrgInfo row onto a pool member with its derived status."""
    return ScratchOrg(
        tag=record.get("Pooltag__c"),
        org_id=record.get("ScratchOrg"),
        record_id=record.get("Id"),
        login_url=record.get("LoginUrl"),
        username=record.get("SignupUsername"),
        signup_email=record.get("SignupEmail"),
        password=record.get("Password__c"),
        sfdx_auth_url=record.get("SfdxAuthUrl__c"),
        expiry_date=record.get("ExpirationDate"),
        status=derive_status(record.get("Allocation_status__c"), is_new_version_compatible),
    )


@dataclass
class PoolListing:
    tag: str | None
    scratch_orgs: list[ScratchOrg] = field(default_factory=list)

    def _count(self, status: PoolStatus) -> int:
        return sum(1 for org in self.scratch_orgs if org.status == status)

    @property
    def inuse(self) -> int:
        return self._count(PoolStatus.IN_USE)

    @property
    def unused(self) -> int:
        return self._count(PoolStatus.AVAILABLE)

    @property
    def inprovision(self) -> int:
        return self._count(PoolStatus.PROVISIONING)

    @property
    def total(self) -> int:
        return self.inuse + self.unused + self.inprovision

    def tag_counts(self) -> list[TagCount]:
        """Pool sizes per tag; only reported for listings across all tags."""
        if self.tag is not None:
            return []
        counts = Counter(org.tag for org in self.scratch_orgs if org.tag is not None)
        return [TagCount(tag=tag, count=count) for tag, count in counts.items()]

    def to_response(self) -> PoolListResponse:
        return PoolListResponse(
            total=self.total,
            inuse=self.inuse,
            unused=self.unused,
            inprovision=self.inprovision,
            scratch_org_details=[ScratchOrgDetail.from_scratch_org(org) for org in self.scratch_orgs],
        )


class PoolListService:
    def __init__(self, client: DevHubClient, context: PoolContext) -> None:
        self._repo = ScratchOrgRepository(client)
        self._checker = PrerequisiteChecker(client, context)

    async def list_pool(
        self,
        tag: str | None = None,
        *,
        my_pool: bool = False,
        all_scratch_orgs: bool = False,
    ) -> PoolListing:
        is_new_version_compatible = await self._checker.check_for_new_version_compatible()
        # Legacy DevHubs leave free orgs without a status, so the filter would hide them.
        records = await self._repo.get_scratch_orgs_by_tag(
            tag,
            is_my_pool=my_pool,
            unassigned_only=is_new_version_compatible and not all_scratch_orgs,
        )

        scratch_orgs = [to_scratch_org(record, is_new_version_compatible) for record in records]
        if not my_pool:
            scratch_orgs = [replace(org, password=None) for org in scratch_orgs]
        return PoolListing(tag=tag, scratch_orgs=scratch_orgs)
