"""Derive the pool status of a ScratchOrgInfo record."""

from __future__ import annotations

from scratchorg_pool.repos.models import AllocationStatus, PoolStatus


def derive_status(allocation_status: str | None, is_new_version_compatible: bool) -> PoolStatus:
    """Map a raw ``Allocation_status__c`` value onto the three pool states.

    Legacy DevHubs only mark claimed orgs, so an empty value means the org is
    free; on 4-state DevHubs only ``Available`` is free.
    """
    if allocation_status == AllocationStatus.ASSIGNED:
        return PoolStatus.IN_USE
    if is_new_version_compatible and allocation_status == AllocationStatus.AVAILABLE:
        return PoolStatus.AVAILABLE
    if not is_new_version_compatible and not allocation_status:
        return PoolStatus.AVAILABLE
    return PoolStatus.PROVISIONING
