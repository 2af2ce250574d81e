"""Repositories for DevHub pool records."""

from .models import AllocationStatus, Failed, PoolStatus, ScratchOrg, Succeeded, UpdateResult
from .scratch_orgs import ScratchOrgRepository

__all__ = [
    "AllocationStatus",
    "Failed",
    "PoolStatus",
    "ScratchOrg",
    "ScratchOrgRepository",
    "Succeeded",
    "UpdateResult",
]
