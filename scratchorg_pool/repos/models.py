"""Repository dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AllocationStatus:
    """Raw ``Allocation_status__c`` picklist values on ScratchOrgInfo."""

    IN_PROGRESS = "In Progress"
    AVAILABLE = "Available"
    ALLOCATE = "Allocate"
    ASSIGNED = "Assigned"

    ALL = (IN_PROGRESS, AVAILABLE, ALLOCATE, ASSIGNED)
    UNASSIGNED = (AVAILABLE, IN_PROGRESS)


class PoolStatus(str, Enum):
    """Derived status shown for a pool member."""

    IN_USE = "In use"
    AVAILABLE = "Available"
    PROVISIONING = "Provisioning in progress"


@dataclass(slots=True)
class ScratchOrg:
    org_id: str | None = None
    username: str | None = None
    alias: str | None = None
    login_url: str | None = None
    password: str | None = None
    sfdx_auth_url: str | None = None
    expiry_date: str | None = None
    record_id: str | None = None
    tag: str | None = None
    signup_email: str | None = None
    status: PoolStatus | None = None


@dataclass(frozen=True, slots=True)
class Succeeded:
    record_id: str


@dataclass(frozen=True, slots=True)
class Failed:
    record_id: str | None
    reason: str


UpdateResult = Succeeded | Failed
