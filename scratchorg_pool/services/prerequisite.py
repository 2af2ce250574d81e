"""Detect whether the DevHub schema supports pooling."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from scratchorg_pool.repos.models import AllocationStatus
from scratchorg_pool.repos.scratch_orgs import SCRATCH_ORG_INFO
from scratchorg_pool.storage import DevHubClient, RetryPolicy

logger = logging.getLogger(__name__)

AUTH_URL_FIELD = "SfdxAuthUrl__c"
ALLOCATION_STATUS_FIELD = "Allocation_status__c"

PREREQUISITE_HELP_URL = (
    "https://github.com/Accenture/sfpowerscripts/blob/main/src_saleforce_packages/scratchorgpool/"
    "force-app/main/default/objects/ScratchOrgInfo/fields/Allocation_status__c.field-meta.xml"
)


class PreRequisiteCheckError(Exception):
    """Raised when the DevHub lacks the fields required for pooling."""

    def __init__(self, message: str, fields: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


@dataclass
class PoolContext:
    """Per-process schema verdicts, created once and handed to every service."""

    is_prerequisite_checked: bool = False
    is_prerequisite_met: bool = False
    is_new_version_compatible: bool = False
    describe_result: dict[str, Any] | None = None
    detection_error: BaseException | None = field(default=None, repr=False)


def active_allocation_values(fields: list[dict[str, Any]]) -> list[str]:
    for item in fields:
        if item.get("name") == ALLOCATION_STATUS_FIELD:
            return [value["value"] for value in item.get("picklistValues") or [] if value.get("active")]
    return []


def is_allocation_workflow_supported(fields: list[dict[str, Any]]) -> bool:
    active = active_allocation_values(fields)
    return len(active) == len(AllocationStatus.ALL) and set(AllocationStatus.ALL).issubset(active)


def has_auth_url_field(fields: list[dict[str, Any]]) -> bool:
    return any(item.get("name") == AUTH_URL_FIELD for item in fields)


class PrerequisiteChecker:
    """Describe ScratchOrgInfo once per context and answer schema questions from it."""

    def __init__(self, client: DevHubClient, context: PoolContext) -> None:
        self._client = client
        self._context = context

    async def detect(self) -> PoolContext:
        context = self._context
        if context.detection_error is not None:
            raise context.detection_error
        if context.is_prerequisite_checked:
            return context

        try:
            describe_result = await self._client.describe(SCRATCH_ORG_INFO, policy=RetryPolicy.critical())
        except Exception as exc:
            context.detection_error = exc
            raise

        fields = describe_result.get("fields", [])
        context.describe_result = describe_result
        context.is_new_version_compatible = is_allocation_workflow_supported(fields)
        context.is_prerequisite_met = context.is_new_version_compatible and has_auth_url_field(fields)
        context.is_prerequisite_checked = True
        logger.debug(
            "DevHub schema detected: new_version_compatible=%s prerequisite_met=%s",
            context.is_new_version_compatible,
            context.is_prerequisite_met,
        )
        return context

    async def check_for_new_version_compatible(self) -> bool:
        context = await self.detect()
        return context.is_new_version_compatible

    async def check_for_prerequisites(self) -> None:
        context = await self.detect()
        if not context.is_prerequisite_met:
            fields = (context.describe_result or {}).get("fields", [])
            raise PreRequisiteCheckError(
                "Required Prerequisite values in ScratchOrgInfo is missing in the DevHub. "
                f"For more information Please refer {PREREQUISITE_HELP_URL}",
                fields,
            )
