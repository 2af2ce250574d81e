"""Repository for ScratchOrgInfo and ActiveScratchOrg records on the DevHub."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Iterable, Mapping, Sequence

from scratchorg_pool.storage import DevHubClient, RetryAborted, RetryPolicy, retrying

from .models import AllocationStatus, Failed, ScratchOrg, Succeeded, UpdateResult

logger = logging.getLogger(__name__)

SCRATCH_ORG_INFO = "ScratchOrgInfo"
ACTIVE_SCRATCH_ORG = "ActiveScratchOrg"

POOL_FIELDS = (
    "Pooltag__c",
    "Id",
    "CreatedDate",
    "ScratchOrg",
    "ExpirationDate",
    "SignupUsername",
    "SignupEmail",
    "Password__c",
    "Allocation_status__c",
    "LoginUrl",
    "SfdxAuthUrl__c",
)
ORDER_BY_FILTER = " ORDER BY CreatedDate ASC"

# ScratchOrgInfo.ScratchOrg stores the 15 character form of the org id.
ORG_ID_LENGTH = 15


def soql_quote(value: str) -> str:
    """Return ``value`` as a quoted SOQL string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def canonical_org_id(org_id: str) -> str:
    return org_id[:ORG_ID_LENGTH]


class ScratchOrgRepository:
    """Read and mutate pool records through a borrowed DevHub client."""

    def __init__(self, client: DevHubClient) -> None:
        self._client = client

    def build_pool_query(self, tag: str | None, *, is_my_pool: bool, unassigned_only: bool) -> str:
        query = f"SELECT {', '.join(POOL_FIELDS)} FROM {SCRATCH_ORG_INFO} WHERE "
        if tag is not None:
            query += f"Pooltag__c = {soql_quote(tag)}"
        else:
            query += "Pooltag__c != null"
        query += " AND Status = 'Active'"

        if is_my_pool:
            query += f" AND CreatedBy.Username = {soql_quote(self._client.username)}"
        if unassigned_only:
            statuses = " OR ".join(f"Allocation_status__c = {soql_quote(value)}" for value in AllocationStatus.UNASSIGNED)
            query += f" AND ({statuses})"
        return query + ORDER_BY_FILTER

    async def get_scratch_orgs_by_tag(
        self,
        tag: str | None,
        *,
        is_my_pool: bool = False,
        unassigned_only: bool = False,
    ) -> list[dict[str, Any]]:
        query = self.build_pool_query(tag, is_my_pool=is_my_pool, unassigned_only=unassigned_only)
        return await self._client.query(query, policy=RetryPolicy.fetch())

    async def get_allocation_status(self, record_id: str) -> str | None:
        query = (
            f"SELECT Id, Allocation_status__c FROM {SCRATCH_ORG_INFO} "
            f"WHERE Id = {soql_quote(record_id)} AND Status = 'Active'"
        )
        records = await self._client.query(query, policy=RetryPolicy.fetch())
        if not records:
            return None
        return records[0].get("Allocation_status__c")

    async def count_active_by_tag(self, tag: str) -> int:
        query = (
            f"SELECT Id FROM {SCRATCH_ORG_INFO} "
            f"WHERE Pooltag__c = {soql_quote(tag)} AND Status = 'Active'"
        )
        result = await self._client.query_result(query, policy=RetryPolicy.fetch())
        return int(result.get("totalSize", 0))

    async def get_scratch_org_limits(self) -> dict[str, int]:
        limits = await self._client.limits()
        logger.debug("Limits fetched: %s", limits.get("ActiveScratchOrgs"))
        active = limits.get("ActiveScratchOrgs", {})
        return {"max": int(active.get("Max", 0)), "remaining": int(active.get("Remaining", 0))}

    async def get_login_url(self, username: str) -> str:
        query = (
            f"SELECT Id, SignupUsername, LoginUrl FROM {SCRATCH_ORG_INFO} "
            f"WHERE SignupUsername = {soql_quote(username)}"
        )
        records = await self._client.query(query)
        if not records:
            raise LookupError(f"no ScratchOrgInfo record found for {username}")
        return records[0]["LoginUrl"]

    async def get_scratch_org_record_ids(self, scratch_orgs: Sequence[ScratchOrg]) -> list[ScratchOrg]:
        """Return copies of ``scratch_orgs`` with ``record_id`` resolved.

        Org ids are truncated to their 15 character form before matching.
        A record that is not visible yet is retried, as ScratchOrgInfo lags
        behind org creation. A failing query has already used its own attempts
        and is raised without another round.
        """
        if not scratch_orgs:
            return []

        canonical = [
            dataclasses.replace(org, org_id=canonical_org_id(org.org_id or "")) for org in scratch_orgs
        ]
        org_ids = ", ".join(soql_quote(org.org_id) for org in canonical)
        query = f"SELECT Id, ScratchOrg FROM {SCRATCH_ORG_INFO} WHERE ScratchOrg IN ({org_ids})"

        async def _lookup() -> list[ScratchOrg]:
            try:
                records = await self._client.query(query, policy=RetryPolicy.fetch())
            except Exception as exc:
                raise RetryAborted(exc) from exc
            by_org_id = {record["ScratchOrg"]: record for record in records}
            resolved = []
            for org in canonical:
                record = by_org_id.get(org.org_id)
                if record is None:
                    raise LookupError(f"no ScratchOrgInfo record found for org {org.org_id}")
                resolved.append(dataclasses.replace(org, record_id=record["Id"]))
            return resolved

        return await retrying(_lookup, RetryPolicy.fetch(), description="resolve record ids")

    async def set_scratch_org_info(self, record: Mapping[str, Any]) -> UpdateResult:
        """Best-effort update of a ScratchOrgInfo record.

        Failures are returned as ``Failed`` instead of raised; single-record
        callers that need a hard failure use the client directly.
        """
        record_id = record.get("Id")
        try:
            await self._client.update(SCRATCH_ORG_INFO, record)
        except Exception as exc:
            logger.debug("Failure at setting ScratchOrg Info for %s: %s", record_id, exc)
            return Failed(record_id=record_id, reason=str(exc) or exc.__class__.__name__)
        return Succeeded(record_id=record_id)

    async def get_active_scratch_orgs_by_info_ids(self, record_ids: Iterable[str]) -> list[dict[str, Any]]:
        ids = ", ".join(soql_quote(record_id) for record_id in record_ids)
        if not ids:
            return []
        query = f"SELECT Id, SignupUsername FROM {ACTIVE_SCRATCH_ORG} WHERE ScratchOrgInfoId IN ({ids})"
        return await self._client.query(query, policy=RetryPolicy.fetch())

    async def get_active_scratch_org_record_id(self, org_id: str) -> str:
        query = f"SELECT Id FROM {ACTIVE_SCRATCH_ORG} WHERE ScratchOrg = {soql_quote(canonical_org_id(org_id))}"
        records = await self._client.query(query, policy=RetryPolicy.fetch())
        if not records:
            raise LookupError(f"no ActiveScratchOrg record found for org {org_id}")
        return records[0]["Id"]

    async def delete_active_scratch_orgs(self, active_record_ids: Sequence[str]) -> list[dict[str, Any]]:
        if not active_record_ids:
            return []
        return await self._client.delete(ACTIVE_SCRATCH_ORG, active_record_ids)
