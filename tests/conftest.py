"""
Shared fixtures and fakes for scratch org pool tests.

The DevHub is replaced by an in-memory fake that answers SOQL by matching
query fragments, so services can be exercised without any network access.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

import pytest

from scratchorg_pool.config import settings
from scratchorg_pool.repos import AllocationStatus
from scratchorg_pool.services import PoolContext
from scratchorg_pool.services.sfdx import CreatedScratchOrg, SfdxCommandError

HUB_USERNAME = "devhub@example.com"


@pytest.fixture(autouse=True)
def _no_retry_waits(monkeypatch):
    """Keep retry loops instant in every test."""
    monkeypatch.setattr(settings, "query_retry_wait_seconds", 0.0)
    monkeypatch.setattr(settings, "fetch_retry_wait_seconds", 0.0)
    monkeypatch.setattr(settings, "critical_retry_wait_seconds", 0.0)


# ---------------------------------------------------------------------------
# Sample DevHub data
# ---------------------------------------------------------------------------


def describe_fields(
    values: Iterable[str] = AllocationStatus.ALL,
    *,
    auth_url: bool = True,
    inactive: Iterable[str] = (),
) -> dict[str, Any]:
    inactive = set(inactive)
    fields: list[dict[str, Any]] = [
        {"name": "Id", "picklistValues": []},
        {"name": "Pooltag__c", "picklistValues": []},
    ]
    if auth_url:
        fields.append({"name": "SfdxAuthUrl__c", "picklistValues": []})
    fields.append(
        {
            "name": "Allocation_status__c",
            "picklistValues": [{"value": value, "active": value not in inactive} for value in values],
        }
    )
    return {"name": "ScratchOrgInfo", "fields": fields}


def pool_record(
    record_id: str,
    *,
    tag: str = "core",
    status: str | None = AllocationStatus.AVAILABLE,
    org_id: str | None = None,
    username: str | None = None,
) -> dict[str, Any]:
    suffix = record_id[-3:]
    return {
        "Id": record_id,
        "Pooltag__c": tag,
        "CreatedDate": f"2026-10-01T10:00:{suffix[-2:]}.000+0000",
        "ScratchOrg": org_id or f"00D000000000{suffix}",
        "ExpirationDate": "2026-10-20",
        "SignupUsername": username or f"test-{suffix}@example.com",
        "SignupEmail": "ci@example.com",
        "Password__c": f"pw-{suffix}",
        "Allocation_status__c": status,
        "LoginUrl": f"https://site-{suffix}.my.salesforce.com",
        "SfdxAuthUrl__c": f"force://PlatformCLI::token-{suffix}@site-{suffix}.my.salesforce.com",
    }


# ---------------------------------------------------------------------------
# Fake DevHub client
# ---------------------------------------------------------------------------


class FakeDevHub:
    """Stand-in for DevHubClient with the same coroutine surface."""

    def __init__(self, username: str = HUB_USERNAME) -> None:
        self.username = username
        self.queries: list[str] = []
        self.describe_calls = 0
        self.describe_result: dict[str, Any] = describe_fields()
        self.describe_error: Exception | None = None
        self.pool: dict[str, dict[str, Any]] = {}
        self.active: list[dict[str, Any]] = []
        self.updates: list[dict[str, Any]] = []
        self.failing_updates: set[str] = set()
        self.deleted: list[str] = []
        self.limits_payload: dict[str, Any] = {"ActiveScratchOrgs": {"Max": 100, "Remaining": 100}}
        self.actions: list[tuple[str, dict[str, Any]]] = []
        self.action_error: Exception | None = None
        self._routes: list[tuple[str, Callable[[str], list[dict[str, Any]]]]] = []
        self.on("ORDER BY CreatedDate", lambda soql: self._pool_rows(soql))
        self.on("SELECT Id, Allocation_status__c FROM ScratchOrgInfo", self._status_rows)
        self.on("FROM ActiveScratchOrg WHERE ScratchOrgInfoId", self._active_rows)
        self.on("FROM ActiveScratchOrg WHERE ScratchOrg =", self._active_rows_by_org)

    def add_pool_records(self, *records: dict[str, Any]) -> None:
        for record in records:
            self.pool[record["Id"]] = dict(record)

    def on(self, fragment: str, records: list[dict[str, Any]] | Callable[[str], list[dict[str, Any]]]) -> None:
        """Answer queries containing ``fragment``; later routes win."""
        handler = records if callable(records) else (lambda soql, rows=records: list(rows))
        self._routes.insert(0, (fragment, handler))

    def _pool_rows(self, soql: str) -> list[dict[str, Any]]:
        rows = sorted(self.pool.values(), key=lambda row: row["CreatedDate"])
        if "Pooltag__c = '" in soql:
            tag = soql.split("Pooltag__c = '", 1)[1].split("'", 1)[0]
            rows = [row for row in rows if row["Pooltag__c"] == tag]
        if "Allocation_status__c = 'Available'" in soql:
            rows = [row for row in rows if row["Allocation_status__c"] in AllocationStatus.UNASSIGNED]
        return [dict(row) for row in rows]

    def _status_rows(self, soql: str) -> list[dict[str, Any]]:
        record_id = soql.split("Id = '", 1)[1].split("'", 1)[0]
        row = self.pool.get(record_id)
        return [{"Id": record_id, "Allocation_status__c": row["Allocation_status__c"]}] if row else []

    def _active_rows(self, soql: str) -> list[dict[str, Any]]:
        return [dict(row) for row in self.active if f"'{row['ScratchOrgInfoId']}'" in soql]

    def _active_rows_by_org(self, soql: str) -> list[dict[str, Any]]:
        org_id = soql.split("ScratchOrg = '", 1)[1].split("'", 1)[0]
        return [dict(row) for row in self.active if row.get("ScratchOrg") == org_id]

    async def query(self, soql: str, *, tooling: bool = False, policy=None) -> list[dict[str, Any]]:
        self.queries.append(soql)
        for fragment, handler in self._routes:
            if fragment in soql:
                return handler(soql)
        return []

    async def query_result(self, soql: str, *, tooling: bool = False, policy=None) -> dict[str, Any]:
        records = await self.query(soql, tooling=tooling, policy=policy)
        return {"totalSize": len(records), "done": True, "records": records}

    async def describe(self, sobject: str, *, policy=None) -> dict[str, Any]:
        self.describe_calls += 1
        if self.describe_error is not None:
            raise self.describe_error
        return self.describe_result

    async def update(self, sobject: str, record: dict[str, Any], *, policy=None) -> dict[str, Any]:
        record_id = record["Id"]
        if record_id in self.failing_updates:
            raise RuntimeError(f"UNABLE_TO_LOCK_ROW on {record_id}")
        self.updates.append(dict(record))
        if record_id in self.pool:
            self.pool[record_id].update({k: v for k, v in record.items() if k != "Id"})
        return {"id": record_id, "success": True}

    async def delete(self, sobject: str, ids, *, policy=None) -> list[dict[str, Any]]:
        ids = list(ids)
        self.deleted.extend(ids)
        return [{"id": record_id, "success": True, "errors": []} for record_id in ids]

    async def limits(self, *, policy=None) -> dict[str, Any]:
        return self.limits_payload

    async def invoke_action(self, action_path: str, body: dict[str, Any], *, policy=None) -> Any:
        if self.action_error is not None:
            raise self.action_error
        self.actions.append((action_path, body))
        return [{"isSuccess": True}]


@pytest.fixture
def devhub() -> FakeDevHub:
    return FakeDevHub()


@pytest.fixture
def context() -> PoolContext:
    return PoolContext()


# ---------------------------------------------------------------------------
# Fake sfdx wrapper
# ---------------------------------------------------------------------------


class FakeSfdx:
    """Mimics SfdxCli; each step can be made to fail or return nothing."""

    def __init__(self) -> None:
        self.created: list[dict[str, Any]] = []
        self.create_error: Exception | None = None
        self.password: str | None = "Gen3rated!pw"
        self.password_error: Exception | None = None
        self.auth_url: str | None = "force://PlatformCLI::token@site.my.salesforce.com"
        self._counter = 0

    async def create_scratch_org(self, **kwargs: Any) -> CreatedScratchOrg:
        if self.create_error is not None:
            raise self.create_error
        self._counter += 1
        self.created.append(kwargs)
        return CreatedScratchOrg(
            org_id=f"00D0000000000{self._counter:02d}AAA",
            username=f"{kwargs['alias'].lower()}@example.com",
        )

    async def generate_password(self, username: str) -> dict[str, Any]:
        if self.password_error is not None:
            raise self.password_error
        return {"username": username, "password": self.password}

    async def display_org(self, username: str, *, verbose: bool = False) -> dict[str, Any]:
        return {"username": username, "sfdxAuthUrl": self.auth_url}


@pytest.fixture
def sfdx() -> FakeSfdx:
    return FakeSfdx()


__all__ = ["FakeDevHub", "FakeSfdx", "SfdxCommandError", "describe_fields", "pool_record", "HUB_USERNAME"]
