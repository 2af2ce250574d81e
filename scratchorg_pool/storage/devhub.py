"""DevHub REST client with per-call retry policies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import httpx

from scratchorg_pool.config import settings

from .retry import RetryPolicy, retrying

logger = logging.getLogger(__name__)

# Composite sObject collections accept at most 200 ids per request.
DELETE_BATCH_SIZE = 200


@dataclass(frozen=True)
class HubConnection:
    """Authenticated session against the DevHub, owned by the caller."""

    instance_url: str
    access_token: str
    username: str
    api_version: str = settings.api_version

    @classmethod
    def from_sfdx(cls, payload: Mapping[str, Any], api_version: str | None = None) -> "HubConnection":
        """Build a connection from ``sfdx force:org:display --json`` output."""
        result = payload.get("result", payload)
        try:
            return cls(
                instance_url=result["instanceUrl"].rstrip("/"),
                access_token=result["accessToken"],
                username=result["username"],
                api_version=api_version or settings.api_version,
            )
        except KeyError as exc:
            raise ValueError(f"org display output is missing {exc.args[0]}") from exc

    @property
    def base_path(self) -> str:
        return f"/services/data/v{self.api_version}"


class DevHubClient:
    """Query and mutate DevHub records; every call is retried per its policy.

    Example:
        async with DevHubClient(connection) as client:
            records = await client.query("SELECT Id FROM ScratchOrgInfo")
    """

    def __init__(self, connection: HubConnection, http_client: httpx.AsyncClient | None = None) -> None:
        self.connection = connection
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=connection.instance_url,
            timeout=settings.request_timeout_seconds,
        )
        self._headers = {
            "Authorization": f"Bearer {connection.access_token}",
            "Accept": "application/json",
        }

    async def __aenter__(self) -> "DevHubClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def username(self) -> str:
        return self.connection.username

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = await self._client.request(method, path, headers=self._headers, **kwargs)
        response.raise_for_status()
        return response

    async def query_result(
        self,
        soql: str,
        *,
        tooling: bool = False,
        policy: RetryPolicy | None = None,
    ) -> dict[str, Any]:
        """Run a query and return the raw result of its first page."""
        path = f"{self.connection.base_path}/{'tooling/' if tooling else ''}query"
        logger.debug("QUERY: %s", soql)

        async def _run() -> dict[str, Any]:
            response = await self._send("GET", path, params={"q": soql})
            return response.json()

        return await retrying(_run, policy or RetryPolicy.query(), description="query")

    async def query(
        self,
        soql: str,
        *,
        tooling: bool = False,
        policy: RetryPolicy | None = None,
    ) -> list[dict[str, Any]]:
        """Run a query and return every record, following result pages."""
        policy = policy or RetryPolicy.query()
        result = await self.query_result(soql, tooling=tooling, policy=policy)
        records = list(result.get("records", []))

        next_url = result.get("nextRecordsUrl")
        while next_url and not result.get("done", True):
            page_url = next_url

            async def _next_page() -> dict[str, Any]:
                response = await self._send("GET", page_url)
                return response.json()

            result = await retrying(_next_page, policy, description="query page")
            records.extend(result.get("records", []))
            next_url = result.get("nextRecordsUrl")

        return records

    async def describe(self, sobject: str, *, policy: RetryPolicy | None = None) -> dict[str, Any]:
        path = f"{self.connection.base_path}/sobjects/{sobject}/describe"

        async def _run() -> dict[str, Any]:
            response = await self._send("GET", path)
            return response.json()

        return await retrying(_run, policy or RetryPolicy.critical(), description=f"describe {sobject}")

    async def update(
        self,
        sobject: str,
        record: Mapping[str, Any],
        *,
        policy: RetryPolicy | None = None,
    ) -> dict[str, Any]:
        """Patch a single record identified by its ``Id`` field."""
        fields = dict(record)
        try:
            record_id = fields.pop("Id")
        except KeyError as exc:
            raise ValueError("record to update must carry an Id") from exc
        path = f"{self.connection.base_path}/sobjects/{sobject}/{record_id}"

        async def _run() -> dict[str, Any]:
            await self._send("PATCH", path, json=fields)
            return {"id": record_id, "success": True}

        return await retrying(_run, policy or RetryPolicy.critical(), description=f"update {sobject}")

    async def delete(
        self,
        sobject: str,
        ids: Iterable[str],
        *,
        policy: RetryPolicy | None = None,
    ) -> list[dict[str, Any]]:
        """Delete records in batches through the composite collections endpoint."""
        id_list = list(ids)
        path = f"{self.connection.base_path}/composite/sobjects"
        results: list[dict[str, Any]] = []
        for start in range(0, len(id_list), DELETE_BATCH_SIZE):
            batch = id_list[start : start + DELETE_BATCH_SIZE]

            async def _run() -> list[dict[str, Any]]:
                response = await self._send(
                    "DELETE",
                    path,
                    params={"ids": ",".join(batch), "allOrNone": "false"},
                )
                return response.json()

            results.extend(
                await retrying(_run, policy or RetryPolicy.critical(), description=f"delete {sobject}")
            )
        return results

    async def limits(self, *, policy: RetryPolicy | None = None) -> dict[str, Any]:
        path = f"{self.connection.base_path}/limits"

        async def _run() -> dict[str, Any]:
            response = await self._send("GET", path)
            return response.json()

        return await retrying(_run, policy or RetryPolicy.fetch(), description="limits")

    async def invoke_action(
        self,
        action_path: str,
        body: Mapping[str, Any],
        *,
        policy: RetryPolicy | None = None,
    ) -> Any:
        path = f"{self.connection.base_path}/actions/{action_path.lstrip('/')}"

        async def _run() -> Any:
            response = await self._send("POST", path, json=dict(body))
            return response.json() if response.content else None

        return await retrying(_run, policy or RetryPolicy.critical(), description=f"action {action_path}")
