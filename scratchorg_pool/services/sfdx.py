"""Wrapper around the sfdx command line."""

from __future__ import annotations

import asyncio
import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Sequence

from scratchorg_pool.config import settings

logger = logging.getLogger(__name__)


class SfdxCommandError(RuntimeError):
    """Raised when an sfdx command fails or reports a non-zero status."""

    def __init__(self, command: Sequence[str], message: str, payload: Any | None = None) -> None:
        super().__init__(message)
        self.command = list(command)
        self.payload = payload


@dataclass
class CreatedScratchOrg:
    org_id: str
    username: str


class SfdxCli:
    """Run sfdx commands with ``--json`` output in a worker thread."""

    def __init__(self, executable: str | None = None, timeout: float | None = None) -> None:
        self._executable = executable or settings.sfdx_executable
        self._timeout = timeout or settings.sfdx_timeout_seconds

    async def _run_in_thread(self, func, *args, **kwargs):
        return await asyncio.to_thread(func, *args, **kwargs)

    def _run_sync(self, args: Sequence[str]) -> dict[str, Any]:
        command = [self._executable, *args, "--json"]
        logger.debug("Running %s", " ".join(command[:3]))
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise SfdxCommandError(command, f"{self._executable} executable not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise SfdxCommandError(command, f"{args[0]} timed out after {self._timeout}s") from exc

        try:
            payload = json.loads(completed.stdout or "{}")
        except json.JSONDecodeError as exc:
            message = (completed.stderr or completed.stdout or "").strip() or "unparseable sfdx output"
            raise SfdxCommandError(command, message) from exc

        if completed.returncode != 0 or payload.get("status", 0) != 0:
            message = payload.get("message") or (completed.stderr or "").strip() or f"{args[0]} failed"
            raise SfdxCommandError(command, message, payload)
        return payload.get("result") or {}

    async def run(self, *args: str) -> dict[str, Any]:
        return await self._run_in_thread(self._run_sync, list(args))

    async def create_scratch_org(
        self,
        *,
        config_file_path: str,
        devhub_username: str,
        alias: str,
        expiry_days: int,
        admin_email: str | None = None,
    ) -> CreatedScratchOrg:
        args = [
            "force:org:create",
            "-f",
            config_file_path,
            "-v",
            devhub_username,
            "-a",
            alias,
            "-d",
            str(expiry_days),
        ]
        if admin_email:
            args.append(f"adminEmail={admin_email}")
        result = await self.run(*args)
        return CreatedScratchOrg(org_id=result["orgId"], username=result["username"])

    async def generate_password(self, username: str) -> dict[str, Any]:
        """Set a generated password on ``username`` and return its details."""
        await self.run("force:user:password:generate", "-u", username)
        return await self.display_user(username)

    async def display_user(self, username: str) -> dict[str, Any]:
        return await self.run("force:user:display", "-u", username)

    async def display_org(self, username: str, *, verbose: bool = False) -> dict[str, Any]:
        args = ["force:org:display", "-u", username]
        if verbose:
            args.append("--verbose")
        return await self.run(*args)
