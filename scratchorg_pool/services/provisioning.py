"""Scratch org provisioning for the pool."""

from __future__ import annotations

import logging

from scratchorg_pool.config import settings
from scratchorg_pool.repos import ScratchOrg, ScratchOrgRepository
from scratchorg_pool.storage import DevHubClient

from .sfdx import SfdxCli, SfdxCommandError

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("scratchorg_pool.audit")


class ProvisioningError(RuntimeError):
    """Raised when a freshly created scratch org cannot be made poolable."""


def scratch_org_alias(sequence_id: int) -> str:
    return f"SO{sequence_id}"


class ProvisioningService:
    """Create a scratch org and gather everything needed to hand it out later."""

    def __init__(self, client: DevHubClient, sfdx: SfdxCli | None = None) -> None:
        self._client = client
        self._repo = ScratchOrgRepository(client)
        self._sfdx = sfdx or SfdxCli()

    async def create_scratch_org(
        self,
        sequence_id: int,
        admin_email: str | None,
        config_file_path: str,
        expiry_days: int | None = None,
    ) -> ScratchOrg:
        alias = scratch_org_alias(sequence_id)
        expiry_days = expiry_days or settings.default_expiry_days
        logger.debug(
            "Creating scratch org %s from %s (expiry %d days)",
            alias,
            config_file_path,
            expiry_days,
        )

        created = await self._sfdx.create_scratch_org(
            config_file_path=config_file_path,
            devhub_username=self._client.username,
            alias=alias,
            expiry_days=expiry_days,
            admin_email=admin_email,
        )

        login_url = await self._repo.get_login_url(created.username)

        try:
            password_data = await self._sfdx.generate_password(created.username)
        except SfdxCommandError as exc:
            raise ProvisioningError(f"Unable to setup password to scratch org {created.username}: {exc}") from exc
        password = password_data.get("password")
        if not password:
            raise ProvisioningError(f"Unable to setup password to scratch org {created.username}")
        logger.info("Password successfully set for %s", created.username)

        org_details = await self._sfdx.display_org(created.username, verbose=True)
        sfdx_auth_url = org_details.get("sfdxAuthUrl")
        if not sfdx_auth_url:
            raise ProvisioningError(f"Unable to resolve auth url for scratch org {created.username}")

        audit_logger.info(
            "scratch_org_created",
            extra={"alias": alias, "org_id": created.org_id, "username": created.username},
        )
        return ScratchOrg(
            alias=alias,
            org_id=created.org_id,
            username=created.username,
            signup_email=admin_email or "",
            login_url=login_url,
            password=password,
            sfdx_auth_url=sfdx_auth_url,
        )
