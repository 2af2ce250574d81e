"""E-mail a fetched scratch org to its user."""

from __future__ import annotations

import logging

from scratchorg_pool.repos import ScratchOrg
from scratchorg_pool.storage import DevHubClient, RetryPolicy

logger = logging.getLogger(__name__)

EMAIL_ACTION = "standard/emailSimple"

EMAIL_BODY_TEMPLATE = """{hub_username} has fetched a new scratch org from the Scratch Org Pool!

All the post scratch org scripts have been successfully completed in this org!

The Login url for this org is : {login_url}

Username: {username}

Password: {password}

Please use sfdx force:auth:web:login -r {login_url} -a <alias> command to authenticate against this Scratch org

Thank you for using the scratch org pool!"""


def build_email_body(hub_username: str, scratch_org: ScratchOrg) -> str:
    return EMAIL_BODY_TEMPLATE.format(
        hub_username=hub_username,
        login_url=scratch_org.login_url,
        username=scratch_org.username,
        password=scratch_org.password,
    )


class NotificationService:
    def __init__(self, client: DevHubClient) -> None:
        self._client = client

    async def share_scratch_org(self, email: str, scratch_org: ScratchOrg) -> None:
        hub_username = self._client.username
        body = {
            "inputs": [
                {
                    "emailBody": build_email_body(hub_username, scratch_org),
                    "emailAddresses": email,
                    "emailSubject": f"{hub_username} created you a new Salesforce org",
                    "senderType": "CurrentUser",
                }
            ]
        }
        await self._client.invoke_action(EMAIL_ACTION, body, policy=RetryPolicy.critical())
        logger.info("Successfully sent email to %s for %s", email, scratch_org.username)
