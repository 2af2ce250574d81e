"""Command line for listing, fetching, filling and deleting scratch org pools.

Commands:
    list    Show pool members and their status
    fetch   Claim available scratch orgs from a pool
    fill    Provision scratch orgs until a pool reaches its size
    delete  Delete unassigned (or all) members of a pool
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from scratchorg_pool import get_version
from scratchorg_pool.config import settings
from scratchorg_pool.repos import ScratchOrg
from scratchorg_pool.services import (
    AllocationService,
    NotificationService,
    PoolContext,
    PoolFillService,
    PoolListing,
    PoolListService,
    PreRequisiteCheckError,
    ProvisioningError,
    SfdxCli,
    SfdxCommandError,
)
from scratchorg_pool.storage import DevHubClient, HubConnection

app = typer.Typer(
    name="scratchorg-pool",
    help="Manage pools of pre-provisioned scratch orgs on a DevHub",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

POOL_ERRORS = (
    httpx.HTTPError,
    PreRequisiteCheckError,
    ProvisioningError,
    SfdxCommandError,
    LookupError,
    ValueError,
)

DEVHUB_OPTION = typer.Option(
    ...,
    "--targetdevhubusername",
    "-v",
    envvar="SFPOOL_DEVHUB",
    help="Username or alias of the DevHub",
)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"scratchorg-pool version {get_version()}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level"),
    version: bool = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Scratch org pool management."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@asynccontextmanager
async def open_devhub(devhub: str) -> AsyncIterator[DevHubClient]:
    """Resolve the DevHub session through sfdx and open a client on it."""
    org = await SfdxCli().display_org(devhub)
    async with DevHubClient(HubConnection.from_sfdx(org)) as client:
        yield client


def _run(coro):
    try:
        return asyncio.run(coro)
    except POOL_ERRORS as exc:
        console.print(f"[red]Error:[/red] {exc}", style="bold")
        raise typer.Exit(code=1)


def _org_table(scratch_orgs: list[ScratchOrg], *, show_password: bool) -> Table:
    table = Table()
    columns = ["tag", "orgId", "username"]
    if show_password:
        columns.append("password")
    columns += ["expiryDate", "status", "loginURL"]
    for column in columns:
        table.add_column(column)

    for org in scratch_orgs:
        row = [org.tag, org.org_id, org.username]
        if show_password:
            row.append(org.password)
        row += [org.expiry_date, org.status.value if org.status else None, org.login_url]
        table.add_row(*(value or "" for value in row))
    return table


def _print_listing(listing: PoolListing, *, my_pool: bool, all_scratch_orgs: bool) -> None:
    if not listing.scratch_orgs:
        console.print(f"{listing.tag} pool has No Scratch orgs available, time to create your pool.")
        return

    console.print("======== Scratch org Details ========")
    tag_counts = listing.tag_counts()
    if tag_counts:
        console.print("List of all the pools in the org")
        histogram = Table("tag", "count")
        for item in tag_counts:
            histogram.add_row(item.tag, str(item.count))
        console.print(histogram)
        console.print("===================================")

    if all_scratch_orgs:
        console.print(f"Used Scratch Orgs in the pool: {listing.inuse}")
    console.print(f"Unused Scratch Orgs in the Pool : {listing.unused}")
    if listing.inprovision:
        console.print(f"Scratch Orgs being provisioned in the Pool : {listing.inprovision}")
    console.print(_org_table(listing.scratch_orgs, show_password=my_pool))


@app.command("list")
def list_pool(
    devhub: str = DEVHUB_OPTION,
    tag: Optional[str] = typer.Option(None, "--tag", "-t", help="Tag of the pool; all pools when omitted"),
    my_pool: bool = typer.Option(False, "--mypool", "-m", help="Only orgs created by you, passwords included"),
    all_scratch_orgs: bool = typer.Option(False, "--allscratchorgs", "-a", help="Include orgs already in use"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """List the scratch orgs of a pool.

    Example:
        scratchorg-pool list -t core -v devhub -m -a
    """

    async def _list() -> PoolListing:
        async with open_devhub(devhub) as client:
            service = PoolListService(client, PoolContext())
            return await service.list_pool(tag, my_pool=my_pool, all_scratch_orgs=all_scratch_orgs)

    listing = _run(_list())
    if as_json:
        console.print_json(json.dumps(listing.to_response().to_json_dict()))
        return
    _print_listing(listing, my_pool=my_pool, all_scratch_orgs=all_scratch_orgs)


@app.command()
def fetch(
    devhub: str = DEVHUB_OPTION,
    tag: str = typer.Option(..., "--tag", "-t", help="Tag of the pool to fetch from"),
    count: int = typer.Option(1, "--count", "-c", min=1, help="Number of scratch orgs to fetch"),
    my_pool: bool = typer.Option(False, "--mypool", "-m", help="Only fetch orgs created by you"),
    send_to_user: Optional[str] = typer.Option(None, "--sendtouser", "-s", help="E-mail the org details to this address"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Claim available scratch orgs from a pool."""

    async def _fetch() -> list[ScratchOrg]:
        async with open_devhub(devhub) as client:
            fetched = await AllocationService(client, PoolContext()).fetch(tag, count, my_pool=my_pool)
            if send_to_user:
                notifier = NotificationService(client)
                for scratch_org in fetched:
                    # The org is already Assigned; its details must still reach the caller.
                    try:
                        await notifier.share_scratch_org(send_to_user, scratch_org)
                    except httpx.HTTPError as exc:
                        err_console.print(
                            f"[yellow]Warning:[/yellow] unable to e-mail {scratch_org.username} "
                            f"to {send_to_user}: {exc}"
                        )
            return fetched

    fetched = _run(_fetch())
    if not fetched:
        console.print(f"[red]Error:[/red] No scratch org available in pool {tag}", style="bold")
        raise typer.Exit(code=1)

    if as_json:
        details = [
            {
                "orgId": org.org_id,
                "username": org.username,
                "password": org.password,
                "loginURL": org.login_url,
                "sfdxAuthUrl": org.sfdx_auth_url,
                "expiryDate": org.expiry_date,
            }
            for org in fetched
        ]
        console.print_json(json.dumps(details))
        return
    console.print(_org_table(fetched, show_password=True))


@app.command()
def fill(
    devhub: str = DEVHUB_OPTION,
    tag: str = typer.Option(..., "--tag", "-t", help="Tag of the pool to fill"),
    max_allocation: int = typer.Option(..., "--maxallocation", "-n", min=1, help="Target size of the pool"),
    config_file: str = typer.Option(..., "--configfile", "-f", help="Scratch org definition file"),
    admin_email: Optional[str] = typer.Option(None, "--adminemail", help="Admin e-mail of the created orgs"),
    expiry: Optional[int] = typer.Option(None, "--expiry", "-d", min=1, max=30, help="Days before the orgs expire"),
) -> None:
    """Provision scratch orgs until the pool reaches its size."""

    async def _fill():
        async with open_devhub(devhub) as client:
            service = PoolFillService(client, PoolContext())
            return await service.fill(
                tag,
                max_allocation,
                config_file_path=config_file,
                admin_email=admin_email,
                expiry_days=expiry,
            )

    result = _run(_fill())
    console.print(f"Created {len(result.created)} of {result.requested} scratch orgs in pool {tag}")
    for sequence_id, reason in sorted(result.failures.items()):
        console.print(f"[yellow]SO{sequence_id}[/yellow] failed: {reason}")
    if result.failures:
        raise typer.Exit(code=1)


@app.command()
def delete(
    devhub: str = DEVHUB_OPTION,
    tag: str = typer.Option(..., "--tag", "-t", help="Tag of the pool to delete from"),
    my_pool: bool = typer.Option(False, "--mypool", "-m", help="Only delete orgs created by you"),
    all_scratch_orgs: bool = typer.Option(False, "--allscratchorgs", "-a", help="Delete orgs in use as well"),
    in_progress_only: bool = typer.Option(False, "--inprogressonly", "-i", help="Only delete orgs still provisioning"),
) -> None:
    """Delete members of a pool."""

    async def _delete() -> list[ScratchOrg]:
        async with open_devhub(devhub) as client:
            return await AllocationService(client, PoolContext()).reclaim_pool(
                tag,
                my_pool=my_pool,
                all_scratch_orgs=all_scratch_orgs,
                in_progress_only=in_progress_only,
            )

    deleted = _run(_delete())
    if not deleted:
        console.print(f"No scratch orgs to delete in pool {tag}")
        return
    console.print(f"Deleted {len(deleted)} scratch orgs from pool {tag}")
    console.print(_org_table(deleted, show_password=False))
