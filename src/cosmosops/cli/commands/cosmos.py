from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import typer

from cosmosops.cli.common.context import CosmosAppContext, build_cosmos_context
from cosmosops.cli.common.exits import exit_from_exc
from cosmosops.cli.common.options import (
    DepthOpt,
    DryRunOpt,
    KindOpt,
    ParallelOpt,
    TenantOpt,
)
from cosmosops.cli.common.output import out
from cosmosops.cli.common.presentation import kind_title
from cosmosops.cli.tui import (
    CLEAR_HERE,
    GO_UP,
    QUIT,
    REFRESH,
    QuestionaryPrompter,
    select_node,
)
from cosmosops.core.auth import AuthError
from cosmosops.core.clear import ClearEngine, ClearReport, clear_selection
from cosmosops.core.errors import MissingCredentialError, PathNotFoundError
from cosmosops.core.gate import ConfirmationGate
from cosmosops.core.logging import setup_logging
from cosmosops.core.navigation import expand, resolve_path
from cosmosops.core.resources import Entity, NodeKind

T = TypeVar("T")

cosmos_app = typer.Typer(
    help="Browse Cosmos DB (NoSQL) resources and clear containers.",
    no_args_is_help=False,
    invoke_without_command=True,
)


@cosmos_app.callback()
def _init(
    ctx: typer.Context,
    tenant: str | None = TenantOpt,
    kind: str | None = KindOpt,
):
    """Initialize Azure session and resource cache."""
    setup_logging()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)
    ctx.obj = build_cosmos_context(tenant, kind)


def _run(appctx: CosmosAppContext, work: Callable[[], Awaitable[T]]) -> T:
    """Run async work on a fresh event loop and close Azure clients afterwards."""

    async def _main() -> T:
        try:
            await appctx.sign_in()
            return await work()
        finally:
            await appctx.aclose()

    try:
        return asyncio.run(_main())
    except AuthError as exc:
        exit_from_exc(exc, message=str(exc), code=1)
    except MissingCredentialError as exc:
        exit_from_exc(exc, message=str(exc), code=1)
    except PathNotFoundError as exc:
        exit_from_exc(exc, message=str(exc), code=2)
    except ValueError as exc:
        exit_from_exc(exc, message=str(exc), code=2)


def _location(node: Entity | None, trail: list[str]) -> str:
    return "/".join(trail) if node is not None else "<subscriptions>"


def _report_clear(report: ClearReport | None) -> None:
    """Print a clear report and exit non-zero on failures."""
    if report is None:
        out.warn("Cancelled.")
        raise typer.Exit(0)

    if report.containers:
        title = "Clear (dry-run)" if report.dry_run else "Clear results"
        out.clear_results_table(report, title=title)
    else:
        out.warn("No containers found.")

    for node_id in report.skipped:
        out.warn(f"Skipped (insufficient permission): {node_id}")

    if not report.ok:
        out.error(
            f"Failed to delete {len(report.failed_items)} item(s) in "
            f"{len(report.containers)} container(s); "
            f"{len(report.failed_containers)} container(s) could not be listed."
        )
        raise typer.Exit(1)

    if report.dry_run:
        out.success(f"Dry-run complete: {len(report.items)} item(s) would be deleted.")
    else:
        out.success(
            f"Deleted {report.deleted_count} item(s) from "
            f"{len(report.containers)} container(s)."
        )


@cosmos_app.command("tree")
def tree(ctx: typer.Context, depth: int = DepthOpt):
    """Show the subscription/account/database/container tree."""
    appctx: CosmosAppContext = ctx.obj

    async def _work():
        with out.status("Loading resources..."):
            return await expand(appctx.cache, None, depth)

    entries = _run(appctx, _work)
    out.resource_tree(entries, title="Azure")


@cosmos_app.command("ls")
def ls(
    ctx: typer.Context,
    path: str | None = typer.Argument(
        None, help="Path in the form subscription[/account[/database]]"
    ),
):
    """List the children of a resource (subscriptions when no path is given)."""
    appctx: CosmosAppContext = ctx.obj

    async def _work():
        with out.status("Loading resources..."):
            node = await resolve_path(appctx.cache, path)
            return node, await appctx.cache.children_of(node)

    node, children = _run(appctx, _work)
    if node is not None and node.kind is NodeKind.CONTAINER:
        out.warn("Containers have no child resources.")
        raise typer.Exit(0)

    out.header(path or "Subscriptions")
    out.nodes_table(children, title="Resources")


@cosmos_app.command("clear")
def clear(
    ctx: typer.Context,
    path: str = typer.Argument(
        ..., help="Path in the form subscription[/account[/database[/container]]]"
    ),
    dry_run: bool = DryRunOpt,
    parallel: int | None = ParallelOpt,
):
    """Delete every item in every container below a resource (after confirmation)."""
    appctx: CosmosAppContext = ctx.obj
    engine = ClearEngine(appctx.cache, max_parallel=parallel)
    gate = ConfirmationGate(QuestionaryPrompter())

    async def _work():
        with out.status("Resolving resource..."):
            node = await resolve_path(appctx.cache, path)
        if node is None:
            raise ValueError("Missing path. Clearing every subscription is not supported.")
        out.info(f"Target: {kind_title(node)} {path}")

        if dry_run:
            out.warn("DRY RUN: no changes will be made.")
        report = await clear_selection(node, gate=gate, engine=engine, dry_run=dry_run)

        refreshed = None
        if report is not None and not dry_run and node.kind is NodeKind.CONTAINER:
            # containers are refreshed through their database
            target = appctx.cache.invalidation_target(node)
            if target is not None:
                refreshed = await appctx.cache.children_of(target)
        return report, refreshed

    report, refreshed = _run(appctx, _work)
    if refreshed is not None:
        out.nodes_table(refreshed, title="Containers after clear")
    _report_clear(report)


@cosmos_app.command("browse")
def browse(ctx: typer.Context, dry_run: bool = DryRunOpt):
    """Interactively walk the tree and clear the selected resource."""
    appctx: CosmosAppContext = ctx.obj
    engine = ClearEngine(appctx.cache)
    gate = ConfirmationGate(QuestionaryPrompter())

    async def _work():
        stack: list[Entity] = []
        while True:
            node = stack[-1] if stack else None
            trail = [n.display_name for n in stack]
            children = await appctx.cache.children_of(node)
            picked = await select_node(
                children,
                location=_location(node, trail),
                can_clear=node is not None,
                can_go_up=bool(stack),
            )
            if picked is None or picked == QUIT:
                return None
            if picked == GO_UP:
                stack.pop()
            elif picked == REFRESH:
                appctx.cache.invalidate(node)
            elif picked == CLEAR_HERE:
                return await clear_selection(
                    node, gate=gate, engine=engine, dry_run=dry_run
                )
            elif picked.kind is NodeKind.CONTAINER:
                return await clear_selection(
                    picked, gate=gate, engine=engine, dry_run=dry_run
                )
            else:
                stack.append(picked)

    report = _run(appctx, _work)
    if report is None:
        raise typer.Exit(0)
    _report_clear(report)
