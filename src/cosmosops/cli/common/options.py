"""Common CLI options for the CLI."""

import typer

TenantOpt = typer.Option(
    None,
    "--tenant",
    "-t",
    help="Azure tenant id (defaults to AZURE_TENANT_ID or the Azure CLI login)",
)

KindOpt = typer.Option(
    None,
    "--kind",
    help="Cosmos DB account kind to include (default: GlobalDocumentDB)",
)

DepthOpt = typer.Option(
    2,
    "--depth",
    "-d",
    min=1,
    max=4,
    help="Levels to expand (1=subscriptions .. 4=containers)",
)

ParallelOpt = typer.Option(
    None,
    "--parallel",
    "-n",
    min=1,
    help="Maximum concurrent remote calls while clearing",
)

DryRunOpt = typer.Option(
    False,
    "--dry-run",
    help="Show which items would be deleted, but don't delete anything",
)
