"""CLI application for Cosmos DB operations tooling."""

import typer

from cosmosops.cli.commands.cosmos import cosmos_app

app = typer.Typer(
    help="cosmosops - browse Azure Cosmos DB resources and clear containers",
    no_args_is_help=True,
)

app.add_typer(
    cosmos_app,
    name="cosmos",
    help="Browse subscriptions/accounts/databases/containers and clear items.",
)


if __name__ == "__main__":
    app()
