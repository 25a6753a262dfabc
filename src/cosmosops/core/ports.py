"""Interface for the remote resource API used by the cache and clear engine."""

from __future__ import annotations

from typing import Callable, Protocol

from cosmosops.core.resources import (
    AccountGroup,
    Container,
    DataAccount,
    Database,
    ItemId,
)
from cosmosops.core.session import SessionContext


class ResourceFetchPort(Protocol):
    """Async list/describe/delete operations against the remote API."""

    async def list_account_groups(self) -> list[AccountGroup]:
        """Return all subscriptions visible to the session."""
        ...

    async def list_data_accounts(self, group: AccountGroup) -> list[DataAccount]:
        """Return document-kind accounts in a subscription."""
        ...

    async def list_databases(self, account: DataAccount) -> list[Database]:
        """Return databases in an account."""
        ...

    async def list_containers(self, database: Database) -> list[Container]:
        """Return containers in a database, each probed for emptiness."""
        ...

    async def list_item_ids(self, container: Container) -> list[ItemId]:
        """Return references to every item in a container."""
        ...

    async def delete_item(self, container: Container, item: ItemId) -> None:
        """Delete a single item."""
        ...

    async def aclose(self) -> None:
        """Release remote clients held by the port."""
        ...


PortFactory = Callable[[SessionContext], ResourceFetchPort]
