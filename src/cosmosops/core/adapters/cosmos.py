from __future__ import annotations

import json
import os
from typing import Any

import structlog
from azure.cosmos.aio import CosmosClient
from azure.cosmos.partition_key import NonePartitionKeyValue
from azure.mgmt.cosmosdb.aio import CosmosDBManagementClient
from azure.mgmt.resource.subscriptions.aio import SubscriptionClient

from cosmosops.core.resources import (
    AccountGroup,
    Container,
    DataAccount,
    Database,
    ItemId,
)
from cosmosops.core.session import SessionContext

logger = structlog.get_logger(__name__)


def resource_group_from_id(arm_id: str) -> str | None:
    """Return the resource group name from an ARM resource id."""
    parts = arm_id.strip("/").split("/")
    for i, part in enumerate(parts[:-1]):
        if part.lower() == "resourcegroups":
            return parts[i + 1] or None
    return None


def to_data_account(item: Any, group_id: str, *, kind: str) -> DataAccount | None:
    """Map a DatabaseAccountGetResults to a DataAccount, or None if filtered out."""
    name = getattr(item, "name", None)
    arm_id = getattr(item, "id", None)
    endpoint = getattr(item, "document_endpoint", None)
    if not name or not arm_id or not endpoint:
        return None

    # SDK may hand back an enum member or a plain string
    raw_kind = getattr(item, "kind", None)
    if getattr(raw_kind, "value", raw_kind) != kind:
        return None

    resource_group = resource_group_from_id(arm_id)
    if not resource_group:
        return None

    return DataAccount(
        id=arm_id,
        display_name=name,
        resource_group_id=resource_group,
        endpoint=endpoint,
        owner_group_id=group_id,
    )


def partition_key_value(item: dict[str, Any], paths: list[str]) -> Any:
    """
    Extract the partition key value of an item for the container's key paths.

    Items missing the key property (and containers without a partition key)
    use NonePartitionKeyValue. Hierarchical keys return a list of values.
    """
    if not paths:
        return NonePartitionKeyValue

    values = []
    for path in paths:
        value: Any = item
        for segment in path.strip("/").split("/"):
            if not isinstance(value, dict) or segment not in value:
                value = NonePartitionKeyValue
                break
            value = value[segment]
        values.append(value)
    return values[0] if len(values) == 1 else values


def item_id_query(paths: list[str]) -> str:
    """
    Build a query returning only ``id`` and the top-level properties holding
    the partition key, so rows keep the shape partition_key_value expects.
    """
    names = ["id"]
    for path in paths:
        segments = [s for s in path.strip("/").split("/") if s]
        if segments and segments[0] not in names:
            names.append(segments[0])
    fields = ", ".join(f"{json.dumps(n)}: c[{json.dumps(n)}]" for n in names)
    return f"SELECT VALUE {{{fields}}} FROM c"


class AzureCosmosAdapter:
    """Adapter around the Azure management and Cosmos DB data-plane async SDKs."""

    _ACCOUNT_KIND_ENV = "COSMOSOPS_ACCOUNT_KIND"
    _DEFAULT_ACCOUNT_KIND = "GlobalDocumentDB"

    def __init__(self, session: SessionContext, *, account_kind: str | None = None):
        """Create an adapter bound to one session's credentials."""
        self.session = session
        self.account_kind = account_kind or self._account_kind_from_env()
        # account id -> data-plane client, keyed once per account
        self._clients: dict[str, CosmosClient] = {}
        # container id -> partition key paths
        self._partition_paths: dict[str, list[str]] = {}

    def _account_kind_from_env(self) -> str:
        """Return the account kind filter, honoring env override."""
        raw = os.getenv(self._ACCOUNT_KIND_ENV, "").strip()
        return raw or self._DEFAULT_ACCOUNT_KIND

    def _management_client(self, group_id: str) -> CosmosDBManagementClient:
        return CosmosDBManagementClient(self.session.credential_for(group_id), group_id)

    async def _data_client(self, account: DataAccount) -> CosmosClient:
        """Return the data-plane client for an account, resolving its key once."""
        client = self._clients.get(account.id)
        if client is not None:
            return client

        async with self._management_client(account.owner_group_id) as mgmt:
            keys = await mgmt.database_accounts.list_keys(
                account.resource_group_id, account.display_name
            )
        client = CosmosClient(account.endpoint, credential=keys.primary_master_key)
        self._clients[account.id] = client
        return client

    async def list_account_groups(self) -> list[AccountGroup]:
        """List all subscriptions visible to the root credential."""
        out: list[AccountGroup] = []
        async with SubscriptionClient(self.session.root_credential()) as client:
            async for s in client.subscriptions.list():
                sub_id = getattr(s, "subscription_id", None)
                name = getattr(s, "display_name", None)
                if not sub_id or not name:
                    continue
                out.append(AccountGroup(id=sub_id, display_name=name))
        return out

    async def list_data_accounts(self, group: AccountGroup) -> list[DataAccount]:
        """List Cosmos DB accounts of the configured kind in a subscription."""
        out: list[DataAccount] = []
        async with self._management_client(group.id) as client:
            async for item in client.database_accounts.list():
                account = to_data_account(item, group.id, kind=self.account_kind)
                if account is None:
                    logger.debug(
                        "account_filtered",
                        name=getattr(item, "name", None),
                        kind=str(getattr(item, "kind", None)),
                    )
                    continue
                out.append(account)
        return out

    async def list_databases(self, account: DataAccount) -> list[Database]:
        """List databases in an account."""
        client = await self._data_client(account)
        out: list[Database] = []
        async for props in client.list_databases():
            name = props.get("id")
            if not name:
                continue
            out.append(
                Database(
                    id=f"{account.id}/databases/{name}",
                    display_name=name,
                    owner_account_id=account.id,
                    owner_group_id=account.owner_group_id,
                    handle=client.get_database_client(name),
                )
            )
        return out

    async def list_containers(self, database: Database) -> list[Container]:
        """List containers in a database, probing each one for items."""
        db = database.handle
        out: list[Container] = []
        async for props in db.list_containers():
            name = props.get("id")
            if not name:
                continue
            container_id = f"{database.id}/containers/{name}"
            self._partition_paths[container_id] = list(
                (props.get("partitionKey") or {}).get("paths") or []
            )
            handle = db.get_container_client(name)
            out.append(
                Container(
                    id=container_id,
                    display_name=name,
                    is_empty=await self._probe_empty(handle),
                    owner_database_id=database.id,
                    owner_account_id=database.owner_account_id,
                    owner_group_id=database.owner_group_id,
                    handle=handle,
                )
            )
        return out

    @staticmethod
    async def _probe_empty(handle: Any) -> bool:
        async for _ in handle.read_all_items(max_item_count=1):
            return False
        return True

    async def _paths_for(self, container: Container) -> list[str]:
        paths = self._partition_paths.get(container.id)
        if paths is None:
            props = await container.handle.read()
            paths = list((props.get("partitionKey") or {}).get("paths") or [])
            self._partition_paths[container.id] = paths
        return paths

    async def list_item_ids(self, container: Container) -> list[ItemId]:
        """Return id and partition key of every item in a container."""
        paths = await self._paths_for(container)
        out: list[ItemId] = []
        query = item_id_query(paths)
        async for item in container.handle.query_items(query=query):
            item_id = item.get("id")
            if item_id is None:
                continue
            out.append(ItemId(id=item_id, partition_key=partition_key_value(item, paths)))
        return out

    async def delete_item(self, container: Container, item: ItemId) -> None:
        """Delete one item by id and partition key."""
        await container.handle.delete_item(item=item.id, partition_key=item.partition_key)

    async def aclose(self) -> None:
        """Close every data-plane client opened by this adapter."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.close()
