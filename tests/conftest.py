from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from cosmosops.core.cache import ResourceCache  # noqa: E402
from cosmosops.core.resources import (  # noqa: E402
    AccountGroup,
    Container,
    DataAccount,
    Database,
    ItemId,
)
from cosmosops.core.session import SessionContext  # noqa: E402


class FakePort:
    """In-memory ResourceFetchPort built from a nested dict of display names.

    hierarchy shape: {subscription: {account: {database: {container: [item ids]}}}}
    """

    def __init__(self, hierarchy: dict, session: SessionContext | None = None):
        self.session = session
        self.calls: list[tuple[str, str | None]] = []
        self.failures: dict[tuple[str, str | None], Exception] = {}
        self.delete_failures: set[str] = set()
        self.deleted: list[tuple[str, str]] = []
        self.closed = False

        self.groups: list[AccountGroup] = []
        self.accounts: dict[str, list[DataAccount]] = {}
        self.databases: dict[str, list[Database]] = {}
        self.containers: dict[str, list[tuple[str, str, str, str]]] = {}
        self.items: dict[str, list[ItemId]] = {}

        for group_name, accounts in hierarchy.items():
            group = AccountGroup(id=f"sub-{group_name}", display_name=group_name)
            self.groups.append(group)
            self.accounts[group.id] = []
            for account_name, databases in accounts.items():
                account = DataAccount(
                    id=(
                        f"/subscriptions/{group.id}/resourceGroups/rg/providers/"
                        f"Microsoft.DocumentDB/databaseAccounts/{account_name}"
                    ),
                    display_name=account_name,
                    resource_group_id="rg",
                    endpoint=f"https://{account_name}.documents.azure.com:443/",
                    owner_group_id=group.id,
                )
                self.accounts[group.id].append(account)
                self.databases[account.id] = []
                for db_name, containers in databases.items():
                    db = Database(
                        id=f"{account.id}/databases/{db_name}",
                        display_name=db_name,
                        owner_account_id=account.id,
                        owner_group_id=group.id,
                    )
                    self.databases[account.id].append(db)
                    self.containers[db.id] = []
                    for container_name, item_ids in containers.items():
                        container_id = f"{db.id}/containers/{container_name}"
                        self.containers[db.id].append(
                            (container_id, container_name, db.id, account.id)
                        )
                        self.items[container_id] = [
                            ItemId(id=i, partition_key=i) for i in item_ids
                        ]

    def _record(self, method: str, key: str | None) -> None:
        self.calls.append((method, key))
        failure = self.failures.get((method, key))
        if failure is not None:
            raise failure

    def count(self, method: str, key: str | None = None) -> int:
        return sum(1 for m, k in self.calls if m == method and (key is None or k == key))

    async def list_account_groups(self) -> list[AccountGroup]:
        if self.session is not None:
            self.session.root_credential()
        self._record("list_account_groups", None)
        await asyncio.sleep(0)
        return list(self.groups)

    async def list_data_accounts(self, group: AccountGroup) -> list[DataAccount]:
        if self.session is not None:
            self.session.credential_for(group.id)
        self._record("list_data_accounts", group.id)
        await asyncio.sleep(0)
        return list(self.accounts.get(group.id, []))

    async def list_databases(self, account: DataAccount) -> list[Database]:
        self._record("list_databases", account.id)
        await asyncio.sleep(0)
        return list(self.databases.get(account.id, []))

    async def list_containers(self, database: Database) -> list[Container]:
        self._record("list_containers", database.id)
        await asyncio.sleep(0)
        return [
            Container(
                id=container_id,
                display_name=name,
                is_empty=not self.items[container_id],
                owner_database_id=db_id,
                owner_account_id=account_id,
                owner_group_id=database.owner_group_id,
            )
            for container_id, name, db_id, account_id in self.containers.get(
                database.id, []
            )
        ]

    async def list_item_ids(self, container: Container) -> list[ItemId]:
        self._record("list_item_ids", container.id)
        await asyncio.sleep(0)
        return list(self.items.get(container.id, []))

    async def delete_item(self, container: Container, item: ItemId) -> None:
        self._record("delete_item", container.id)
        await asyncio.sleep(0)
        if item.id in self.delete_failures:
            raise RuntimeError(f"delete of {item.id} failed")
        self.items[container.id] = [i for i in self.items[container.id] if i != item]
        self.deleted.append((container.id, item.id))

    async def aclose(self) -> None:
        self.closed = True


HIERARCHY = {
    "Dev Sub": {
        "acct-a": {
            "Prod DB": {"C1": ["i1", "i2", "i3"], "C2": []},
            "Other DB": {"C3": ["x1"]},
        },
        "acct-b": {},
    },
    "Empty Sub": {},
}


@pytest.fixture
def session() -> SessionContext:
    return SessionContext(credential=object())


@pytest.fixture
def port() -> FakePort:
    return FakePort(HIERARCHY)


@pytest.fixture
def cache(port: FakePort, session: SessionContext) -> ResourceCache:
    return ResourceCache(lambda _session: port, session)
