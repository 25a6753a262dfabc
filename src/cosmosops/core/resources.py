"""Core domain models for the Cosmos DB resource hierarchy.

The hierarchy is subscription -> account -> database -> container. Each node
is an immutable dataclass tagged with an explicit ``NodeKind`` so callers can
dispatch on ``node.kind`` instead of on runtime types. Two sentinel variants
stand in for empty or inaccessible child lists.

These models are intentionally free of Azure SDK types and UI/CLI concerns.
Database and container nodes carry an opaque ``handle`` owned by the fetch
adapter; it does not take part in equality.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class NodeKind(str, Enum):
    """
    Discriminator for ResourceNode variants.

    Values:
        ACCOUNT_GROUP: An Azure subscription (root level).
        DATA_ACCOUNT: A Cosmos DB account of the document (NoSQL) kind.
        DATABASE: A database inside an account.
        CONTAINER: A container inside a database; holds the data items.
        NO_RESOURCES_FOUND: Placeholder for an empty child list.
        INSUFFICIENT_PERMISSION: Placeholder for a child list that failed to load.
    """

    ACCOUNT_GROUP = "ACCOUNT_GROUP"
    DATA_ACCOUNT = "DATA_ACCOUNT"
    DATABASE = "DATABASE"
    CONTAINER = "CONTAINER"
    NO_RESOURCES_FOUND = "NO_RESOURCES_FOUND"
    INSUFFICIENT_PERMISSION = "INSUFFICIENT_PERMISSION"


SENTINEL_KINDS = frozenset(
    {NodeKind.NO_RESOURCES_FOUND, NodeKind.INSUFFICIENT_PERMISSION}
)

# Child level for each parent level. Containers are leaves.
CHILD_KIND: dict[NodeKind, NodeKind] = {
    NodeKind.ACCOUNT_GROUP: NodeKind.DATA_ACCOUNT,
    NodeKind.DATA_ACCOUNT: NodeKind.DATABASE,
    NodeKind.DATABASE: NodeKind.CONTAINER,
}


@dataclass(frozen=True)
class AccountGroup:
    """
    Represents an Azure subscription.

    Attributes:
        id: Subscription id.
        display_name: Subscription display name.
    """

    id: str
    display_name: str
    kind: NodeKind = field(default=NodeKind.ACCOUNT_GROUP, init=False)


@dataclass(frozen=True)
class DataAccount:
    """
    Represents a Cosmos DB account.

    Attributes:
        id: ARM resource id of the account.
        display_name: Account name.
        resource_group_id: Resource group the account lives in.
        endpoint: Document endpoint URL.
        owner_group_id: Id of the owning subscription.
    """

    id: str
    display_name: str
    resource_group_id: str
    endpoint: str
    owner_group_id: str
    kind: NodeKind = field(default=NodeKind.DATA_ACCOUNT, init=False)


@dataclass(frozen=True)
class Database:
    """Represents a Cosmos DB database."""

    id: str
    display_name: str
    owner_account_id: str
    owner_group_id: str
    handle: Any = field(default=None, compare=False, repr=False)
    kind: NodeKind = field(default=NodeKind.DATABASE, init=False)


@dataclass(frozen=True)
class Container:
    """
    Represents a Cosmos DB container.

    ``is_empty`` is a snapshot taken when the container was listed. It is not
    updated by a clear; re-list the owning database to observe the new state.
    """

    id: str
    display_name: str
    is_empty: bool
    owner_database_id: str
    owner_account_id: str
    owner_group_id: str
    handle: Any = field(default=None, compare=False, repr=False)
    kind: NodeKind = field(default=NodeKind.CONTAINER, init=False)


@dataclass(frozen=True)
class NoResourcesFound:
    """Placeholder returned in place of an empty child list."""

    kind: NodeKind = field(default=NodeKind.NO_RESOURCES_FOUND, init=False)


@dataclass(frozen=True)
class InsufficientPermission:
    """Placeholder returned when a child list could not be fetched."""

    kind: NodeKind = field(default=NodeKind.INSUFFICIENT_PERMISSION, init=False)


@dataclass(frozen=True)
class ItemId:
    """
    Reference to a single data item inside a container.

    Attributes:
        id: Item id.
        partition_key: Partition key value of the item, as required by the
            delete call. Opaque to the core.
    """

    id: str
    partition_key: Any = None


Entity = Union[AccountGroup, DataAccount, Database, Container]
Sentinel = Union[NoResourcesFound, InsufficientPermission]
ResourceNode = Union[Entity, Sentinel]


def is_sentinel(node: ResourceNode) -> bool:
    """Return True if node is a placeholder rather than a real resource."""
    return node.kind in SENTINEL_KINDS


def real_nodes(nodes: tuple[ResourceNode, ...]) -> list[Entity]:
    """Drop sentinel placeholders from a child list."""
    return [n for n in nodes if not is_sentinel(n)]  # type: ignore[misc]
