"""Hierarchical cache of the subscription/account/database/container tree.

Children are fetched lazily through a ResourceFetchPort and stored per parent
id. Fetch failures degrade to placeholder nodes so the tree stays browsable;
only a missing credential is raised to the caller.

Concurrency model:
    All access happens on one asyncio event loop. Fetches for the same parent
    are single-flight: overlapping ``children_of`` calls share one remote
    call. A fetch that is still running when its parent is invalidated does
    not write its result back. Entries never expire; staleness is resolved
    only by ``invalidate``.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import structlog

from cosmosops.core.errors import MissingCredentialError
from cosmosops.core.ports import PortFactory, ResourceFetchPort
from cosmosops.core.resources import (
    CHILD_KIND,
    Container,
    Database,
    Entity,
    InsufficientPermission,
    NodeKind,
    NoResourcesFound,
    ResourceNode,
    is_sentinel,
)
from cosmosops.core.session import SessionContext

logger = structlog.get_logger(__name__)

# (child level, parent id); the root list of subscriptions has parent id None.
_Slot = tuple[NodeKind, Optional[str]]

# Receives the node whose subtree changed, or None when the whole tree changed.
Listener = Callable[[Optional[Entity]], None]


class ResourceCache:
    """Per-parent child lists for the resource hierarchy."""

    def __init__(
        self,
        port_factory: PortFactory,
        session: SessionContext | None = None,
    ) -> None:
        self._port_factory = port_factory
        self._session = session or SessionContext.signed_out()
        self._port = port_factory(self._session)
        self._lists: dict[_Slot, list[Entity]] = {}
        self._inflight: dict[_Slot, asyncio.Task] = {}
        self._listeners: list[Listener] = []

    @property
    def session(self) -> SessionContext:
        return self._session

    @property
    def port(self) -> ResourceFetchPort:
        return self._port

    async def replace_session(self, session: SessionContext) -> None:
        """Swap in a new session (sign-in/sign-out) and drop every cached list."""
        old_port = self._port
        self._session = session
        self._port = self._port_factory(session)
        self._drop_all()
        await old_port.aclose()
        logger.info("session_replaced", signed_in=session.is_signed_in)
        self._notify(None)

    async def aclose(self) -> None:
        """Release the port's remote clients."""
        await self._port.aclose()

    # -- change notification -------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener and return a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, node: Entity | None) -> None:
        for listener in list(self._listeners):
            listener(node)

    # -- lookups ---------------------------------------------------------------

    async def children_of(
        self, parent: ResourceNode | None = None
    ) -> tuple[ResourceNode, ...]:
        """
        Return the children of ``parent`` (subscriptions when parent is None).

        Cached lists are returned without a remote call. Otherwise the list is
        fetched, stored and returned. An empty list is reported as a single
        NoResourcesFound node and a failed fetch as a single
        InsufficientPermission node; placeholders are never stored.

        Raises:
            MissingCredentialError: no credential exists for the parent.
        """
        slot = self._slot_for(parent)
        if slot is None:
            return ()

        children = self._lists.get(slot)
        if children is None:
            try:
                children = await self._fetch(slot, parent)
            except MissingCredentialError:
                raise
            except Exception as exc:  # noqa: BLE001  any fetch failure is a placeholder
                logger.warning(
                    "fetch_failed",
                    level=slot[0].value,
                    parent_id=slot[1],
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return (InsufficientPermission(),)

        if not children:
            return (NoResourcesFound(),)
        return tuple(children)

    def related(
        self, parent_id: str | None, level: NodeKind
    ) -> tuple[Entity, ...] | None:
        """Return the cached ``level`` children of ``parent_id`` without fetching."""
        children = self._lists.get((level, parent_id))
        if children is None:
            return None
        return tuple(children)

    @staticmethod
    def _slot_for(parent: ResourceNode | None) -> _Slot | None:
        if parent is None:
            return (NodeKind.ACCOUNT_GROUP, None)
        level = CHILD_KIND.get(parent.kind)
        if level is None:
            # containers and placeholders are leaves
            return None
        return (level, parent.id)  # type: ignore[union-attr]

    # -- fetching --------------------------------------------------------------

    async def _fetch(self, slot: _Slot, parent: ResourceNode | None) -> list[Entity]:
        task = self._inflight.get(slot)
        if task is None:
            task = asyncio.ensure_future(self._load(slot, parent))
            self._inflight[slot] = task
        # a cancelled caller must not cancel the fetch other callers share
        return await asyncio.shield(task)

    async def _load(self, slot: _Slot, parent: ResourceNode | None) -> list[Entity]:
        me = asyncio.current_task()
        try:
            children = await self._call_port(slot[0], parent)
            if self._inflight.get(slot) is me:
                if self._is_known(parent):
                    self._lists[slot] = children
                else:
                    logger.warning("parent_not_cached", parent_id=slot[1])
            logger.debug(
                "children_fetched",
                level=slot[0].value,
                parent_id=slot[1],
                count=len(children),
            )
            return children
        finally:
            if self._inflight.get(slot) is me:
                del self._inflight[slot]

    async def _call_port(
        self, level: NodeKind, parent: ResourceNode | None
    ) -> list[Entity]:
        port = self._port
        if level is NodeKind.ACCOUNT_GROUP:
            return list(await port.list_account_groups())
        if level is NodeKind.DATA_ACCOUNT:
            return list(await port.list_data_accounts(parent))  # type: ignore[arg-type]
        if level is NodeKind.DATABASE:
            return list(await port.list_databases(parent))  # type: ignore[arg-type]
        if level is NodeKind.CONTAINER:
            return list(await port.list_containers(parent))  # type: ignore[arg-type]
        raise ValueError(f"Cannot fetch children at level {level.value}.")

    def _is_known(self, parent: ResourceNode | None) -> bool:
        """True if parent was itself returned by a fetch at its own level."""
        if parent is None:
            return True
        if parent.kind is NodeKind.ACCOUNT_GROUP:
            siblings = self._lists.get((NodeKind.ACCOUNT_GROUP, None))
        elif parent.kind is NodeKind.DATA_ACCOUNT:
            siblings = self._lists.get((NodeKind.DATA_ACCOUNT, parent.owner_group_id))
        elif parent.kind is NodeKind.DATABASE:
            siblings = self._lists.get((NodeKind.DATABASE, parent.owner_account_id))
        else:
            return False
        return siblings is not None and any(s.id == parent.id for s in siblings)

    # -- invalidation ----------------------------------------------------------

    def invalidation_target(self, node: Entity) -> Entity | None:
        """
        Return the node whose subtree is refreshed when ``node`` is invalidated.

        A container's item counts are only observable by re-listing its
        database, so containers map to their parent database (None if that
        database is no longer cached). Every other node maps to itself.
        """
        if node.kind is NodeKind.CONTAINER:
            return self._find_database(node)  # type: ignore[arg-type]
        return node

    def invalidate(self, node: ResourceNode | None = None) -> None:
        """Drop the cached subtree of ``node`` and notify listeners."""
        if node is None:
            self.invalidate_all()
            return
        if is_sentinel(node):
            return

        target = self.invalidation_target(node)  # type: ignore[arg-type]
        if target is None:
            # parent database already gone; drop the orphaned container list
            self._drop_subtree((NodeKind.CONTAINER, node.owner_database_id))  # type: ignore[union-attr]
            logger.info("cache_invalidated", node_id=node.id, target_id=None)  # type: ignore[union-attr]
            self._notify(None)
            return

        slot = self._slot_for(target)
        if slot is not None:
            self._drop_subtree(slot)
        logger.info("cache_invalidated", node_id=node.id, target_id=target.id)  # type: ignore[union-attr]
        self._notify(target)

    def invalidate_all(self) -> None:
        """Drop every cached list and notify listeners that the tree changed."""
        self._drop_all()
        logger.info("cache_cleared")
        self._notify(None)

    def _drop_all(self) -> None:
        self._lists.clear()
        self._inflight.clear()

    def _drop_subtree(self, slot: _Slot) -> None:
        self._inflight.pop(slot, None)
        for child in self._lists.pop(slot, []):
            child_slot = self._slot_for(child)
            if child_slot is not None:
                self._drop_subtree(child_slot)

    def _find_database(self, container: Container) -> Database | None:
        databases = self._lists.get((NodeKind.DATABASE, container.owner_account_id))
        for db in databases or []:
            if db.id == container.owner_database_id:
                return db  # type: ignore[return-value]
        return None
