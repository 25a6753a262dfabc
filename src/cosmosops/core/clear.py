"""Cascading clear of data items below a selected resource.

A clear descends from the selected node to every container below it and
deletes every item in each. Children are resolved through the ResourceCache,
so lists that are not cached yet are fetched on the way down.

Sibling subtrees run concurrently. Deletes inside one container are drained
by at most ``max_parallel`` workers, and the number of in-flight remote calls
across the whole clear is bounded by the same limit. Every delete is awaited
before its container (and every container before the cascade) is reported
complete. Failures are recorded per item and never stop sibling deletes;
nothing is retried or rolled back.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from typing import Any, Awaitable, Iterable

import structlog

from cosmosops.core.cache import ResourceCache
from cosmosops.core.errors import MissingCredentialError
from cosmosops.core.gate import ConfirmationGate
from cosmosops.core.ports import ResourceFetchPort
from cosmosops.core.resources import (
    CHILD_KIND,
    Container,
    Entity,
    ItemId,
    NodeKind,
    ResourceNode,
    is_sentinel,
    real_nodes,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ItemDeleteResult:
    """Result for a single item delete."""

    container_id: str
    item_id: str
    deleted: bool
    error: str | None = None


@dataclass(frozen=True)
class ContainerClearResult:
    """Result of clearing one container. ``error`` is set if listing items failed."""

    container_id: str
    display_name: str
    items: tuple[ItemDeleteResult, ...] = ()
    error: str | None = None


@dataclass
class ClearReport:
    """Outcome of a cascading clear."""

    target_id: str
    dry_run: bool = False
    containers: list[ContainerClearResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def items(self) -> list[ItemDeleteResult]:
        return [item for c in self.containers for item in c.items]

    @property
    def deleted_count(self) -> int:
        return sum(1 for item in self.items if item.deleted)

    @property
    def failed_items(self) -> list[ItemDeleteResult]:
        return [item for item in self.items if item.error]

    @property
    def failed_containers(self) -> list[ContainerClearResult]:
        return [c for c in self.containers if c.error]

    @property
    def ok(self) -> bool:
        return not self.failed_items and not self.failed_containers


async def _gather_all(aws: Iterable[Awaitable[Any]]) -> list[Any]:
    """Await every awaitable, then re-raise the first exception, if any."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


class ClearEngine:
    """Deletes every data item in every container below a node."""

    _MAX_PARALLEL_ENV = "COSMOSOPS_MAX_PARALLEL"
    _DEFAULT_MAX_PARALLEL = 5

    def __init__(self, cache: ResourceCache, *, max_parallel: int | None = None):
        self.cache = cache
        self.max_parallel = (
            max_parallel if max_parallel is not None else self._max_parallel_from_env()
        )
        if self.max_parallel < 1:
            raise ValueError("max_parallel must be >= 1")

    def _max_parallel_from_env(self) -> int:
        """Return the parallelism limit, honoring env override."""
        raw = os.getenv(self._MAX_PARALLEL_ENV)
        if raw is None:
            return self._DEFAULT_MAX_PARALLEL
        try:
            return max(int(raw), 1)
        except ValueError:
            return self._DEFAULT_MAX_PARALLEL

    async def clear(self, node: ResourceNode, *, dry_run: bool = False) -> ClearReport:
        """
        Clear every container below (or at) node.

        Args:
            node: Subscription, account, database or container to clear.
            dry_run: Enumerate items that would be deleted without deleting.

        Returns:
            A ClearReport with one entry per container reached.
        """
        if is_sentinel(node):
            raise ValueError(f"Nodes of kind {node.kind.value} cannot be cleared.")

        report = ClearReport(target_id=node.id, dry_run=dry_run)  # type: ignore[union-attr]
        limiter = asyncio.Semaphore(self.max_parallel)
        await self._clear_node(node, report, limiter)  # type: ignore[arg-type]

        logger.info(
            "clear_finished",
            target_id=report.target_id,
            dry_run=dry_run,
            containers=len(report.containers),
            deleted=report.deleted_count,
            failed=len(report.failed_items),
            skipped=len(report.skipped),
        )
        return report

    async def _clear_node(
        self, node: Entity, report: ClearReport, limiter: asyncio.Semaphore
    ) -> None:
        if node.kind is NodeKind.CONTAINER:
            result = await self._clear_container(node, limiter, dry_run=report.dry_run)  # type: ignore[arg-type]
            report.containers.append(result)
            return

        # cached list first, fetch on a miss
        children: Any = self.cache.related(node.id, CHILD_KIND[node.kind])
        if children is None:
            children = await self.cache.children_of(node)
        if any(c.kind is NodeKind.INSUFFICIENT_PERMISSION for c in children):
            logger.warning("clear_branch_skipped", node_id=node.id)
            report.skipped.append(node.id)

        await _gather_all(
            self._clear_node(child, report, limiter) for child in real_nodes(children)
        )

    async def _clear_container(
        self,
        container: Container,
        limiter: asyncio.Semaphore,
        *,
        dry_run: bool,
    ) -> ContainerClearResult:
        port = self.cache.port
        try:
            async with limiter:
                item_ids = await port.list_item_ids(container)
        except MissingCredentialError:
            raise
        except Exception as exc:  # noqa: BLE001  reported per container
            logger.warning(
                "item_enumeration_failed", container_id=container.id, error=str(exc)
            )
            return ContainerClearResult(
                container_id=container.id,
                display_name=container.display_name,
                error=str(exc),
            )

        if dry_run:
            results = [
                ItemDeleteResult(container_id=container.id, item_id=i.id, deleted=False)
                for i in item_ids
            ]
        else:
            results = await self._delete_items(port, container, item_ids, limiter)

        logger.info(
            "container_cleared",
            container_id=container.id,
            items=len(item_ids),
            dry_run=dry_run,
        )
        return ContainerClearResult(
            container_id=container.id,
            display_name=container.display_name,
            items=tuple(results),
        )

    async def _delete_items(
        self,
        port: ResourceFetchPort,
        container: Container,
        item_ids: list[ItemId],
        limiter: asyncio.Semaphore,
    ) -> list[ItemDeleteResult]:
        """Delete items with at most ``max_parallel`` workers pulling from one iterator."""
        results: list[Any] = [None] * len(item_ids)
        pending = iter(enumerate(item_ids))

        async def _worker() -> None:
            for index, item in pending:
                results[index] = await self._delete_item(port, container, item, limiter)

        workers = min(self.max_parallel, len(item_ids))
        await _gather_all(_worker() for _ in range(workers))
        return results

    @staticmethod
    async def _delete_item(
        port: ResourceFetchPort,
        container: Container,
        item: ItemId,
        limiter: asyncio.Semaphore,
    ) -> ItemDeleteResult:
        try:
            async with limiter:
                await port.delete_item(container, item)
        except MissingCredentialError:
            raise
        except Exception as exc:  # noqa: BLE001  keep clearing siblings
            logger.warning(
                "item_delete_failed",
                container_id=container.id,
                item_id=item.id,
                error=str(exc),
            )
            return ItemDeleteResult(
                container_id=container.id, item_id=item.id, deleted=False, error=str(exc)
            )
        return ItemDeleteResult(container_id=container.id, item_id=item.id, deleted=True)


async def clear_selection(
    node: ResourceNode,
    *,
    gate: ConfirmationGate,
    engine: ClearEngine,
    dry_run: bool = False,
) -> ClearReport | None:
    """
    Confirm, clear, then invalidate the affected part of the cache.

    Returns:
        The ClearReport, or None if the confirmation was declined.
    """
    if not await gate.confirm(node):
        logger.info("clear_declined", node_id=getattr(node, "id", None))
        return None

    report = await engine.clear(node, dry_run=dry_run)
    if not dry_run:
        engine.cache.invalidate(node)
    return report
