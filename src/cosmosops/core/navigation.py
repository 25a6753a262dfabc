"""Path resolution and tree expansion on top of the ResourceCache."""

from __future__ import annotations

from dataclasses import dataclass, field

from cosmosops.core.cache import ResourceCache
from cosmosops.core.errors import PathNotFoundError
from cosmosops.core.resources import Entity, ResourceNode, is_sentinel

MAX_DEPTH = 4


@dataclass(frozen=True)
class TreeEntry:
    """A node together with its expanded children (empty when not expanded)."""

    node: ResourceNode
    children: tuple["TreeEntry", ...] = field(default=())


def split_path(path: str | None) -> list[str]:
    """Split `subscription/account/database/container` into display names."""
    if not path or not path.strip("/"):
        return []
    segments = path.strip("/").split("/")
    if len(segments) > MAX_DEPTH:
        raise ValueError(
            "Path must be in the form `subscription[/account[/database[/container]]]`."
        )
    if any(not s for s in segments):
        raise ValueError("Path contains an empty segment.")
    return segments


async def resolve_path(cache: ResourceCache, path: str | None) -> Entity | None:
    """
    Resolve a display-name path to a node, expanding the cache on the way.

    Returns:
        The addressed node, or None for the root (empty path).

    Raises:
        ValueError: the path is malformed.
        PathNotFoundError: a segment matches no child by exact display name.
    """
    segments = split_path(path)
    node: Entity | None = None
    for depth, segment in enumerate(segments):
        children = await cache.children_of(node)
        match = next(
            (
                c
                for c in children
                if not is_sentinel(c) and c.display_name == segment  # type: ignore[union-attr]
            ),
            None,
        )
        if match is None:
            where = "/".join(segments[:depth]) or "<root>"
            raise PathNotFoundError(f"'{segment}' not found under '{where}'.")
        node = match  # type: ignore[assignment]
    return node


async def expand(
    cache: ResourceCache, parent: Entity | None, depth: int
) -> tuple[TreeEntry, ...]:
    """Return the children of parent expanded ``depth`` levels down."""
    if depth < 1:
        return ()
    entries = []
    for child in await cache.children_of(parent):
        grandchildren: tuple[TreeEntry, ...] = ()
        if not is_sentinel(child):
            grandchildren = await expand(cache, child, depth - 1)  # type: ignore[arg-type]
        entries.append(TreeEntry(node=child, children=grandchildren))
    return tuple(entries)
