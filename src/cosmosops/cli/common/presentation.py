"""Presentation metadata (label, icon, tooltip) derived from resource nodes."""

from __future__ import annotations

from dataclasses import dataclass

from cosmosops.core.resources import NodeKind, ResourceNode

NO_RESOURCES_LABEL = "No resources found"
INSUFFICIENT_PERMISSION_LABEL = "Insufficient Permission"
EMPTY_MARKER = "(Empty)"

_KIND_TITLES = {
    NodeKind.ACCOUNT_GROUP: "Azure Subscription",
    NodeKind.DATA_ACCOUNT: "Cosmos DB Account",
    NodeKind.DATABASE: "Cosmos DB Database",
    NodeKind.CONTAINER: "Cosmos DB Container",
}

_ICONS = {
    NodeKind.ACCOUNT_GROUP: "🔑",
    NodeKind.DATA_ACCOUNT: "🌐",
    NodeKind.DATABASE: "🗄",
    NodeKind.CONTAINER: "📦",
    NodeKind.NO_RESOURCES_FOUND: "⚠",
    NodeKind.INSUFFICIENT_PERMISSION: "⚠",
}


@dataclass(frozen=True)
class NodeView:
    """How one node is shown in the terminal."""

    label: str
    icon: str
    tooltip: str
    style: str
    description: str = ""


def describe(node: ResourceNode) -> NodeView:
    """Return the view of a node."""
    icon = _ICONS[node.kind]
    if node.kind is NodeKind.NO_RESOURCES_FOUND:
        return NodeView(NO_RESOURCES_LABEL, icon, NO_RESOURCES_LABEL, "warn")
    if node.kind is NodeKind.INSUFFICIENT_PERMISSION:
        return NodeView(
            INSUFFICIENT_PERMISSION_LABEL, icon, INSUFFICIENT_PERMISSION_LABEL, "warn"
        )

    label = node.display_name  # type: ignore[union-attr]
    tooltip = f"{_KIND_TITLES[node.kind]}: {label}"
    if node.kind is NodeKind.CONTAINER and node.is_empty:  # type: ignore[union-attr]
        return NodeView(label, "📭", f"{tooltip} {EMPTY_MARKER}", "meta", EMPTY_MARKER)
    return NodeView(label, icon, tooltip, "ok")


def kind_title(node: ResourceNode) -> str:
    """Human-readable level name (empty for placeholders)."""
    return _KIND_TITLES.get(node.kind, "")
