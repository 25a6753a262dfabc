"""Terminal UI utilities for Cosmos DB operations tooling."""

from __future__ import annotations

from typing import Any, Sequence

import questionary

from cosmosops.cli.common.output import out
from cosmosops.cli.common.presentation import describe
from cosmosops.core.resources import ResourceNode, is_sentinel

_MAX_NAME_WIDTH = 64

CLEAR_HERE = "__clear__"
GO_UP = "__up__"
REFRESH = "__refresh__"
QUIT = "__quit__"


def _truncate(text: str, max_len: int) -> str:
    """Return text capped at max_len characters using an ASCII ellipsis."""
    if max_len <= 3 or len(text) <= max_len:
        return text[:max_len]
    return f"{text[: max_len - 3]}..."


def _node_choice_title(node: ResourceNode, *, name_width: int) -> str:
    """Format one node choice as `<icon> <name>  <description>` with aligned columns."""
    view = describe(node)
    short_name = _truncate(view.label, _MAX_NAME_WIDTH)
    if not view.description:
        return f"{view.icon} {short_name}"
    return f"{view.icon} {short_name.ljust(name_width)}  {view.description}"


class QuestionaryPrompter:
    """Prompter backed by questionary, used by the confirmation gate."""

    async def prompt_text(self, message: str, expected: str) -> str | None:
        return await out.ask_text(message, expected)

    async def prompt_choice(self, message: str, options: Sequence[str]) -> str | None:
        return await out.ask_choice(message, options)


async def select_node(
    nodes: Sequence[ResourceNode],
    *,
    location: str,
    can_clear: bool,
    can_go_up: bool,
) -> Any:
    """Display a select prompt for the children of the current location.

    Args:
        nodes: Children of the current location (placeholders are shown disabled).
        location: Display path of the current location.
        can_clear: Offer a "clear" entry for the current location.
        can_go_up: Offer a ".." entry.

    Returns:
        The selected node, one of CLEAR_HERE / GO_UP / REFRESH / QUIT, or None if cancelled.
    """
    shown = [_truncate(describe(n).label, _MAX_NAME_WIDTH) for n in nodes]
    name_width = max((len(name) for name in shown), default=0)

    choices: list[Any] = []
    for node in nodes:
        title = _node_choice_title(node, name_width=name_width)
        if is_sentinel(node):
            choices.append(questionary.Choice(title=title, disabled=" "))
        else:
            choices.append(questionary.Choice(title=title, value=node))

    choices.append(questionary.Separator())
    if can_clear:
        choices.append(questionary.Choice(title=f"✗ Clear {location}", value=CLEAR_HERE))
    if can_go_up:
        choices.append(questionary.Choice(title="..", value=GO_UP))
    choices.append(questionary.Choice(title="↻ Refresh", value=REFRESH))
    choices.append(questionary.Choice(title="Quit", value=QUIT))

    return await out.ask_select(f"{location}:", choices)
