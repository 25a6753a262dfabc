"""Output formatting utilities for the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

import questionary
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme
from rich.tree import Tree

from cosmosops.cli.common.presentation import describe, kind_title
from cosmosops.cli.common.tui_style import (
    QUESTIONARY_STYLE_CONFIRM,
    QUESTIONARY_STYLE_SELECT,
)

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages, prompts, trees and tables."""

    def _q_try(self, fn, *args, **kwargs):
        """Call questionary prompts and drop unsupported kwargs on older versions."""
        try:
            return fn(*args, **kwargs)
        except TypeError:
            for k in ("pointer", "auto_enter"):
                kwargs.pop(k, None)
            return fn(*args, **kwargs)

    def _q(self, message: str) -> str:
        """Prefix Questionary prompts to be cosmosops consistent."""
        return f"[COSMOSOPS] {message}"

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    async def ask_text(self, message: str, placeholder: str) -> str | None:
        """
        Prompt for free text (used by type-to-confirm challenges).

        Returns:
            The entered text exactly as typed, or None if cancelled.
        """
        console.print(f"[meta]Type [bold]{escape(placeholder)}[/bold] then Enter[/]")
        prompt = questionary.text(
            self._q(message),
            style=QUESTIONARY_STYLE_CONFIRM,
            qmark="✦",
        )
        return await prompt.ask_async()

    async def ask_choice(self, message: str, choices: Sequence[str]) -> str | None:
        """
        Prompt the user to pick one option (radio list).

        Returns:
            The selected value, or None if cancelled.
        """
        if not choices:
            return None

        prompt = self._q_try(
            questionary.select,
            self._q(message),
            choices=list(choices),
            style=QUESTIONARY_STYLE_CONFIRM,
            qmark="✦",
            instruction="Use ↑/↓ then Enter",
            pointer="❯",
        )
        return await prompt.ask_async()

    async def ask_select(self, message: str, choices: list[Any]) -> Any:
        """Prompt for one of several questionary choices (navigation)."""
        prompt = self._q_try(
            questionary.select,
            self._q(message),
            choices=choices,
            style=QUESTIONARY_STYLE_SELECT,
            qmark="✦",
            instruction="Use ↑/↓ then Enter",
            pointer="❯",
        )
        return await prompt.ask_async()

    def resource_tree(self, entries: Iterable[Any], title: str = "Azure") -> None:
        """
        Render nested TreeEntry objects (see cosmosops.core.navigation).

        Expects objects with `.node` and `.children`.
        """
        root = Tree(f"[title]{escape(title)}[/]")

        def _add(branch: Tree, items: Iterable[Any]) -> None:
            for entry in items:
                view = describe(entry.node)
                text = f"{view.icon} [{view.style}]{escape(view.label)}[/]"
                if view.description:
                    text += f" [meta]{escape(view.description)}[/]"
                _add(branch.add(text), entry.children)

        _add(root, entries)
        console.print(root)

    def nodes_table(self, nodes: Iterable[Any], title: str = "Resources") -> None:
        """Render a table of resource nodes (placeholders shown as a single row)."""
        t = Table(title=title, show_lines=False)
        t.add_column("Name", style="ok")
        t.add_column("Type", style="meta")
        t.add_column("State", style="meta")

        for node in nodes:
            view = describe(node)
            t.add_row(
                f"[{view.style}]{escape(view.label)}[/]",
                kind_title(node),
                view.description,
            )

        console.print(t)

    def clear_results_table(self, report: Any, title: str = "Clear results") -> None:
        """
        Render a per-container summary of a ClearReport.

        Expects `.containers` entries with `.display_name`, `.items`, `.error`.
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Container", style="ok")
        t.add_column("Items", justify="right")
        t.add_column("Deleted", justify="right")
        t.add_column("Failed", justify="right")
        t.add_column("Error", style="err")

        for c in report.containers:
            deleted = sum(1 for i in c.items if i.deleted)
            failed = [i for i in c.items if i.error]
            error = c.error or (failed[0].error if failed else "")
            t.add_row(
                escape(c.display_name),
                str(len(c.items)),
                str(deleted),
                f"[err]{len(failed)}[/]" if failed else "0",
                escape(str(error or "")),
            )

        console.print(t)


out = Out()
