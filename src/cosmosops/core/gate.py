"""Confirmation challenges that precede a clear.

Subscriptions, accounts and databases require the user to type the
resource's display name. Containers only need an explicit "Yes".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, Union

from cosmosops.core.resources import NodeKind, ResourceNode

SUBSCRIPTION_CHECK_MESSAGE = (
    "Please type the subscription name to confirm clearing the subscription"
)
ACCOUNT_CHECK_MESSAGE = "Please type the account name to confirm clearing the account"
DATABASE_CHECK_MESSAGE = (
    "Please type the database name to confirm clearing the database"
)
CONTAINER_CHECK_MESSAGE = "Are you sure you want to clear the container"
YES = "Yes"
NO = "No"

_CHECK_MESSAGES = {
    NodeKind.ACCOUNT_GROUP: SUBSCRIPTION_CHECK_MESSAGE,
    NodeKind.DATA_ACCOUNT: ACCOUNT_CHECK_MESSAGE,
    NodeKind.DATABASE: DATABASE_CHECK_MESSAGE,
}


@dataclass(frozen=True)
class TypeToConfirm:
    """Passes iff the entered text equals ``expected`` exactly."""

    message: str
    expected: str


@dataclass(frozen=True)
class AcceptOrReject:
    """Passes iff the affirmative option is chosen."""

    message: str
    options: tuple[str, ...] = (YES, NO)
    affirmative: str = YES


Challenge = Union[TypeToConfirm, AcceptOrReject]


class Prompter(Protocol):
    """Interactive prompts supplied by the host (CLI, tests)."""

    async def prompt_text(self, message: str, expected: str) -> str | None:
        """Ask for free text; None when cancelled."""
        ...

    async def prompt_choice(self, message: str, options: Sequence[str]) -> str | None:
        """Ask to pick one option; None when cancelled."""
        ...


class ConfirmationGate:
    """Runs the level-appropriate challenge for a node."""

    def __init__(self, prompter: Prompter) -> None:
        self.prompter = prompter

    @staticmethod
    def challenge_for(node: ResourceNode) -> Challenge:
        """Return the challenge for node. Placeholders cannot be cleared."""
        if node.kind is NodeKind.CONTAINER:
            return AcceptOrReject(
                message=f"{CONTAINER_CHECK_MESSAGE} {node.display_name}?"
            )
        check = _CHECK_MESSAGES.get(node.kind)
        if check is None:
            raise ValueError(f"Nodes of kind {node.kind.value} cannot be cleared.")
        return TypeToConfirm(
            message=f"{check} {node.display_name}",  # type: ignore[union-attr]
            expected=node.display_name,  # type: ignore[union-attr]
        )

    async def confirm(self, node: ResourceNode) -> bool:
        """
        Run the challenge for node.

        Returns:
            True if the user passed the challenge. Cancelled or mismatching
            input returns False without raising.
        """
        challenge = self.challenge_for(node)
        if isinstance(challenge, TypeToConfirm):
            text = await self.prompter.prompt_text(challenge.message, challenge.expected)
            return text == challenge.expected

        answer = await self.prompter.prompt_choice(challenge.message, challenge.options)
        return answer == challenge.affirmative
