"""Session context holding the credentials of the signed-in identity."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from cosmosops.core.errors import MissingCredentialError

NOT_SIGNED_IN_MESSAGE = "Azure credentials not found. Please log in to Azure."


@dataclass(frozen=True)
class SessionContext:
    """
    Immutable credential set for one sign-in.

    A new SessionContext is built on every sign-in and replaced by
    ``SessionContext.signed_out()`` on sign-out; instances are never mutated.

    Attributes:
        credential: Default async token credential, or None when signed out.
        group_credentials: Per-subscription credentials filled at sign-in,
            scoped to each subscription's tenant. They take precedence over
            ``credential``.
    """

    credential: Any = None
    group_credentials: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def signed_out(cls) -> "SessionContext":
        """Return an empty session."""
        return cls()

    @property
    def is_signed_in(self) -> bool:
        """True if any credential is available."""
        return self.credential is not None or bool(self.group_credentials)

    def credentials(self) -> list[Any]:
        """Return every distinct credential of the session."""
        out: list[Any] = []
        for cred in (self.credential, *self.group_credentials.values()):
            if cred is not None and all(cred is not c for c in out):
                out.append(cred)
        return out

    def root_credential(self) -> Any:
        """Return the credential used to list subscriptions."""
        if self.credential is None:
            raise MissingCredentialError(NOT_SIGNED_IN_MESSAGE)
        return self.credential

    def credential_for(self, group_id: str) -> Any:
        """Return the credential for a subscription id."""
        cred = self.group_credentials.get(group_id, self.credential)
        if cred is None:
            raise MissingCredentialError(
                f"No credential for subscription '{group_id}'. {NOT_SIGNED_IN_MESSAGE}"
            )
        return cred
