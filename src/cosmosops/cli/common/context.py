"""Application context management for the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial

from cosmosops.core.adapters.cosmos import AzureCosmosAdapter
from cosmosops.core.auth import sign_in
from cosmosops.core.cache import ResourceCache
from cosmosops.core.session import SessionContext


@dataclass
class CosmosAppContext:
    """Application context holding the tenant and the resource cache."""

    tenant: str | None
    cache: ResourceCache

    @property
    def session(self) -> SessionContext:
        return self.cache.session

    async def sign_in(self) -> None:
        """Sign in and swap the new session into the cache."""
        await self.cache.replace_session(await sign_in(self.tenant))

    async def aclose(self) -> None:
        """Close the adapter's clients and every credential of the session."""
        await self.cache.aclose()
        for credential in self.session.credentials():
            await credential.close()


def build_cosmos_context(tenant: str | None, kind: str | None = None) -> CosmosAppContext:
    """Build and return the application context for Cosmos DB commands.

    The cache starts signed out; commands sign in on their event loop.

    Args:
        tenant: Optional Azure tenant id used for authentication.
        kind: Optional account kind filter overriding the default.

    Returns:
        CosmosAppContext: Application context with an empty cache.
    """
    cache = ResourceCache(partial(AzureCosmosAdapter, account_kind=kind))
    return CosmosAppContext(tenant=tenant, cache=cache)
