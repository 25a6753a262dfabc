"""Authentication helpers for Azure.

This module centralizes creation of the async Azure token credential and
wraps it in a SessionContext. Interactive sign-in is left to the Azure CLI
(`az login`) or the standard AZURE_* environment variables.
"""

from __future__ import annotations

import os
from types import MappingProxyType
from typing import Any

import structlog
from azure.core.exceptions import ClientAuthenticationError
from azure.identity.aio import (
    AzureCliCredential,
    ChainedTokenCredential,
    DefaultAzureCredential,
    EnvironmentCredential,
)
from azure.mgmt.resource.subscriptions.aio import SubscriptionClient

from cosmosops.core.session import SessionContext

logger = structlog.get_logger(__name__)

_TENANT_ENV = "AZURE_TENANT_ID"


class AuthError(RuntimeError):
    """Raised when the Azure credential cannot be created."""


def _format_auth_error(message: str, tenant_id: str | None) -> str:
    """Return a user-friendly auth error message."""
    cmd = "az login"
    if tenant_id:
        cmd = f"{cmd} --tenant {tenant_id}"
    return (
        f"Azure authentication failed: {message}\n"
        f"Re-authenticate with:\n  $ {cmd}"
    )


def _sanitize_tenant(tenant_id: str | None) -> str | None:
    """Strip whitespace and treat an empty tenant as unset."""
    if tenant_id is None:
        return None
    return tenant_id.strip() or None


def get_credential(tenant_id: str | None = None):
    """
    Create and return an async Azure token credential.

    With a tenant, environment credentials are tried first and then the Azure
    CLI login for that tenant. Without one, DefaultAzureCredential is used.
    """
    tenant_id = _sanitize_tenant(tenant_id or os.getenv(_TENANT_ENV))
    try:
        if tenant_id:
            return ChainedTokenCredential(
                EnvironmentCredential(),
                AzureCliCredential(tenant_id=tenant_id),
            )
        return DefaultAzureCredential()
    except (ValueError, ClientAuthenticationError) as exc:
        raise AuthError(_format_auth_error(str(exc), tenant_id)) from exc


async def sign_in(tenant_id: str | None = None) -> SessionContext:
    """
    Return a new SessionContext with one credential per visible subscription.

    Subscriptions are listed with the root credential. Each one gets a
    credential scoped to its own tenant (shared between subscriptions of the
    same tenant), so guest-tenant subscriptions authenticate against the
    right directory.
    """
    tenant_id = _sanitize_tenant(tenant_id or os.getenv(_TENANT_ENV))
    credential = get_credential(tenant_id)
    by_tenant: dict[str, Any] = {}
    group_credentials: dict[str, Any] = {}
    try:
        async with SubscriptionClient(credential) as client:
            async for sub in client.subscriptions.list():
                sub_id = getattr(sub, "subscription_id", None)
                sub_tenant = _sanitize_tenant(getattr(sub, "tenant_id", None))
                if not sub_id:
                    continue
                if not sub_tenant or sub_tenant == tenant_id:
                    group_credentials[sub_id] = credential
                    continue
                if sub_tenant not in by_tenant:
                    by_tenant[sub_tenant] = get_credential(sub_tenant)
                group_credentials[sub_id] = by_tenant[sub_tenant]
    except ClientAuthenticationError as exc:
        for cred in (credential, *by_tenant.values()):
            await cred.close()
        raise AuthError(_format_auth_error(str(exc), tenant_id)) from exc

    logger.info(
        "signed_in",
        subscriptions=len(group_credentials),
        tenants=len(by_tenant),
    )
    return SessionContext(
        credential=credential,
        group_credentials=MappingProxyType(group_credentials),
    )
