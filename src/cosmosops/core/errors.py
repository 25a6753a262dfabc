"""Error types raised by the cosmosops core."""


class CosmosOpsError(RuntimeError):
    """Base class for cosmosops errors."""


class MissingCredentialError(CosmosOpsError):
    """
    Raised when a node exists but no credential can be resolved for it.

    This signals a session/cache desync (for example a lookup after sign-out),
    never a remote-side condition, so it is not folded into a placeholder node.
    """


class PathNotFoundError(CosmosOpsError):
    """Raised when a display-name path does not resolve to a resource."""
