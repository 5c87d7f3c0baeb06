"""ECC provisioning client library.

Architecture:
- client.py: HTTP client, payload encoding and status mapping
- models.py: Request shapes and their JSON field names
- context.py: Cancellation/deadline context for calls
- exceptions.py: Typed exceptions for error handling

Usage:
    from ecc_provisioning.core import EccClient, CallContext, RoleAssignment

    client = EccClient.create(None, "ecc-host", "300", "00", "JCOUSER", "secret")
    ctx = CallContext.with_timeout(30)
    client.assign_user_groups(ctx, "https://127.0.0.1", 9443, "JDOE",
                              [RoleAssignment("/IPRO/MANAGER", "01/01/2024", "12/31/9999")])
"""
from .client import (
    EccClient,
    build_transport,
    REQUEST_TIMEOUT,
    DEFAULT_HTTPS_PORT,
    DEFAULT_HTTP_PORT,
)
from .context import CallContext
from .exceptions import (
    EccError,
    RequestCanceled,
    EncodingError,
    TransportError,
    UnexpectedStatus,
)
from .models import (
    ServerIdentity,
    LockRequest,
    CreateUserRequest,
    RoleAssignment,
    AssignGroupsRequest,
)

__all__ = [
    # Client
    "EccClient",
    "build_transport",
    "REQUEST_TIMEOUT",
    "DEFAULT_HTTPS_PORT",
    "DEFAULT_HTTP_PORT",
    "CallContext",

    # Exceptions
    "EccError",
    "RequestCanceled",
    "EncodingError",
    "TransportError",
    "UnexpectedStatus",

    # Models
    "ServerIdentity",
    "LockRequest",
    "CreateUserRequest",
    "RoleAssignment",
    "AssignGroupsRequest",
]
