"""Core domain logic for the Satis webhook receiver.

This package contains zero external dependencies and represents
the pure business logic of the application. All adapters and
external integrations are handled by the adapters package.
"""

from .models import (
    Authenticated,
    AuthenticationRejected,
    BuildCommand,
    BuildResult,
    OutputStream,
    Provider,
    RebuildConfig,
    RebuildPlan,
    Repository,
    RepositoryCatalog,
    WebhookEvent,
    WebhookRequest,
)

__all__ = [
    "Authenticated",
    "AuthenticationRejected",
    "BuildCommand",
    "BuildResult",
    "OutputStream",
    "Provider",
    "RebuildConfig",
    "RebuildPlan",
    "Repository",
    "RepositoryCatalog",
    "WebhookEvent",
    "WebhookRequest",
]
