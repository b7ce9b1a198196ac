"""Provider detection and payload authentication.

Detection is a priority list over request headers; the first match wins.
Authentication always runs against the raw request body, never a
re-serialized form, and fails closed.

Header reference:
- GitHub: X-GitHub-Event, X-Hub-Signature-256 / X-Hub-Signature
- GitLab: X-Gitlab-Event, X-Gitlab-Token
- Bitbucket: User-Agent "Bitbucket-Webhooks/...", X-Event-Key + X-Hook-UUID
"""

import hashlib
import hmac
import json
import logging
from typing import Any
from urllib.parse import urlparse

from .errors import InvalidPayload
from .models import (
    Authenticated,
    AuthenticationRejected,
    AuthResult,
    Provider,
    RebuildConfig,
    WebhookEvent,
    WebhookRequest,
)

logger = logging.getLogger(__name__)

GITHUB_EVENT_HEADER = "X-GitHub-Event"
GITHUB_SIGNATURE_HEADERS = ("X-Hub-Signature-256", "X-Hub-Signature")
GITLAB_EVENT_HEADER = "X-Gitlab-Event"
GITLAB_TOKEN_HEADER = "X-Gitlab-Token"
BITBUCKET_USER_AGENT_PREFIX = "bitbucket-webhooks/"
BITBUCKET_EVENT_HEADER = "X-Event-Key"
BITBUCKET_HOOK_HEADERS = ("X-Hook-UUID", "X-Request-UUID")


def detect_provider(request: WebhookRequest) -> Provider:
    """Classify the sender of a delivery from its headers."""
    if request.header(GITHUB_EVENT_HEADER) is not None:
        return Provider.GITHUB

    if request.header(GITLAB_EVENT_HEADER) is not None:
        return Provider.GITLAB

    user_agent = request.header("User-Agent") or ""
    if user_agent.lower().startswith(BITBUCKET_USER_AGENT_PREFIX):
        return Provider.BITBUCKET
    if request.header(BITBUCKET_EVENT_HEADER) is not None and any(
        request.header(name) is not None for name in BITBUCKET_HOOK_HEADERS
    ):
        return Provider.BITBUCKET

    return Provider.GENERAL


def verify_signature(signature_header: str | None, body: bytes, secret: str | None) -> bool:
    """Validate an ``<algorithm>=<hexdigest>`` HMAC header against the raw body.

    Any hashlib algorithm name is accepted. A missing header or secret,
    a malformed header, or an unknown algorithm never verifies.
    """
    if not signature_header or not secret:
        return False

    algorithm, separator, provided = signature_header.partition("=")
    if not separator or not algorithm or not provided:
        return False

    try:
        expected = hmac.new(secret.encode("utf-8"), body, algorithm.strip().lower()).hexdigest()
    except (ValueError, TypeError):
        logger.warning(f"Unsupported signature algorithm: {algorithm!r}")
        return False

    return hmac.compare_digest(expected.encode("ascii"), provided.encode("utf-8"))


def verify_token(provided: str | None, secret: str | None) -> bool:
    """Exact, constant-time comparison of a shared token."""
    if provided is None or secret is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), secret.encode("utf-8"))


def parse_payload(body: bytes) -> dict[str, Any]:
    """Decode a JSON object payload.

    Raises:
        InvalidPayload: If the body is not a UTF-8 JSON object.
    """
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidPayload(str(e)) from e

    if not isinstance(data, dict):
        raise InvalidPayload(f"expected a JSON object, got {type(data).__name__}")
    return data


def _lookup(data: dict[str, Any], *path: str) -> Any:
    """Walk nested objects, returning None if any step is missing."""
    current: Any = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _string(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def extract_github_urls(data: dict[str, Any]) -> tuple[str | None, str | None]:
    """Return (clone_url, ssh_url) from a GitHub payload."""
    return (
        _string(_lookup(data, "repository", "clone_url")),
        _string(_lookup(data, "repository", "ssh_url")),
    )


def extract_project_urls(data: dict[str, Any]) -> tuple[str | None, str | None]:
    """Return (http_url, ssh_url) from a payload carrying a ``project`` object."""
    clone_url = _string(_lookup(data, "project", "http_url")) or _string(
        _lookup(data, "project", "git_http_url")
    )
    ssh_url = _string(_lookup(data, "project", "ssh_url")) or _string(
        _lookup(data, "project", "git_ssh_url")
    )
    return clone_url, ssh_url


def extract_gitlab_urls(
    data: dict[str, Any], gitlab_url: str = "https://gitlab.com"
) -> tuple[str | None, str | None]:
    """Return (clone_url, ssh_url) from a GitLab payload.

    Payloads with a ``project`` object carrying URLs use those directly.
    Otherwise, when ``repository.full_name`` is present, both URLs are
    built from it against ``gitlab_url``.
    """
    clone_url, ssh_url = extract_project_urls(data)
    if clone_url or ssh_url:
        return clone_url, ssh_url

    full_name = _string(_lookup(data, "repository", "full_name"))
    if full_name is None:
        return None, None

    full_name = full_name.strip("/")
    base = gitlab_url.rstrip("/")
    host = urlparse(base).hostname or base
    return f"{base}/{full_name}.git", f"git@{host}:{full_name}.git"


def authenticate(
    provider: Provider, request: WebhookRequest, config: RebuildConfig
) -> AuthResult:
    """Verify a delivery for its provider and extract repository URLs.

    Returns:
        Authenticated with the parsed WebhookEvent, or AuthenticationRejected.

    Raises:
        InvalidPayload: If an authenticated payload is not a JSON object.
    """
    if provider is Provider.GENERAL:
        return Authenticated(WebhookEvent(provider=provider))

    body = request.body()

    if provider is Provider.GITHUB:
        signature = _first_header(request, GITHUB_SIGNATURE_HEADERS)
        if not verify_signature(signature, body, config.secret):
            return AuthenticationRejected(provider)
        clone_url, ssh_url = extract_github_urls(parse_payload(body))

    elif provider is Provider.GITLAB:
        signature = request.header(GITLAB_TOKEN_HEADER)
        if not verify_token(signature, config.secret):
            return AuthenticationRejected(provider)
        clone_url, ssh_url = extract_gitlab_urls(parse_payload(body), config.gitlab_url)

    else:
        # Bitbucket signs only when a secret is set on the hook
        signature = request.header("X-Hub-Signature")
        if config.secret and signature is not None:
            if not verify_signature(signature, body, config.secret):
                return AuthenticationRejected(provider)
        clone_url, ssh_url = extract_project_urls(parse_payload(body))

    return Authenticated(
        WebhookEvent(
            provider=provider,
            raw_body=body,
            signature_header=signature,
            clone_url=clone_url,
            ssh_url=ssh_url,
        )
    )


def _first_header(request: WebhookRequest, names: tuple[str, ...]) -> str | None:
    for name in names:
        value = request.header(name)
        if value is not None:
            return value
    return None
