"""Domain models for the Satis webhook receiver.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeAlias


class Provider(Enum):
    """Source-control host that sent a webhook delivery."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"
    GENERAL = "general"


class OutputStream(Enum):
    """Stream a chunk of build output was read from."""

    STDOUT = "stdout"
    STDERR = "stderr"


AuthorizedIps: TypeAlias = str | tuple[str, ...] | None


@dataclass(frozen=True)
class RebuildConfig:
    """Configuration for one webhook request.

    Built from the config.yml mapping merged over these defaults and
    passed explicitly through every pipeline stage.
    """

    bin: str = "bin/satis"
    json: str = "satis.json"
    webroot: str = "web/"
    user: str | None = None
    secret: str | None = None
    authorized_ips: AuthorizedIps = None
    timeout: float | None = 600.0
    gitlab_url: str = "https://gitlab.com"

    def __post_init__(self) -> None:
        """Normalize list-valued allow-lists to tuples."""
        if isinstance(self.authorized_ips, list):
            object.__setattr__(self, "authorized_ips", tuple(self.authorized_ips))
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")


class WebhookRequest:
    """An inbound webhook delivery as seen by the core.

    Headers are looked up case-insensitively. The body is read lazily
    through ``body_reader`` so nothing touches it until a provider needs
    the raw bytes, and it is read at most once.
    """

    def __init__(
        self,
        client_ip: str,
        headers: Mapping[str, str],
        body_reader: Callable[[], bytes] | None = None,
    ):
        self.client_ip = client_ip
        self.headers = headers
        self._body_reader = body_reader
        self._body: bytes | None = None

    def header(self, name: str) -> str | None:
        """Return the value of a header, ignoring case, or None."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def body_read(self) -> bool:
        """True once the body has been read."""
        return self._body is not None

    def body(self) -> bytes:
        """Return the raw, byte-exact request body."""
        if self._body is None:
            self._body = self._body_reader() if self._body_reader else b""
        return self._body


@dataclass(frozen=True)
class WebhookEvent:
    """A delivery classified by provider, with the URLs it names.

    ``clone_url`` and ``ssh_url`` are only populated for github, gitlab
    and bitbucket deliveries after a successful parse.
    """

    provider: Provider
    raw_body: bytes = b""
    signature_header: str | None = None
    clone_url: str | None = None
    ssh_url: str | None = None


@dataclass(frozen=True)
class Authenticated:
    """Authentication succeeded; carries the parsed event."""

    event: WebhookEvent


@dataclass(frozen=True)
class AuthenticationRejected:
    """Authentication failed; carries the message shown to the caller."""

    provider: Provider
    message: str = "Hook secret does not match."


AuthResult: TypeAlias = Authenticated | AuthenticationRejected


@dataclass(frozen=True)
class Repository:
    """A repository tracked by the build tool."""

    url: str
    type: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate repository invariants on creation."""
        if not self.url or not self.url.strip():
            raise ValueError("url must be a non-empty string")


@dataclass(frozen=True)
class RepositoryCatalog:
    """Read-only snapshot of the build tool's repository list, in file order."""

    repositories: tuple[Repository, ...] = ()

    def __iter__(self):
        return iter(self.repositories)

    def __len__(self) -> int:
        return len(self.repositories)


@dataclass(frozen=True)
class BuildCommand:
    """Argument vector for one build invocation.

    ``inner`` is the build tool invocation itself; ``run_as`` names the OS
    user to switch to before running it.
    """

    inner: tuple[str, ...]
    run_as: str | None = None

    def __post_init__(self) -> None:
        """Validate command invariants on creation."""
        if not self.inner:
            raise ValueError("inner command must not be empty")

    @property
    def argv(self) -> tuple[str, ...]:
        """Final argument vector, wrapped in sudo when a user is set."""
        if self.run_as:
            return ("sudo", "-u", self.run_as, "-i", *self.inner)
        return self.inner


@dataclass(frozen=True)
class RebuildPlan:
    """Everything needed to run one build, decided before it starts."""

    provider: Provider
    command: BuildCommand
    repository_url: str | None = None
    timeout: float | None = None

    @property
    def scoped(self) -> bool:
        """True when the build is limited to a single repository."""
        return self.repository_url is not None


@dataclass(frozen=True)
class BuildResult:
    """Outcome of a build process."""

    exit_code: int
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        """True iff the process exited with code 0."""
        return self.exit_code == 0
