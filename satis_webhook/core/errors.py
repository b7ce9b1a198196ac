"""Exceptions for the Satis webhook receiver.

Every failure is terminal for the current request. Each exception carries
the HTTP status and the message returned to the caller.
"""

PRECONDITION_EXIT_CODE = -1


class SatisWebhookError(Exception):
    """Base exception for webhook errors."""

    status_code = 500

    def __init__(self, message: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationMissing(SatisWebhookError):
    """Raised when the config.yml file does not exist."""

    def __init__(self, config_file: str, message: str | None = None) -> None:
        super().__init__(
            message
            or (
                "Please, define your satis configuration in a config.yml file.\n"
                "You can use the config.yml.dist as a template."
            )
        )
        self.config_file = config_file


class ConfigurationInvalid(SatisWebhookError):
    """Raised when config.yml cannot be parsed or fails validation."""

    def __init__(self, config_file: str, reason: str) -> None:
        super().__init__(f"The configuration in {config_file} is invalid: {reason}")
        self.config_file = config_file
        self.reason = reason


class PreconditionFailed(SatisWebhookError):
    """Raised when one or more configured paths do not exist.

    All failing checks are collected before this is raised.
    """

    exit_code = PRECONDITION_EXIT_CODE

    def __init__(self, errors: list[str]) -> None:
        self.errors = tuple(errors)
        lines = [
            "The build cannot be run due to some errors. "
            "Please, review them and check your config.yml:"
        ]
        lines.extend(f"- {error}" for error in self.errors)
        super().__init__("\n".join(lines) + "\n")


class AccessDenied(SatisWebhookError):
    """Raised when the caller IP is not in the allow-list."""

    status_code = 403

    def __init__(self, client_ip: str) -> None:
        super().__init__("")
        self.client_ip = client_ip


class AuthenticationFailed(SatisWebhookError):
    """Raised when a signature or token does not match the secret."""

    status_code = 403

    def __init__(self, provider: str, message: str = "Hook secret does not match.") -> None:
        super().__init__(message)
        self.provider = provider


class InvalidPayload(SatisWebhookError):
    """Raised when a provider's payload is not a JSON object."""

    status_code = 400

    def __init__(self, reason: str) -> None:
        super().__init__("Invalid JSON payload.")
        self.reason = reason


class InvalidContentLength(SatisWebhookError):
    """Raised when the Content-Length header is not a non-negative integer."""

    status_code = 400

    def __init__(self, value: str) -> None:
        super().__init__("Invalid Content-Length header.")
        self.value = value


class PayloadTooLarge(SatisWebhookError):
    """Raised when the request body exceeds the accepted size."""

    status_code = 413

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Request body too large ({size} > {limit} bytes).")
        self.size = size
        self.limit = limit


class RepositoryCatalogInvalid(SatisWebhookError):
    """Raised when the build tool's repository list cannot be read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"The repository list {path} could not be read: {reason}")
        self.path = path
        self.reason = reason

