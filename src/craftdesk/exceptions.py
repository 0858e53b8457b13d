"""
Exceptions for CraftDesk.

Defines the error taxonomy shared by resolution, installation and the lockfile.
"""

from enum import Enum


class FailureType(Enum):
    """Classification of failures for batch abort decisions."""

    CONFIGURATION = "configuration"
    NETWORK = "network"
    INTEGRITY = "integrity"
    EXTRACTION = "extraction"
    REGISTRATION = "registration"
    NOT_FOUND = "not_found"
    LOCKFILE = "lockfile"
    DEPENDENCY_IN_USE = "dependency_in_use"
    UNKNOWN = "unknown"


class CraftDeskError(Exception):
    """Base exception for CraftDesk errors."""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} {self.hint}"
        return self.message


class ConfigurationError(CraftDeskError):
    """Invalid configuration or dependency specification."""

    pass


class NetworkError(CraftDeskError):
    """Remote unreachable, request failed, or timed out."""

    pass


class IntegrityError(CraftDeskError):
    """Downloaded artifact does not match its recorded checksum."""

    def __init__(
        self,
        message: str,
        hint: str | None = None,
        expected: str | None = None,
        actual: str | None = None,
    ):
        super().__init__(message, hint)
        self.expected = expected
        self.actual = actual


class ExtractionError(CraftDeskError):
    """Archive is corrupt or cannot be unpacked."""

    pass


class RegistrationError(CraftDeskError):
    """Writing plugin or MCP server settings failed."""

    pass


class NotFoundError(CraftDeskError):
    """Tag, branch, craft, or file could not be found."""

    pass


class LockfileError(CraftDeskError):
    """Lockfile could not be parsed or has an invalid shape."""

    pass


class DependencyInUseError(CraftDeskError):
    """A craft cannot be removed because other crafts depend on it."""

    def __init__(self, name: str, dependents: list[str]):
        self.name = name
        self.dependents = dependents
        super().__init__(
            f"{name} is required by: {', '.join(dependents)}",
            hint="Use force to remove anyway.",
        )


def classify_error(error: Exception) -> FailureType:
    """
    Classify an exception into a failure type.

    Args:
        error: The exception to classify.

    Returns:
        The failure type classification.
    """
    if isinstance(error, ConfigurationError):
        return FailureType.CONFIGURATION
    elif isinstance(error, NetworkError):
        return FailureType.NETWORK
    elif isinstance(error, IntegrityError):
        return FailureType.INTEGRITY
    elif isinstance(error, ExtractionError):
        return FailureType.EXTRACTION
    elif isinstance(error, RegistrationError):
        return FailureType.REGISTRATION
    elif isinstance(error, NotFoundError):
        return FailureType.NOT_FOUND
    elif isinstance(error, LockfileError):
        return FailureType.LOCKFILE
    elif isinstance(error, DependencyInUseError):
        return FailureType.DEPENDENCY_IN_USE

    return FailureType.UNKNOWN


def is_fatal(failure_type: FailureType) -> bool:
    """
    Determine if a failure type aborts the current operation.

    Args:
        failure_type: The classified failure type.

    Returns:
        True if the failure must abort, False if it is downgraded to a warning.
    """
    # Settings writes never undo an installed craft
    return failure_type is not FailureType.REGISTRATION
