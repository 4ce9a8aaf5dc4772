"""Error taxonomy shared by the parser, mutation primitives, merger and phases"""


class MigrationError(Exception):
    """Base class for all migration errors."""


class NotFoundError(MigrationError):
    """A required path or document is missing; fatal to the current phase."""

    def __init__(self, path, message: str = None):
        self.path = path
        super().__init__(message or f"Not found: {path}")


class SourceNotFoundError(NotFoundError):
    """A copy source does not exist."""


class ParseError(MigrationError):
    """Malformed input prevents structural extraction."""


class MutationWarning(MigrationError):
    """A primitive could not find its anchor or source; the phase continues."""


class PrerequisiteError(MigrationError):
    """A phase entry precondition does not hold."""


class ValidationFailure(MigrationError):
    """One or more expected post-conditions are absent."""

    def __init__(self, result, message: str = None):
        self.result = result
        super().__init__(message or f"{len(result.failed)} validation check(s) failed")
