class AppError(Exception):
    """Base class for every application-defined error."""
    pass

class ConfigurationError(AppError):
    """Missing or invalid configuration (e.g. env vars not set)."""
    pass

class Unauthorized(AppError):
    """The caller could not be identified from the access token."""
    pass

class SourceUnavailable(AppError):
    """Telegram could not be reached or answered with ok=false."""
    pass

class PersistenceFailure(AppError):
    """Writing to or reading from the trades table failed."""
    pass
