"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for importer failures."""

    error_code = "PIPELINE_ERROR"


class UsageError(PipelineError):
    """Raised for an invalid command-line invocation."""

    error_code = "USAGE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class SourceIOError(PipelineError):
    """Raised when a source file, the temp directory or a fragment cannot be read or written."""

    error_code = "IO_ERROR"


class FormatError(PipelineError):
    """Raised when record boundaries in a source file are broken."""

    error_code = "FORMAT_ERROR"


class ParseError(PipelineError):
    """Raised when a chunk fragment is not well-formed markup."""

    error_code = "PARSE_ERROR"


class ValidationError(PipelineError):
    """Raised when a single record carries unusable coordinates."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, reason: str = "INVALID_POSITION") -> None:
        super().__init__(message)
        self.reason = reason


class InsertError(PipelineError):
    """Raised when a bulk insert for one batch fails."""

    error_code = "INSERT_ERROR"


class CleanupError(PipelineError):
    """Raised when temporary artifacts cannot be removed."""

    error_code = "CLEANUP_ERROR"
