"""Exception taxonomy for command execution.

Every error carries the correlation id of the call that raised it, so a caller
holding only the exception can still find the matching audit record. str(error)
is the caller-visible (possibly sanitized) message; .detail keeps the unsanitized
wording for the audit trail.

A timeout is NOT an error (it is encoded in the result as timed_out/-1), and a
non-zero exit code is a normal outcome.
"""


class CommandExecutionError(Exception):
    """Base class for all execution failures surfaced to callers."""

    error_type = "execution_error"

    def __init__(self, message: str, correlation_id: str = None, detail: str = None):
        super().__init__(message)
        self.message = message
        self.correlation_id = correlation_id
        # Unsanitized description, kept for the audit trail only.
        self.detail = detail or message


class UnauthorizedError(CommandExecutionError):
    """Command denied by policy, or working directory outside allowed roots."""

    error_type = "unauthorized"


class InvalidArgumentError(CommandExecutionError, ValueError):
    """Request is malformed (empty command, timeout out of range)."""

    error_type = "invalid_argument"


class DirectoryNotFoundError(CommandExecutionError):
    """Working directory does not exist."""

    error_type = "not_found"


class ExecutionFailedError(CommandExecutionError):
    """The program could not be started at all."""

    error_type = "execution_failed"


class ExecutionCancelledError(CommandExecutionError):
    """The caller abandoned the call; the child process was killed."""

    error_type = "cancelled"
