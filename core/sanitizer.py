"""Caller-visible error message sanitization.

When sanitize_error_messages is on, failure messages collapse to fixed phrases
that name no path, no command and no OS error text. When off, the detailed
message passes through (development profiles only).

This applies to error text only. A command's own stdout/stderr is never
rewritten here. Secret redaction for the audit trail is a separate pass, see
core/redaction.py.
"""

PATH_NOT_FOUND = "path_not_found"
PATH_UNAUTHORIZED = "path_unauthorized"
COMMAND_DENIED = "command_denied"
EXECUTION_FAILED = "execution_failed"

GENERIC_MESSAGES = {
    PATH_NOT_FOUND: "The requested directory does not exist",
    PATH_UNAUTHORIZED: "Access to the requested path is not permitted",
    COMMAND_DENIED: "Command not permitted",
    EXECUTION_FAILED: "Command execution failed",
}


def sanitize(raw_message: str, context: str, options) -> str:
    """Return the message a caller is allowed to see for this failure context."""
    if not options.sanitize_error_messages:
        return raw_message
    try:
        return GENERIC_MESSAGES[context]
    except KeyError:
        raise ValueError(f"Unknown sanitization context: {context}")
