"""Command allow/deny policy and timeout bounds.

These are small predicates kept apart from process spawning so the security
decisions can be reviewed and tested without touching the OS.

Matching is on the base program name, exact and case-sensitive:
  "rm"        -> "rm"
  "/bin/rm"   -> "rm"
  "RM"        -> "RM"   (a different program on a case-sensitive filesystem)

Evaluation order: deny-list, then allow-list. A command present in both lists
is denied.
"""

import os

from core.errors import InvalidArgumentError, UnauthorizedError
from core.execution_types import ExecutionOptions
from core.sanitizer import COMMAND_DENIED, sanitize


def program_name(command: str) -> str:
    """Base program name used for policy matching."""
    return os.path.basename(command.strip().rstrip("/\\"))


def is_denied(command: str, options: ExecutionOptions) -> bool:
    return program_name(command) in options.denied_commands


def is_allowlisted(command: str, options: ExecutionOptions) -> bool:
    """True when no allow-list is configured, or the command is on it."""
    if not options.has_allowlist:
        return True
    return program_name(command) in options.allowed_commands


def check_command(command: str, options: ExecutionOptions) -> str:
    """Validate a command against policy. Returns the base program name.

    Raises UnauthorizedError when the command is denied or not allow-listed.
    """
    name = program_name(command)
    if is_denied(command, options):
        raw = f"Command '{name}' is in the denylist"
        raise UnauthorizedError(sanitize(raw, COMMAND_DENIED, options), detail=raw)
    if not is_allowlisted(command, options):
        raw = f"Command '{name}' is not in the allowlist"
        raise UnauthorizedError(sanitize(raw, COMMAND_DENIED, options), detail=raw)
    return name


def check_timeout(timeout_seconds, options: ExecutionOptions) -> int:
    """Validate a requested timeout against the configured ceiling.

    Requests above the ceiling fail; they are never lowered to it.
    """
    try:
        timeout = int(timeout_seconds)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"Timeout must be an integer number of seconds (got {timeout_seconds!r})")
    if timeout < 1 or timeout > options.max_timeout_seconds:
        raise InvalidArgumentError(
            f"Timeout must be between 1 and {options.max_timeout_seconds} seconds (got {timeout})"
        )
    return timeout


def check_command_present(command) -> str:
    if not isinstance(command, str) or not command.strip():
        raise InvalidArgumentError("Command cannot be empty")
    return command.strip()


def check_arguments(arguments) -> list[str]:
    """Arguments must be a sequence of strings, one entry per argv slot.

    A bare string is rejected: splitting it would mean interpreting it.
    """
    if arguments is None:
        return []
    if isinstance(arguments, (str, bytes)) or not isinstance(arguments, (list, tuple)):
        raise InvalidArgumentError("Arguments must be a list of strings")
    for arg in arguments:
        if not isinstance(arg, (str, int, float)) or isinstance(arg, bool):
            raise InvalidArgumentError(f"Unsupported argument type: {type(arg).__name__}")
    return [str(a) for a in arguments]
