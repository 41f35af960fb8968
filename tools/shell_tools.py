"""Shell execution tools: run one program with arguments, no shell in between.

Every call goes through the global CommandExecutionService, so command policy,
working-directory confinement, timeout bounds and auditing always apply.
Domain failures come back as {"ok": False, ...} dicts instead of exceptions.
"""

from core.command_execution import get_execution_service
from core.errors import CommandExecutionError
from core.execution_types import DEFAULT_TIMEOUT_SECONDS, ExecutionRequest


def _error_result(e: CommandExecutionError) -> dict:
    return {
        "ok": False,
        "error": e.message,
        "error_type": e.error_type,
        "correlation_id": e.correlation_id,
    }


def _build_request(command, arguments, working_directory, timeout_seconds,
                   environment_variables, user) -> ExecutionRequest:
    return ExecutionRequest(
        command=command,
        arguments=arguments if arguments is not None else [],
        working_directory=working_directory,
        timeout_seconds=timeout_seconds,
        environment_variables=environment_variables,
        user=user,
    )


def shell_execute(
    command: str,
    arguments: list[str] = None,
    working_directory: str = None,
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    environment_variables: dict = None,
    user: str = None,
    cancel_event=None,
) -> dict:
    """Run a program and capture its output.

    Args:
        command: Program name or path. Shell syntax is not interpreted.
        arguments: Each entry becomes exactly one argv slot.
        working_directory: Relative to the workspace, or absolute inside an
            allowed root. Defaults to the workspace.
        user: Caller identity recorded in the audit trail.
        timeout_seconds: 1..max_timeout_seconds. On expiry the process is
            killed and the result has timed_out=True, exit_code=-1.

    Returns:
        dict with ok, stdout, stderr, exit_code, timed_out, execution_time_ms,
        correlation_id. ok is True only for exit code 0 without a timeout.
    """
    request = _build_request(command, arguments, working_directory,
                             timeout_seconds, environment_variables, user)
    try:
        result = get_execution_service().execute(request, cancel_event=cancel_event)
    except CommandExecutionError as e:
        return _error_result(e)
    return result.to_dict()


def shell_execute_json(
    command: str,
    arguments: list[str] = None,
    working_directory: str = None,
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    environment_variables: dict = None,
    user: str = None,
    cancel_event=None,
) -> dict:
    """Like shell_execute, and parse stdout as JSON.

    Adds json (parsed value or None), parse_error (message or None) and
    parsed, which is True whenever stdout was decoded, including a literal null.
    """
    request = _build_request(command, arguments, working_directory,
                             timeout_seconds, environment_variables, user)
    try:
        result = get_execution_service().execute_json(request, cancel_event=cancel_event)
    except CommandExecutionError as e:
        return _error_result(e)
    return result.to_dict()


def shell_get_available_tools() -> dict:
    """Probe common developer tools and report which ones can run here."""
    service = get_execution_service()
    tools = service.list_tools()
    return {
        "ok": True,
        "tools": [t.to_dict() for t in tools],
        "workspace_path": service.workspace,
    }
