"""Sandboxed command execution service.

Pipeline for every call:

    command check -> timeout check -> working-directory check
        -> direct process launch (no shell) -> result
    audit record (exactly once, whatever the outcome)

Validation failures raise typed errors (core.errors) with sanitized messages
when sanitization is on. A timeout is not an error: the result carries
timed_out=True and exit_code=-1. A non-zero exit is a normal result.

The service holds only immutable policy, so one instance may serve any number
of concurrent calls. Each call owns exactly one child process.
"""

import json
import os
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from core.audit_log import AuditLog
from core.command_policy import (
    check_arguments,
    check_command,
    check_command_present,
    check_timeout,
)
from core.config import WORKSPACE_ENV_VAR
from core.errors import (
    CommandExecutionError,
    DirectoryNotFoundError,
    ExecutionCancelledError,
    ExecutionFailedError,
    InvalidArgumentError,
    UnauthorizedError,
)
from core.execution_types import (
    ExecutionOptions,
    ExecutionRequest,
    ExecutionResult,
    JsonExecutionResult,
    ToolDescriptor,
)
from core.path_policy import canonical_roots, canonicalize, resolve_working_directory
from core.process_runner import build_environment, run_process
from core.sanitizer import EXECUTION_FAILED, sanitize
from core.tool_catalog import KNOWN_TOOLS, PROBE_TIMEOUT_SECONDS, version_from_result


# Audit status for each error type.
_ERROR_STATUS = {
    UnauthorizedError: "denied",
    InvalidArgumentError: "invalid",
    DirectoryNotFoundError: "not_found",
    ExecutionFailedError: "failed",
    ExecutionCancelledError: "cancelled",
}


def new_correlation_id() -> str:
    return uuid.uuid4().hex


class CommandExecutionService:
    """Runs external programs under an immutable ExecutionOptions policy."""

    def __init__(self, workspace: str, options: ExecutionOptions = None,
                 audit_log: AuditLog = None):
        """Create a service.

        Args:
            workspace: Base path. Relative working directories resolve against
                it, and it is always an allowed root.
            options: Execution policy. Defaults to ExecutionOptions().
            audit_log: Audit sink. Defaults to an in-memory AuditLog.
        """
        if not workspace or not str(workspace).strip():
            raise ValueError("workspace cannot be empty")
        self.workspace = canonicalize(str(workspace))
        self.options = options or ExecutionOptions()
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        self.allowed_roots = tuple(canonical_roots([self.workspace, *self.options.allowed_paths]))

    # ------------------------------------------------------------
    # execute
    # ------------------------------------------------------------

    def execute(self, request: ExecutionRequest, cancel_event=None) -> ExecutionResult:
        """Validate and run a request.

        Raises:
            InvalidArgumentError: empty command, or timeout outside 1..max_timeout_seconds.
            UnauthorizedError: command denied, or working directory outside the roots.
            DirectoryNotFoundError: working directory does not exist.
            ExecutionFailedError: the program could not be started.
            ExecutionCancelledError: cancel_event was set while the program ran.
        """
        correlation_id = request.correlation_id or new_correlation_id()
        try:
            result = self._execute_validated(request, correlation_id, cancel_event)
        except CommandExecutionError as e:
            e.correlation_id = correlation_id
            self._audit(correlation_id, _status_for(e), request, error=e.detail)
            raise
        except BaseException as e:
            status = "cancelled" if isinstance(e, KeyboardInterrupt) else "failed"
            self._audit(correlation_id, status, request, error=f"{type(e).__name__}: {e}")
            raise

        status = "timed_out" if result.timed_out else "completed"
        self._audit(correlation_id, status, request, result=result)
        return result

    def _execute_validated(self, request: ExecutionRequest, correlation_id: str,
                           cancel_event) -> ExecutionResult:
        command = check_command_present(request.command)
        arguments = check_arguments(request.arguments)
        check_command(command, self.options)
        timeout = check_timeout(request.timeout_seconds, self.options)
        cwd = resolve_working_directory(
            request.working_directory, self.workspace, self.allowed_roots, self.options
        )

        argv = [command] + arguments
        env = build_environment(request.environment_variables)

        try:
            outcome = run_process(argv, cwd, env, timeout, cancel_event=cancel_event)
        except OSError as e:
            raw = f"Execution failed: {e}"
            raise ExecutionFailedError(sanitize(raw, EXECUTION_FAILED, self.options), detail=raw)

        if outcome.cancelled:
            raise ExecutionCancelledError("Command execution was cancelled")

        return ExecutionResult(
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            exit_code=outcome.exit_code,
            timed_out=outcome.timed_out,
            execution_time=timedelta(seconds=outcome.duration_s),
            correlation_id=correlation_id,
        )

    # ------------------------------------------------------------
    # execute_json
    # ------------------------------------------------------------

    def execute_json(self, request: ExecutionRequest, cancel_event=None) -> JsonExecutionResult:
        """Run a request and parse its stdout as JSON.

        Parsing is only attempted on exit code 0 with non-blank stdout. A parse
        failure fills parse_error and leaves the raw stdout on the result.
        """
        result = JsonExecutionResult.from_result(self.execute(request, cancel_event=cancel_event))
        if result.exit_code == 0 and result.stdout.strip():
            try:
                result.json = json.loads(result.stdout)
                result.parsed = True
            except ValueError as e:
                result.parse_error = f"Failed to parse JSON: {e}"
        return result

    # ------------------------------------------------------------
    # list_tools
    # ------------------------------------------------------------

    def list_tools(self) -> list[ToolDescriptor]:
        """Probe the known programs concurrently, in catalog order."""
        with ThreadPoolExecutor(max_workers=len(KNOWN_TOOLS)) as pool:
            return list(pool.map(lambda t: self._probe(*t), KNOWN_TOOLS))

    def _probe(self, name: str, version_args: list[str], description: str) -> ToolDescriptor:
        request = ExecutionRequest(
            command=name,
            arguments=list(version_args),
            timeout_seconds=min(PROBE_TIMEOUT_SECONDS, self.options.max_timeout_seconds),
        )
        try:
            result = self.execute(request)
        except CommandExecutionError:
            return ToolDescriptor(name=name, available=False, description=description)
        version = version_from_result(result)
        return ToolDescriptor(
            name=name,
            available=version is not None,
            version=version,
            description=description,
        )

    # ------------------------------------------------------------
    # audit
    # ------------------------------------------------------------

    def _audit(self, correlation_id: str, status: str, request,
               result: ExecutionResult = None, error: str = "") -> None:
        if not self.options.enable_audit_logging:
            return
        self.audit_log.record_execution(correlation_id, status, request,
                                        result=result, error=error)


def _status_for(error: CommandExecutionError) -> str:
    for error_type, status in _ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return "failed"



# ============================================================
# Module-level singleton for use by tools
# ============================================================

_service: CommandExecutionService | None = None


def get_execution_service() -> CommandExecutionService:
    """Get the global service. Creates a default one if not configured.

    The default workspace is $CODE_BASE_PATH, falling back to the current
    directory, under the default ExecutionOptions.
    """
    global _service
    if _service is None:
        workspace = os.environ.get(WORKSPACE_ENV_VAR) or os.getcwd()
        _service = CommandExecutionService(workspace)
    return _service


def configure_execution_service(
    workspace: str,
    options: ExecutionOptions = None,
    audit_log: AuditLog = None,
) -> CommandExecutionService:
    """Configure and set the global service instance."""
    global _service
    _service = CommandExecutionService(workspace, options=options, audit_log=audit_log)
    return _service
