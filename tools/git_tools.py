"""Git operations for headless-ide, run through the execution service.

Safety rules:
  - git must pass the command policy like any other program
  - Clone destinations stay inside the workspace
  - Credentials embedded in remote URLs never appear in results or errors
  - Git never prompts for credentials (GIT_TERMINAL_PROMPT=0)
"""

import os

from core.command_execution import get_execution_service
from core.errors import CommandExecutionError
from core.execution_types import ExecutionRequest
from core.path_policy import is_within, resolve_requested_path
from core.redaction import redact_secrets


GIT_TIMEOUT_SECONDS = 30
CLONE_TIMEOUT_SECONDS = 300

_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


def _run_git(args: list[str], cwd: str = ".", timeout_seconds: int = GIT_TIMEOUT_SECONDS) -> dict:
    """Run a git command and return structured result with secrets redacted."""
    service = get_execution_service()
    request = ExecutionRequest(
        command="git",
        arguments=args,
        working_directory=cwd,
        timeout_seconds=min(timeout_seconds, service.options.max_timeout_seconds),
        environment_variables=dict(_GIT_ENV),
    )
    try:
        result = service.execute(request)
    except CommandExecutionError as e:
        return {
            "ok": False,
            "error": redact_secrets(e.message),
            "error_type": e.error_type,
            "correlation_id": e.correlation_id,
        }

    data = result.to_dict()
    data["stdout"] = redact_secrets(data["stdout"])
    data["stderr"] = redact_secrets(data["stderr"])
    if result.timed_out:
        data["error"] = f"Git command timed out after {request.timeout_seconds}s."
    return data


def git_status(cwd: str = ".") -> dict:
    """Get git status (short format)."""
    return _run_git(["status", "--short"], cwd)


def git_clone(remote_url: str, local_path: str, branch: str = None) -> dict:
    """Clone a remote repository into the workspace.

    Args:
        remote_url: Repository URL. May carry credentials; they are redacted
            from everything this returns and from the audit trail.
        local_path: Destination, relative to the workspace (or absolute inside
            it). Must not exist yet, or be an empty directory.
        branch: Optional branch to check out instead of the remote HEAD.
    """
    if not isinstance(remote_url, str) or not remote_url.strip():
        return {"ok": False, "error": "Remote URL cannot be empty."}
    if remote_url.strip().startswith("-"):
        return {"ok": False, "error": "Remote URL cannot start with '-'."}
    if branch is not None and (not str(branch).strip() or str(branch).startswith("-")):
        return {"ok": False, "error": "Invalid branch name."}
    if not isinstance(local_path, str) or not local_path.strip():
        return {"ok": False, "error": "Local path cannot be empty."}

    workspace = get_execution_service().workspace
    destination = resolve_requested_path(local_path, workspace)

    # The destination itself must be a new path below the workspace root.
    if destination == workspace or not is_within(destination, workspace):
        return {"ok": False, "error": "Clone destination must be inside the workspace."}
    if os.path.exists(destination) and (not os.path.isdir(destination) or os.listdir(destination)):
        return {"ok": False, "error": f"Destination '{local_path}' already exists and is not empty."}

    args = ["clone"]
    if branch:
        args += ["--branch", str(branch)]
    args += ["--", remote_url.strip(), destination]

    result = _run_git(args, cwd=os.path.dirname(destination), timeout_seconds=CLONE_TIMEOUT_SECONDS)
    if result.get("exit_code") is not None:
        result["path"] = destination
        if not result["ok"] and "error" not in result:
            result["error"] = redact_secrets(f"git clone of {remote_url} failed "
                                             f"(exit code {result['exit_code']})")
    return result
