"""File lookup tools confined to the workspace."""

import os

from core.command_execution import get_execution_service
from core.path_policy import is_within, resolve_requested_path


def check_file_exists(file_name: str) -> dict:
    """Check whether a file exists in the code base.

    Relative paths resolve against the workspace. A path that resolves outside
    the workspace is reported as not existing, without touching it.

    Returns:
        dict with ok, exists, message.
    """
    if not isinstance(file_name, str) or not file_name.strip():
        return {"ok": False, "error": "file_name parameter is required"}

    workspace = get_execution_service().workspace
    resolved = resolve_requested_path(file_name, workspace)
    exists = is_within(resolved, workspace) and os.path.isfile(resolved)

    return {
        "ok": True,
        "exists": exists,
        "message": f"File '{file_name}' exists" if exists else f"File '{file_name}' does not exist",
    }
