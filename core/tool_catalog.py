"""Known external programs probed by list_tools().

Each entry is (name, version arguments, description). A program counts as
available when its version query runs through the execution service, within
the probe timeout, and exits 0. Probes therefore obey the same command policy
as any other call: a denied program shows up as unavailable.
"""

from core.execution_types import ExecutionResult

PROBE_TIMEOUT_SECONDS = 5

KNOWN_TOOLS = [
    ("bash", ["--version"], "bash - shell"),
    ("git", ["--version"], "git - version control"),
    ("python3", ["--version"], "Python runtime"),
    ("pip", ["--version"], "pip - Python package installer"),
    ("rg", ["--version"], "ripgrep - fast text search"),
    ("jq", ["--version"], "jq - JSON processor"),
    ("tree", ["--version"], "tree - directory visualization"),
    ("curl", ["--version"], "curl - data transfer tool"),
    ("find", ["--version"], "find - file search utility"),
]


def first_line(text: str) -> str | None:
    """First non-blank line of text, stripped."""
    for line in (text or "").splitlines():
        if line.strip():
            return line.strip()
    return None


def version_from_result(result: ExecutionResult) -> str | None:
    """Version string from a probe result, or None if the probe failed.

    Some programs print their version on stderr, so it is the fallback.
    """
    if result.timed_out or result.exit_code != 0:
        return None
    return first_line(result.stdout) or first_line(result.stderr) or ""
