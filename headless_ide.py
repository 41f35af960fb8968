"""headless-ide: sandboxed command execution for remote callers.

Runs programs inside a confined workspace under an allow/deny policy, with
bounded timeouts, sanitized errors and a redacted audit trail.

Usage:
    headless-ide [global options] exec -- git status --short
    headless-ide exec-json -- jq -n '{"a": 1}'
    headless-ide tools
    headless-ide call shell_execute '{"command": "ls", "arguments": ["-la"]}'

Run 'headless-ide --help' for all options.
"""

import argparse
import json
import os
import sys

# Add parent directory to path so imports work when run directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.audit_log import AuditLog
from core.command_execution import configure_execution_service
from core.config import (
    build_options,
    generate_sample_config,
    load_config,
    merge_cli_args,
    resolve_workspace,
)
from core.errors import CommandExecutionError
from core.execution_types import ExecutionRequest
from core.tool_protocol import ToolRegistry
from tools.file_tools import check_file_exists
from tools.git_tools import git_clone, git_status
from tools.shell_tools import shell_execute, shell_execute_json, shell_get_available_tools


# Exit status when the child was killed at its deadline (same as coreutils timeout).
EXIT_TIMED_OUT = 124
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def build_registry() -> ToolRegistry:
    """Create and populate the tool registry with all available tools."""
    reg = ToolRegistry()

    # Execution tools
    reg.register_tool("shell_execute", shell_execute,
                      "Run a program with arguments (no shell) and capture its output",
                      cancellable=True)
    reg.register_tool("shell_execute_json", shell_execute_json,
                      "Run a program and parse its stdout as JSON",
                      cancellable=True)
    reg.register_tool("shell_get_available_tools", shell_get_available_tools,
                      "List common developer tools and their versions")

    # File tools
    reg.register_tool("check_file_exists", check_file_exists,
                      "Check whether a file exists in the code base")

    # Git tools
    reg.register_tool("git_clone", git_clone, "Clone a repository into the workspace")
    reg.register_tool("git_status", git_status, "Show git status")

    return reg


def _emit(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _error(message: str, code: int = EXIT_ERROR) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return code


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="headless-ide",
        description="headless-ide: sandboxed command execution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", default=None,
                        help="Path to config file (default: auto-detect .headless-ide.toml)")
    parser.add_argument("--no-config", action="store_true",
                        help="Ignore config files, use only CLI flags")
    parser.add_argument("--workspace", default=None,
                        help="Workspace base path (default: $CODE_BASE_PATH or current directory)")
    parser.add_argument("--max-timeout", type=int, default=None,
                        help="Largest timeout a request may ask for, in seconds (default: 300)")
    parser.add_argument("--allow-command", action="append", default=None, metavar="NAME",
                        help="Allow-list entry (repeatable). Without any, all non-denied commands run")
    parser.add_argument("--deny-command", action="append", default=None, metavar="NAME",
                        help="Deny-list entry (repeatable). Replaces the default rm/dd/mkfs/fdisk list")
    parser.add_argument("--allow-path", action="append", default=None, metavar="DIR",
                        help="Extra directory commands may run in (repeatable)")
    parser.add_argument("--no-sanitize", action="store_true",
                        help="Return detailed error messages instead of generic ones")
    parser.add_argument("--no-audit", action="store_true",
                        help="Disable the audit trail")
    parser.add_argument("--audit-dir", default=None,
                        help="Directory for JSONL audit files (default: in-memory only)")

    sub = parser.add_subparsers(dest="subcommand", required=True)

    for name, help_text in (("exec", "Run a program and print the result as JSON"),
                            ("exec-json", "Run a program and parse its stdout as JSON")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--timeout", type=int, default=None,
                       help="Timeout in seconds (default: 30)")
        p.add_argument("--cwd", default=None,
                       help="Working directory, relative to the workspace")
        p.add_argument("--env", action="append", default=[], metavar="KEY=VALUE",
                       help="Extra environment variable for the program (repeatable)")
        p.add_argument("--user", default=None,
                       help="Caller identity for the audit trail")
        p.add_argument("argv", nargs=argparse.REMAINDER,
                       help="Program and arguments, after --")

    sub.add_parser("tools", help="List available developer tools and versions")

    p = sub.add_parser("check-file", help="Check whether a file exists in the workspace")
    p.add_argument("path")

    p = sub.add_parser("clone", help="Clone a git repository into the workspace")
    p.add_argument("url")
    p.add_argument("dest")
    p.add_argument("--branch", default=None)

    p = sub.add_parser("call", help="Invoke a registered tool with JSON arguments")
    p.add_argument("tool")
    p.add_argument("json_args", nargs="?", default="{}")

    sub.add_parser("list", help="List registered tools")
    sub.add_parser("sample-config", help="Print a sample .headless-ide.toml")

    return parser


def _parse_env(pairs: list[str]) -> dict | None:
    env = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid --env entry '{pair}' (expected KEY=VALUE)")
        env[key] = value
    return env or None


def _run_exec(service, args, config, parse_json: bool) -> int:
    argv = list(args.argv)
    if argv and argv[0] == "--":
        argv = argv[1:]
    if not argv:
        return _error("No command given (usage: exec -- PROGRAM [ARGS...])")

    try:
        env = _parse_env(args.env)
    except ValueError as e:
        return _error(str(e))

    timeout = args.timeout if args.timeout is not None else config["timeout_seconds"]
    request = ExecutionRequest(
        command=argv[0],
        arguments=argv[1:],
        working_directory=args.cwd,
        timeout_seconds=timeout,
        environment_variables=env,
        user=args.user,
    )
    try:
        if parse_json:
            result = service.execute_json(request)
        else:
            result = service.execute(request)
    except CommandExecutionError as e:
        _emit({"ok": False, "error": e.message, "error_type": e.error_type,
               "correlation_id": e.correlation_id})
        return _error(e.message)

    _emit(result.to_dict())
    if result.timed_out:
        return EXIT_TIMED_OUT
    if parse_json and result.parse_error:
        print(f"Error: {result.parse_error}", file=sys.stderr)
        return EXIT_ERROR
    # Negative exit codes (killed by signal) map to 128+N like a shell.
    if result.exit_code < 0:
        return 128 + abs(result.exit_code)
    return result.exit_code


def _run_call(registry: ToolRegistry, args) -> int:
    try:
        arguments = json.loads(args.json_args)
    except ValueError as e:
        return _error(f"Invalid JSON arguments: {e}")
    if registry.get_tool(args.tool) is None:
        known = ", ".join(t["name"] for t in registry.list_tools())
        return _error(f"Unknown tool '{args.tool}' (available: {known})")
    result = registry.call_tool(args.tool, arguments)
    print(registry.format_result(args.tool, result))
    if not result["ok"]:
        return _error(result["error"])
    data = result.get("data")
    if isinstance(data, dict) and data.get("ok") is False:
        return EXIT_ERROR
    return 0


def main(argv: list[str] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.subcommand == "sample-config":
        print(generate_sample_config(), end="")
        return 0

    # Load configuration: DEFAULTS -> config file -> CLI args
    try:
        if not args.no_config:
            config = load_config(args.config)
        else:
            from core.config import DEFAULTS
            config = dict(DEFAULTS)
        config = merge_cli_args(config, args)
        options = build_options(config)
    except ValueError as e:
        return _error(str(e))

    config_file = config.get("_config_file")
    if config_file:
        print(f"Config: {config_file}", file=sys.stderr)

    audit_log = AuditLog(log_dir=config["audit_log_dir"])
    workspace = resolve_workspace(config)
    if not os.path.isdir(workspace):
        return _error(f"Workspace '{workspace}' is not a directory")
    service = configure_execution_service(workspace, options=options, audit_log=audit_log)

    registry = build_registry()
    try:
        if args.subcommand in ("exec", "exec-json"):
            return _run_exec(service, args, config, parse_json=args.subcommand == "exec-json")
        if args.subcommand == "tools":
            _emit(shell_get_available_tools())
            return 0
        if args.subcommand == "check-file":
            result = check_file_exists(args.path)
            _emit(result)
            return 0 if result["ok"] and result["exists"] else EXIT_ERROR
        if args.subcommand == "clone":
            result = git_clone(args.url, args.dest, branch=args.branch)
            _emit(result)
            if not result["ok"]:
                return _error(result.get("error", "git clone failed"))
            return 0
        if args.subcommand == "call":
            return _run_call(registry, args)
        if args.subcommand == "list":
            _emit(registry.list_tools())
            return 0
        return _error(f"Unknown subcommand '{args.subcommand}'")
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED
    finally:
        audit_log.close()
        if audit_log.log_path and audit_log.event_count:
            print(f"Audit: {audit_log.event_count} record(s) in {audit_log.log_path}",
                  file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
