"""Configuration file support for headless-ide.

Loads settings from .headless-ide.toml (project-level) or ~/.headless-ide.toml
(user-level). CLI flags override config file values. Config file overrides
defaults. The CODE_BASE_PATH environment variable selects the workspace when
neither the file nor the CLI does.

Settings may sit at the top level or inside a [command_execution] table.
"""

import os
import sys
import tomllib
from pathlib import Path

from core.execution_types import (
    DEFAULT_DENIED_COMMANDS,
    DEFAULT_MAX_TIMEOUT_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    ExecutionOptions,
)


WORKSPACE_ENV_VAR = "CODE_BASE_PATH"

# Default configuration values (same as CLI defaults)
DEFAULTS = {
    "workspace": None,
    "max_timeout_seconds": DEFAULT_MAX_TIMEOUT_SECONDS,
    "timeout_seconds": DEFAULT_TIMEOUT_SECONDS,
    "allowed_paths": None,            # None -> system temp directory
    "allowed_commands": None,         # None -> no allow-list
    "denied_commands": sorted(DEFAULT_DENIED_COMMANDS),
    "sanitize_error_messages": True,
    "enable_audit_logging": True,
    "audit_log_dir": None,            # None -> in-memory audit trail
}

# Config file search order (first found wins)
CONFIG_FILENAMES = [".headless-ide.toml", "headless-ide.toml"]
CONFIG_SEARCH_DIRS = [
    ".",                          # Current directory (project-level)
    str(Path.home()),             # Home directory (user-level)
]

SECTION_NAME = "command_execution"

_LIST_KEYS = ("allowed_paths", "allowed_commands", "denied_commands")


def find_config_file() -> str | None:
    """Find the first config file in the search path."""
    for directory in CONFIG_SEARCH_DIRS:
        for filename in CONFIG_FILENAMES:
            path = os.path.join(directory, filename)
            if os.path.isfile(path):
                return path
    return None


def _normalize(file_config: dict) -> dict:
    """Flatten the [command_execution] table and normalize key names.

    Keys inside the table win over the same key at the top level.
    """
    flat = {}
    section = None
    for key, value in file_config.items():
        norm_key = key.replace("-", "_")
        if norm_key == SECTION_NAME and isinstance(value, dict):
            section = value
            continue
        flat[norm_key] = value
    if section:
        for key, value in section.items():
            flat[key.replace("-", "_")] = value
    return flat


def load_config(config_path: str = None) -> dict:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file. If None, searches default locations.

    Returns:
        Dict of configuration values. Missing keys use DEFAULTS.

    Raises:
        ValueError: the file exists but is not valid TOML, or a list setting
            is not a list.
    """
    config = dict(DEFAULTS)

    path = config_path or find_config_file()
    if path and os.path.isfile(path):
        try:
            with open(path, "rb") as f:
                file_config = tomllib.load(f)
        except OSError as e:
            print(f"  CONFIG WARN: cannot read {path}: {e}", file=sys.stderr)
            file_config = None
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e

        if file_config is not None:
            unknown = []
            for key, value in _normalize(file_config).items():
                if key in config:
                    config[key] = value
                else:
                    unknown.append(key)
            if unknown:
                print(f"  CONFIG WARN: ignoring unknown keys in {path}: "
                      f"{', '.join(sorted(unknown))}", file=sys.stderr)
            config["_config_file"] = path

    for key in _LIST_KEYS:
        value = config.get(key)
        if value is not None and not isinstance(value, list):
            raise ValueError(f"Config key '{key}' must be a list (got {type(value).__name__})")

    return config


def merge_cli_args(config: dict, args) -> dict:
    """Merge CLI arguments over config file values.

    CLI args that are None or False (defaults) don't override config.
    Explicitly set CLI args always win. Repeatable list flags replace the
    configured list rather than extending it.
    """
    result = dict(config)

    # Map argparse attribute names to config keys
    mappings = {
        "workspace": "workspace",
        "max_timeout": "max_timeout_seconds",
        "timeout": "timeout_seconds",
        "allow_path": "allowed_paths",
        "allow_command": "allowed_commands",
        "deny_command": "denied_commands",
        "audit_dir": "audit_log_dir",
    }

    for arg_name, config_key in mappings.items():
        cli_value = getattr(args, arg_name, None)
        if cli_value is None:
            continue
        result[config_key] = cli_value

    # Negative flags: only override when explicitly set
    if getattr(args, "no_sanitize", False):
        result["sanitize_error_messages"] = False
    if getattr(args, "no_audit", False):
        result["enable_audit_logging"] = False

    return result


def resolve_workspace(config: dict) -> str:
    """Workspace from config, then CODE_BASE_PATH, then the current directory."""
    return config.get("workspace") or os.environ.get(WORKSPACE_ENV_VAR) or os.getcwd()


def build_options(config: dict) -> ExecutionOptions:
    """Build the immutable execution policy from a merged config dict."""
    kwargs = {
        "max_timeout_seconds": int(config.get("max_timeout_seconds") or DEFAULT_MAX_TIMEOUT_SECONDS),
        "sanitize_error_messages": bool(config.get("sanitize_error_messages", True)),
        "enable_audit_logging": bool(config.get("enable_audit_logging", True)),
    }
    if config.get("allowed_paths") is not None:
        kwargs["allowed_paths"] = tuple(config["allowed_paths"])
    if config.get("allowed_commands") is not None:
        kwargs["allowed_commands"] = frozenset(config["allowed_commands"])
    if config.get("denied_commands") is not None:
        kwargs["denied_commands"] = frozenset(config["denied_commands"])
    return ExecutionOptions(**kwargs)


def generate_sample_config() -> str:
    """Generate a sample .headless-ide.toml config file."""
    return '''# headless-ide configuration
# Place this file at .headless-ide.toml (project) or ~/.headless-ide.toml (user)

# Workspace base. Relative working directories resolve against it.
# Falls back to $CODE_BASE_PATH, then the current directory.
# workspace = "/srv/code"

[command_execution]
# Upper bound for any requested timeout (seconds). Larger requests are rejected.
max_timeout_seconds = 300

# Default per-command timeout used by the CLI
timeout_seconds = 30

# Extra directories commands may run in (the workspace is always allowed)
# allowed_paths = ["/tmp"]

# Allow-list of program names. Omit or leave empty to allow everything
# not on the deny-list.
# allowed_commands = ["git", "ls", "cat", "python3"]

# Deny-list of program names. Always wins over the allow-list.
denied_commands = ["rm", "dd", "mkfs", "fdisk"]

# Replace detailed error text with generic messages
sanitize_error_messages = true

# Audit trail
enable_audit_logging = true
# audit_log_dir = "./audit"
'''
