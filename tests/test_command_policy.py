"""Tests for command allow/deny policy, timeout bounds and message sanitizing.

Run with: python -m pytest tests/test_command_policy.py -v
Or: python tests/test_command_policy.py (standalone)
"""

import os
import sys

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.command_policy import (
    check_arguments,
    check_command,
    check_command_present,
    check_timeout,
    is_allowlisted,
    is_denied,
    program_name,
)
from core.errors import InvalidArgumentError, UnauthorizedError
from core.execution_types import DEFAULT_DENIED_COMMANDS, ExecutionOptions
from core.sanitizer import (
    COMMAND_DENIED,
    EXECUTION_FAILED,
    PATH_NOT_FOUND,
    PATH_UNAUTHORIZED,
    sanitize,
)


# ============================================================
# Program name matching
# ============================================================

def test_program_name_strips_directories():
    assert program_name("rm") == "rm"
    assert program_name("/bin/rm") == "rm"
    assert program_name("  /usr/bin/git  ") == "git"


def test_program_name_is_case_sensitive():
    assert program_name("RM") == "RM"
    assert not is_denied("RM", ExecutionOptions())


# ============================================================
# Deny / allow lists
# ============================================================

def test_default_denylist():
    opts = ExecutionOptions()
    assert opts.denied_commands == DEFAULT_DENIED_COMMANDS
    for name in ("rm", "dd", "mkfs", "fdisk"):
        assert is_denied(name, opts)
    assert not is_denied("ls", opts)


def test_denied_by_full_path():
    opts = ExecutionOptions()
    try:
        check_command("/bin/rm", opts)
        assert False, "Should have raised UnauthorizedError"
    except UnauthorizedError:
        pass


def test_deny_wins_over_allow():
    opts = ExecutionOptions(allowed_commands={"rm", "ls"}, denied_commands={"rm"})
    assert check_command("ls", opts) == "ls"
    try:
        check_command("rm", opts)
        assert False, "Should have raised UnauthorizedError"
    except UnauthorizedError as e:
        assert "denylist" in e.detail


def test_allowlist_rejects_unlisted():
    opts = ExecutionOptions(allowed_commands={"git"}, denied_commands=set())
    assert check_command("git", opts) == "git"
    try:
        check_command("ls", opts)
        assert False, "Should have raised UnauthorizedError"
    except UnauthorizedError as e:
        assert "allowlist" in e.detail


def test_empty_allowlist_is_permissive():
    """An empty allow-list means no allow-list, not "nothing allowed"."""
    opts = ExecutionOptions(allowed_commands=set())
    assert not opts.has_allowlist
    assert is_allowlisted("anything", opts)
    assert check_command("ls", opts) == "ls"


def test_no_allowlist_still_applies_denylist():
    opts = ExecutionOptions(allowed_commands=None)
    assert check_command("echo", opts) == "echo"
    try:
        check_command("dd", opts)
        assert False, "Should have raised UnauthorizedError"
    except UnauthorizedError:
        pass


def test_denial_message_sanitized():
    opts = ExecutionOptions()
    try:
        check_command("rm", opts)
        assert False, "Should have raised UnauthorizedError"
    except UnauthorizedError as e:
        assert str(e) == "Command not permitted"
        assert "rm" not in str(e)


def test_denial_message_detailed_when_sanitizing_off():
    opts = ExecutionOptions(sanitize_error_messages=False)
    try:
        check_command("rm", opts)
        assert False, "Should have raised UnauthorizedError"
    except UnauthorizedError as e:
        assert "rm" in str(e)
        assert "denylist" in str(e)


def test_options_copy_collections():
    allowed = ["git"]
    opts = ExecutionOptions(allowed_commands=allowed, allowed_paths=["/srv"])
    allowed.append("rm")
    assert opts.allowed_commands == frozenset({"git"})
    assert opts.allowed_paths == ("/srv",)


def test_options_are_immutable():
    opts = ExecutionOptions()
    try:
        opts.max_timeout_seconds = 10
        assert False, "Should have raised"
    except AttributeError:
        pass


def test_options_reject_bad_ceiling():
    try:
        ExecutionOptions(max_timeout_seconds=0)
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


# ============================================================
# Timeout bounds
# ============================================================

def test_timeout_within_bounds():
    opts = ExecutionOptions(max_timeout_seconds=60)
    assert check_timeout(1, opts) == 1
    assert check_timeout(60, opts) == 60
    assert check_timeout("30", opts) == 30


def test_timeout_above_ceiling_rejected():
    opts = ExecutionOptions(max_timeout_seconds=60)
    try:
        check_timeout(61, opts)
        assert False, "Should have raised InvalidArgumentError"
    except InvalidArgumentError as e:
        assert "60" in str(e)


def test_timeout_below_one_rejected():
    opts = ExecutionOptions()
    for bad in (0, -5):
        try:
            check_timeout(bad, opts)
            assert False, f"Should have rejected {bad}"
        except InvalidArgumentError:
            pass


def test_timeout_not_a_number():
    try:
        check_timeout("soon", ExecutionOptions())
        assert False, "Should have raised InvalidArgumentError"
    except InvalidArgumentError:
        pass


def test_invalid_argument_is_value_error():
    try:
        check_timeout(0, ExecutionOptions())
        assert False, "Should have raised"
    except ValueError:
        pass


# ============================================================
# Command / argument shape
# ============================================================

def test_empty_command_rejected():
    for bad in ("", "   ", None):
        try:
            check_command_present(bad)
            assert False, f"Should have rejected {bad!r}"
        except InvalidArgumentError as e:
            assert "empty" in str(e)


def test_command_is_stripped():
    assert check_command_present("  ls ") == "ls"


def test_arguments_none_is_empty():
    assert check_arguments(None) == []


def test_arguments_numbers_become_strings():
    assert check_arguments(["-n", 5, 1.5]) == ["-n", "5", "1.5"]


def test_arguments_bare_string_rejected():
    try:
        check_arguments("-la /tmp")
        assert False, "Should have raised InvalidArgumentError"
    except InvalidArgumentError:
        pass


def test_arguments_nested_rejected():
    for bad in (["ok", ["nested"]], [True], [None]):
        try:
            check_arguments(bad)
            assert False, f"Should have rejected {bad!r}"
        except InvalidArgumentError:
            pass


# ============================================================
# Sanitizer
# ============================================================

def test_sanitize_generic_messages():
    opts = ExecutionOptions()
    assert sanitize("Working directory '/x' does not exist", PATH_NOT_FOUND, opts) == \
        "The requested directory does not exist"
    assert sanitize("'/etc' is not within allowed paths: /srv", PATH_UNAUTHORIZED, opts) == \
        "Access to the requested path is not permitted"
    assert sanitize("Command 'rm' is in the denylist", COMMAND_DENIED, opts) == \
        "Command not permitted"
    assert sanitize("Execution failed: [Errno 2] No such file", EXECUTION_FAILED, opts) == \
        "Command execution failed"


def test_sanitize_disabled_passes_through():
    opts = ExecutionOptions(sanitize_error_messages=False)
    raw = "Working directory '/x' does not exist"
    assert sanitize(raw, PATH_NOT_FOUND, opts) == raw


def test_sanitize_unknown_context():
    try:
        sanitize("boom", "no_such_context", ExecutionOptions())
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


# ============================================================
# Runner
# ============================================================

if __name__ == "__main__":
    test_functions = [v for k, v in sorted(globals().items()) if k.startswith("test_")]
    passed = 0
    failed = 0
    for fn in test_functions:
        try:
            fn()
            passed += 1
            print(f"  PASS  {fn.__name__}")
        except Exception as e:
            failed += 1
            print(f"  FAIL  {fn.__name__}: {e}")

    print(f"\n{passed} passed, {failed} failed, {passed + failed} total")
    sys.exit(1 if failed else 0)
