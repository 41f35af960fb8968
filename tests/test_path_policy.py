"""Tests for working-directory confinement.

Run with: python -m pytest tests/test_path_policy.py -v
Or: python tests/test_path_policy.py (standalone)
"""

import os
import shutil
import sys
import tempfile

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.errors import DirectoryNotFoundError, UnauthorizedError
from core.execution_types import ExecutionOptions
from core.path_policy import (
    canonical_roots,
    canonicalize,
    is_within,
    is_within_roots,
    resolve_requested_path,
    resolve_working_directory,
)


def make_tmpdir():
    return os.path.realpath(tempfile.mkdtemp(prefix="headless_ide_test_"))


def _resolve(wd, workspace, options=None, extra_roots=()):
    options = options or ExecutionOptions(allowed_paths=())
    roots = canonical_roots([workspace, *extra_roots])
    return resolve_working_directory(wd, workspace, roots, options)


# ============================================================
# Containment predicate
# ============================================================

def test_is_within_exact_and_below():
    assert is_within("/srv/code", "/srv/code")
    assert is_within("/srv/code/a/b", "/srv/code")


def test_is_within_is_component_wise():
    assert not is_within("/tmpfoo", "/tmp")
    assert not is_within("/srv/code-other", "/srv/code")


def test_is_within_filesystem_root():
    assert is_within("/etc", "/")


def test_is_within_roots_any():
    assert is_within_roots("/b/x", ["/a", "/b"])
    assert not is_within_roots("/c/x", ["/a", "/b"])


def test_canonical_roots_dedup_and_skip_blank():
    tmp = make_tmpdir()
    try:
        roots = canonical_roots([tmp, "", None, tmp + "/.", "  "])
        assert roots == [tmp]
    finally:
        shutil.rmtree(tmp)


def test_resolve_requested_path_defaults():
    tmp = make_tmpdir()
    try:
        assert resolve_requested_path(None, tmp) == tmp
        assert resolve_requested_path("   ", tmp) == tmp
        assert resolve_requested_path("sub", tmp) == os.path.join(tmp, "sub")
        assert resolve_requested_path("/etc", tmp) == canonicalize("/etc")
    finally:
        shutil.rmtree(tmp)


# ============================================================
# resolve_working_directory
# ============================================================

def test_workspace_itself_allowed():
    tmp = make_tmpdir()
    try:
        assert _resolve(None, tmp) == tmp
        assert _resolve(".", tmp) == tmp
    finally:
        shutil.rmtree(tmp)


def test_relative_subdirectory_allowed():
    tmp = make_tmpdir()
    try:
        os.makedirs(os.path.join(tmp, "src", "pkg"))
        assert _resolve("src/pkg", tmp) == os.path.join(tmp, "src", "pkg")
    finally:
        shutil.rmtree(tmp)


def test_dotdot_traversal_rejected():
    tmp = make_tmpdir()
    try:
        ws = os.path.join(tmp, "ws")
        os.makedirs(ws)
        try:
            _resolve("../", ws)
            assert False, "Should have raised UnauthorizedError"
        except UnauthorizedError:
            pass
        try:
            _resolve("sub/../../", ws)
            assert False, "Should have raised UnauthorizedError"
        except UnauthorizedError:
            pass
    finally:
        shutil.rmtree(tmp)


def test_dotdot_staying_inside_allowed():
    tmp = make_tmpdir()
    try:
        os.makedirs(os.path.join(tmp, "a"))
        os.makedirs(os.path.join(tmp, "b"))
        assert _resolve("a/../b", tmp) == os.path.join(tmp, "b")
    finally:
        shutil.rmtree(tmp)


def test_symlink_escape_rejected():
    tmp = make_tmpdir()
    try:
        ws = os.path.join(tmp, "ws")
        outside = os.path.join(tmp, "outside")
        os.makedirs(ws)
        os.makedirs(outside)
        os.symlink(outside, os.path.join(ws, "link"))
        try:
            _resolve("link", ws)
            assert False, "Should have raised UnauthorizedError"
        except UnauthorizedError:
            pass
    finally:
        shutil.rmtree(tmp)


def test_symlink_inside_allowed():
    tmp = make_tmpdir()
    try:
        os.makedirs(os.path.join(tmp, "real"))
        os.symlink(os.path.join(tmp, "real"), os.path.join(tmp, "alias"))
        assert _resolve("alias", tmp) == os.path.join(tmp, "real")
    finally:
        shutil.rmtree(tmp)


def test_sibling_prefix_rejected():
    tmp = make_tmpdir()
    try:
        ws = os.path.join(tmp, "code")
        sibling = os.path.join(tmp, "code-evil")
        os.makedirs(ws)
        os.makedirs(sibling)
        try:
            _resolve(sibling, ws)
            assert False, "Should have raised UnauthorizedError"
        except UnauthorizedError:
            pass
    finally:
        shutil.rmtree(tmp)


def test_extra_allowed_root():
    tmp = make_tmpdir()
    try:
        ws = os.path.join(tmp, "ws")
        extra = os.path.join(tmp, "extra")
        os.makedirs(ws)
        os.makedirs(extra)
        assert _resolve(extra, ws, extra_roots=[extra]) == extra
    finally:
        shutil.rmtree(tmp)


def test_missing_directory_inside_is_not_found():
    tmp = make_tmpdir()
    try:
        try:
            _resolve("does-not-exist", tmp)
            assert False, "Should have raised DirectoryNotFoundError"
        except DirectoryNotFoundError as e:
            assert str(e) == "The requested directory does not exist"
            assert "does-not-exist" in e.detail
    finally:
        shutil.rmtree(tmp)


def test_missing_directory_outside_is_unauthorized():
    """Outside paths are rejected before their existence is looked at."""
    tmp = make_tmpdir()
    try:
        ws = os.path.join(tmp, "ws")
        os.makedirs(ws)
        try:
            _resolve(os.path.join(tmp, "nope"), ws)
            assert False, "Should have raised UnauthorizedError"
        except UnauthorizedError as e:
            assert str(e) == "Access to the requested path is not permitted"
    finally:
        shutil.rmtree(tmp)


def test_file_is_not_a_directory():
    tmp = make_tmpdir()
    try:
        with open(os.path.join(tmp, "file.txt"), "w") as f:
            f.write("x")
        try:
            _resolve("file.txt", tmp)
            assert False, "Should have raised DirectoryNotFoundError"
        except DirectoryNotFoundError:
            pass
    finally:
        shutil.rmtree(tmp)


def test_unsanitized_path_messages():
    tmp = make_tmpdir()
    try:
        opts = ExecutionOptions(allowed_paths=(), sanitize_error_messages=False)
        try:
            _resolve("/etc", tmp, options=opts)
            assert False, "Should have raised UnauthorizedError"
        except UnauthorizedError as e:
            assert "/etc" in str(e)
            assert "not within allowed paths" in str(e)
    finally:
        shutil.rmtree(tmp)


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
