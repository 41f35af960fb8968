"""Working-directory confinement.

All comparisons happen on canonical paths (absolute, symlinks followed, ".."
removed), so both "../" traversal and a symlink pointing outside the allowed
roots are rejected even when the literal string looks like it is inside.

Containment is checked before existence: a caller cannot use the NotFound vs
Unauthorized distinction to probe paths outside the roots.
"""

import os

from core.errors import DirectoryNotFoundError, UnauthorizedError
from core.sanitizer import PATH_NOT_FOUND, PATH_UNAUTHORIZED, sanitize


def canonicalize(path: str) -> str:
    """Absolute, symlink-resolved form of path (the target need not exist)."""
    return os.path.realpath(os.path.expanduser(path))


def canonical_roots(paths) -> list[str]:
    """Canonicalize and de-duplicate a collection of root paths, keeping order."""
    roots = []
    for p in paths:
        if not p or not str(p).strip():
            continue
        resolved = canonicalize(str(p))
        if resolved not in roots:
            roots.append(resolved)
    return roots


def is_within(path: str, root: str) -> bool:
    """True if canonical path equals root or lies below it.

    Component-wise: /tmpfoo is not inside /tmp.
    """
    if path == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return path.startswith(prefix)


def is_within_roots(path: str, roots) -> bool:
    return any(is_within(path, root) for root in roots)


def resolve_requested_path(working_directory: str | None, workspace: str) -> str:
    """Join a requested working directory onto the workspace and canonicalize it.

    None or blank selects the workspace itself. Absolute paths are taken as-is.
    """
    if working_directory is None or not str(working_directory).strip():
        return canonicalize(workspace)
    requested = os.path.expanduser(str(working_directory))
    if not os.path.isabs(requested):
        requested = os.path.join(workspace, requested)
    return canonicalize(requested)


def resolve_working_directory(working_directory: str | None, workspace: str,
                              allowed_roots, options) -> str:
    """Return the canonical working directory, or raise.

    Raises UnauthorizedError when the canonical path lies outside every
    allowed root, DirectoryNotFoundError when it is not an existing directory.
    """
    resolved = resolve_requested_path(working_directory, workspace)

    if not is_within_roots(resolved, allowed_roots):
        raw = (f"Working directory '{working_directory}' is not within allowed paths: "
               f"{', '.join(allowed_roots)}")
        raise UnauthorizedError(sanitize(raw, PATH_UNAUTHORIZED, options), detail=raw)

    if not os.path.isdir(resolved):
        raw = f"Working directory '{working_directory or resolved}' does not exist"
        raise DirectoryNotFoundError(sanitize(raw, PATH_NOT_FOUND, options), detail=raw)

    return resolved
