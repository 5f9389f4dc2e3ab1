"""
Working-directory policy.

A chat request may ask the provider CLI to run in a specific directory.
The directory must exist and resolve (after following symlinks) under one
of the configured allowed roots.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

from .exceptions import ValidationError

logger = logging.getLogger("WorkspacePolicy")


def is_path_allowed(target: Path, allowed_roots: Iterable[Path]) -> bool:
    """Check whether a resolved path is inside one of the allowed roots."""
    return any(target == root or target.is_relative_to(root) for root in allowed_roots)


def resolve_working_dir(cwd: Optional[str], allowed_roots: Iterable[Path]) -> Optional[str]:
    """Validate a requested working directory.

    Args:
        cwd: Requested directory (None or empty means "inherit the server's")
        allowed_roots: Resolved root directories

    Returns:
        The resolved directory as a string, or None when no cwd was requested

    Raises:
        ValidationError: If the directory is missing or outside every allowed root
    """
    if cwd is None or not cwd.strip():
        return None

    target = Path(cwd).expanduser()
    try:
        resolved = target.resolve(strict=True)
    except (OSError, RuntimeError):
        raise ValidationError(f"Working directory does not exist: {cwd}")

    if not resolved.is_dir():
        raise ValidationError(f"Working directory is not a directory: {cwd}")

    if not is_path_allowed(resolved, list(allowed_roots)):
        logger.warning(f"Rejected working directory outside allowed roots: {resolved}")
        raise ValidationError(f"Working directory is not allowed: {cwd}")

    return str(resolved)
