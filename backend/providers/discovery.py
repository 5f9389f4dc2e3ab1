"""
Binary discovery for provider CLIs.

Resolves executables by checking well-known install locations before the
search path, so that user-local installs are found even when the server
was started with a minimal PATH.
"""

import logging
import os
import shutil
import sys
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

logger = logging.getLogger("BinaryDiscovery")

IS_WINDOWS = sys.platform == "win32"

# Common git-bash install locations on Windows
GIT_BASH_CANDIDATES = [
    r"C:\Program Files\Git\bin\bash.exe",
    r"C:\Program Files (x86)\Git\bin\bash.exe",
]


def executable_name(name: str) -> str:
    """Platform-specific executable file name."""
    return f"{name}.exe" if IS_WINDOWS else name


def user_install_dirs() -> List[Path]:
    """Per-user install directories checked before PATH."""
    home = Path.home()
    return [
        home / ".local" / "bin",
        home / ".npm-global" / "bin",
    ]


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def find_binary(
    name: str,
    override: Optional[str] = None,
    search_dirs: Optional[Iterable[Path]] = None,
) -> Optional[str]:
    """Resolve a CLI executable.

    Checks, in order:
    1. An explicitly configured override path
    2. Known per-user install directories
    3. The search path (shutil.which)

    Args:
        name: Base executable name (e.g. "claude")
        override: Configured path that takes precedence when it exists
        search_dirs: Directories to check before PATH (defaults to user_install_dirs())

    Returns:
        Absolute path to the executable, or None if not found
    """
    if override:
        override_path = Path(override).expanduser()
        if _is_executable(override_path):
            return str(override_path)
        resolved = shutil.which(override)
        if resolved:
            return resolved
        logger.warning(f"Configured binary for {name} not found: {override}")
        return None

    exe = executable_name(name)
    dirs = user_install_dirs() if search_dirs is None else list(search_dirs)
    for directory in dirs:
        candidate = directory / exe
        if _is_executable(candidate):
            logger.debug(f"Found {name} at {candidate}")
            return str(candidate)

    return shutil.which(name)


def find_git_bash(env: Mapping[str, str]) -> Optional[str]:
    """Locate git-bash on Windows (needed by Claude Code there)."""
    candidates = []
    exe_path = env.get("EXEPATH")
    if exe_path:
        candidates.append(str(Path(exe_path) / "bash.exe"))
    candidates.extend(GIT_BASH_CANDIDATES)

    for candidate in candidates:
        if Path(candidate).exists():
            return candidate

    return shutil.which("bash")
