"""
Path utilities for Skillforge.

Provides consistent path resolution for the global and project-local source
stores, runtime stores, configuration files, and fallback logs.
"""

import os
from pathlib import Path

PROJECT_DIR_NAME = ".skillforge"


def get_skillforge_home() -> Path:
    """
    Get the Skillforge home directory.

    Resolution order:
    1. SKILLFORGE_HOME environment variable
    2. Default: ~/.skillforge

    Returns:
        Path to the Skillforge home directory.
    """
    env_home = os.environ.get("SKILLFORGE_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path.home() / PROJECT_DIR_NAME


def get_global_config_path() -> Path:
    """
    Get the path to the global configuration file.

    Returns:
        Path to ~/.skillforge/config.yaml
    """
    return get_skillforge_home() / "config.yaml"


def get_global_source_store() -> Path:
    """
    Get the global source store.

    Returns:
        Path to ~/.skillforge/skills/
    """
    return get_skillforge_home() / "skills"


def get_global_runtime_store() -> Path:
    """
    Get the global runtime store.

    Returns:
        Path to ~/.skillforge/runtime/
    """
    return get_skillforge_home() / "runtime"


def find_project_root(start_path: Path | None = None) -> Path | None:
    """
    Find the project root by traversing up the directory tree.

    The project root is the nearest directory containing a .skillforge/
    directory. The global home never counts as a project marker, so a
    working directory under the user's home does not turn the home into
    a project.

    Args:
        start_path: Starting directory to search from. Defaults to cwd.

    Returns:
        Path to the project root if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()
    current = Path(start_path).resolve()
    global_home = get_skillforge_home().resolve()

    while True:
        candidate = current / PROJECT_DIR_NAME
        if candidate.is_dir() and candidate.resolve() != global_home:
            return current
        if current == current.parent:
            return None
        current = current.parent


def get_project_dir(project_root: Path) -> Path:
    """Get the .skillforge directory of a project."""
    return project_root / PROJECT_DIR_NAME


def get_project_source_store(project_root: Path) -> Path:
    """
    Get a project's source store.

    Returns:
        Path to <project>/.skillforge/skills/
    """
    return get_project_dir(project_root) / "skills"


def get_project_runtime_store(project_root: Path) -> Path:
    """
    Get a project's runtime store.

    Returns:
        Path to <project>/.skillforge/runtime/
    """
    return get_project_dir(project_root) / "runtime"


def get_project_config_path(project_root: Path) -> Path:
    """Get the project configuration file path."""
    return get_project_dir(project_root) / "config.yaml"


def get_fallback_logs_dir(cwd: Path | None = None) -> Path:
    """
    Get the directory holding fallback access logs.

    Fallback logs live under the working directory so that they stay
    writable when the runtime store is not (sandboxed agents).

    Args:
        cwd: Working directory. Defaults to the current one.

    Returns:
        Path to <cwd>/.skillforge/logs/
    """
    return (cwd or Path.cwd()) / PROJECT_DIR_NAME / "logs"


def expand_path(path: str | Path) -> Path:
    """
    Expand a path string, handling ~ and environment variables.

    Args:
        path: Path string or Path object.

    Returns:
        Expanded and resolved Path.
    """
    if isinstance(path, str):
        path = os.path.expandvars(path)
        path = os.path.expanduser(path)
    return Path(path).resolve()


def ensure_directory(path: Path, mode: int = 0o755) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path.
        mode: Permission mode for created directories.

    Returns:
        The path (for chaining).
    """
    path.mkdir(parents=True, exist_ok=True, mode=mode)
    return path
