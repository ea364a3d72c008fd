"""Storage utilities for Skillforge."""

from skillforge.storage.atomic import (
    atomic_write_text,
    make_staging_dir,
    publish_directory,
    recover_directory,
    skill_lock,
)
from skillforge.storage.paths import (
    ensure_directory,
    expand_path,
    find_project_root,
    get_fallback_logs_dir,
    get_global_config_path,
    get_global_runtime_store,
    get_global_source_store,
    get_project_config_path,
    get_project_dir,
    get_project_runtime_store,
    get_project_source_store,
    get_skillforge_home,
)

__all__ = [
    "atomic_write_text",
    "ensure_directory",
    "expand_path",
    "find_project_root",
    "get_fallback_logs_dir",
    "get_global_config_path",
    "get_global_runtime_store",
    "get_global_source_store",
    "get_project_config_path",
    "get_project_dir",
    "get_project_runtime_store",
    "get_project_source_store",
    "get_skillforge_home",
    "make_staging_dir",
    "publish_directory",
    "recover_directory",
    "skill_lock",
]
