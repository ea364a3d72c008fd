"""
Configuration loader for Skillforge.

Loads and merges configuration from multiple sources:
1. Default values
2. Global config (~/.skillforge/config.yaml)
3. Project config (<project>/.skillforge/config.yaml)
4. Environment variables (SKILLFORGE_<SECTION>_<KEY>)
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from skillforge.config.merger import deep_merge, set_nested_value
from skillforge.config.schema import CURRENT_CONFIG_VERSION, Config
from skillforge.errors import ConfigurationError
from skillforge.storage.paths import (
    find_project_root,
    get_global_config_path,
    get_project_config_path,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "SKILLFORGE_"

# Environment variables with a meaning of their own, never config overrides.
RESERVED_ENV_VARS = {"SKILLFORGE_HOME", "SKILLFORGE_RUN_ID"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration dictionary.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML: {e}", path) from e
    except OSError as e:
        raise ConfigurationError(f"cannot read config: {e}", path) from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError("config file must be a YAML mapping", path)
    return content


def _check_version(data: dict[str, Any], path: Path) -> bool:
    """Return False when a config file should be ignored because of its version."""
    version = data.get("version", CURRENT_CONFIG_VERSION)
    if not isinstance(version, int) or version <= 0:
        logger.warning(f"Ignoring {path}: unsupported config version {version!r}")
        return False
    if version > CURRENT_CONFIG_VERSION:
        logger.warning(
            f"{path} declares config version {version}, newer than "
            f"{CURRENT_CONFIG_VERSION}; unknown fields are ignored"
        )
    return True


def _load_layer(path: Path) -> dict[str, Any]:
    data = load_yaml_file(path)
    if not data or not _check_version(data, path):
        return {}
    # Files never downgrade the schema version of the merged result.
    data.pop("version", None)
    return data


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern SKILLFORGE_<SECTION>_<KEY>=<value>,
    where SECTION is a top-level config section and KEY the rest of the name,
    e.g. SKILLFORGE_SEARCH_TOKENIZER=cjk or SKILLFORGE_BUILD_MAX_STUB_LINES=80.

    Args:
        config: Configuration dictionary to modify.

    Returns:
        Configuration with environment overrides applied.
    """
    sections = set(Config.model_fields)

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key in RESERVED_ENV_VARS:
            continue

        section, _, field = key[len(ENV_PREFIX) :].lower().partition("_")
        if section not in sections or not field:
            continue

        config = set_nested_value(config, f"{section}.{field}", _parse_env_value(value))

    return config


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to the appropriate type.

    Args:
        value: String value from environment.

    Returns:
        Parsed value (bool, int, float, list, or string).
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    if re.match(r"^-?\d+$", value):
        return int(value)

    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)

    if "," in value:
        return [item.strip() for item in value.split(",")]

    return value


def load_config(
    project_root: Path | None = None,
    start_path: Path | None = None,
    skip_project: bool = False,
    skip_env: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Loading order (later overrides earlier):
    1. Default values from Config model
    2. Global config (~/.skillforge/config.yaml)
    3. Project config (<project>/.skillforge/config.yaml) if a project is found
    4. Environment variables (SKILLFORGE_*)

    Args:
        project_root: Project root. Discovered from start_path when omitted.
        start_path: Starting path to search for a project. Defaults to cwd.
        skip_project: Skip loading project configuration.
        skip_env: Skip environment variable overrides.

    Returns:
        Merged and validated Config object.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    config_dict = Config().model_dump()

    global_path = get_global_config_path()
    if global_path.exists():
        config_dict = deep_merge(config_dict, _load_layer(global_path))

    if not skip_project:
        if project_root is None:
            project_root = find_project_root(start_path)
        if project_root is not None:
            project_path = get_project_config_path(project_root)
            if project_path.exists():
                config_dict = deep_merge(config_dict, _load_layer(project_path))

    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    try:
        config = Config.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"configuration validation failed: {e}") from e

    logger.debug(
        f"Loaded config (tokenizer={config.search.tokenizer}, "
        f"targets={config.deploy.default_targets})"
    )
    return config
