#!/usr/bin/env python3

import copy
import os
import json
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

import logging
import sys

import toml
import yaml

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr)  # stdout is reserved for command output
    ]
)
logger = logging.getLogger("compver")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']
REPO_DIR_NAME = '.compver'


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        "registry": {
            "directory": REPO_DIR_NAME,
            "file": "components.json",
            "schema_version": "1.0.0",
        },
        "git": {
            "remote": "origin",
            "timeout": 30,
        },
        "tags": {
            "logic_paths": ["logic/", "src/logic/"],
        },
        "detection": {
            "min_confidence": "medium",
            # Extra glob patterns per component type, matched before built-in rules
            "patterns": {},
            # Added to the detector's built-in skip list
            "skip_directories": [],
        },
        "resync": {
            "repair_window_hours": 24,
            "initial_version": "1.0.0",
        },
        "deploy": {
            "environments": ["dev", "staging", "prod"],
        },
        "logging": {
            "level": "WARNING",
            "format": "%(levelname)s: %(message)s",
        },
    }


def get_config_path() -> Path:
    """Get the path to the user configuration file.

    Checks in order:
    1. COMPVER_CONFIG environment variable
    2. ~/.compver/ directory
    """
    if 'COMPVER_CONFIG' in os.environ:
        path = Path(os.environ['COMPVER_CONFIG']).expanduser()
        if path.exists():
            return path

    user_dir = Path.home() / REPO_DIR_NAME
    for filename in CONFIG_FILENAMES:
        path = user_dir / filename
        if path.exists():
            return path

    # If no file exists, return default path for saving
    return user_dir / 'config.json'


def get_repo_config_path(repo_root: str) -> Path:
    """Repository-level config, `.compver/config.*` under the work tree."""
    base = Path(repo_root) / REPO_DIR_NAME
    for filename in CONFIG_FILENAMES:
        path = base / filename
        if path.exists():
            return path
    return base / 'config.json'


def read_config_file(config_path: Path) -> Dict[str, Any]:
    """Read a JSON, TOML or YAML config file."""
    suffix = config_path.suffix.lower()
    if suffix == '.toml':
        with open(config_path, 'rb') as f:
            return tomllib.load(f)
    if suffix in ('.yaml', '.yml'):
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    with open(config_path, 'r') as f:
        return json.load(f)


def load_config(repo_root: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration: defaults, user file, repository file, environment."""
    config = get_default_config()

    paths = [get_config_path()]
    if repo_root:
        paths.append(get_repo_config_path(repo_root))

    for config_path in paths:
        if not config_path.exists():
            continue
        try:
            file_config = read_config_file(config_path)
            if isinstance(file_config, dict):
                config = merge_configs(config, file_config)
            else:
                logger.error(f"Ignoring {config_path}: top level must be a mapping")
        except (OSError, ValueError, tomllib.TOMLDecodeError, yaml.YAMLError) as e:
            logger.error(f"Error loading config from {config_path}: {e}")

    return apply_env_overrides(config)


def save_config(config: Dict[str, Any], config_path: Optional[Path] = None) -> Path:
    """Save configuration to file; the format follows the file suffix."""
    config_path = Path(config_path) if config_path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    suffix = config_path.suffix.lower()
    if suffix == '.toml':
        # tomllib is read-only
        with open(config_path, 'w') as f:
            toml.dump(config, f)
    elif suffix in ('.yaml', '.yml'):
        with open(config_path, 'w') as f:
            yaml.safe_dump(config, f, default_flow_style=False)
    else:
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=2)
            f.write('\n')

    logger.info(f"Configuration saved to {config_path}")
    return config_path


def merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = copy.deepcopy(base_config)

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: COMPVER_SECTION_KEY
    For example: COMPVER_GIT_REMOTE=upstream, COMPVER_RESYNC_REPAIR_WINDOW_HOURS=48
    """
    env_prefix = "COMPVER_"
    reserved = {"COMPVER_CONFIG"}

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key in reserved:
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        if value.lower() in ('true', 'yes', 'on'):
            typed_value: Any = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Longest config key that is a prefix of the remaining parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts = config_key.split('_')
                if key_parts[i:i + len(config_key_parts)] == config_key_parts:
                    if len(config_key_parts) > best_match_len:
                        best_match_len = len(config_key_parts)
                        matched_key = config_key

            if not matched_key:
                break

            if i + best_match_len == len(key_parts):
                current_level[matched_key] = typed_value
                break

            if isinstance(current_level[matched_key], dict):
                current_level = current_level[matched_key]
                i += best_match_len
            else:
                break

    return config


def configure_logging(config: Optional[Dict[str, Any]] = None, verbose: bool = False) -> None:
    """Set the package log level and format from config; --verbose forces DEBUG."""
    settings = (config or {}).get("logging", {})
    level_name = "DEBUG" if verbose else str(settings.get("level", "WARNING")).upper()
    level = getattr(logging, level_name, logging.WARNING)

    logger.setLevel(level)
    fmt = settings.get("format")
    if fmt:
        for handler in logging.getLogger().handlers:
            handler.setFormatter(logging.Formatter(fmt))
