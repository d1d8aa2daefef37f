"""
Output format utilities for compver CLI commands.

Provides functions to format data as JSON, JSONL and YAML. The "table"
format is rendered by compver.render instead.
"""

import json
import os
from typing import Dict, Any, Iterator, List, Union

import yaml

FORMATS = ('table', 'json', 'jsonl', 'yaml')

Data = Union[Dict[str, Any], List[Dict[str, Any]]]


def format_output(data: Data, format: str) -> Iterator[str]:
    """
    Format data according to the specified format.

    Args:
        data: A single object or a list of objects
        format: Output format (json, jsonl, yaml)

    Yields:
        Formatted strings for output
    """
    if format == "jsonl":
        yield from format_jsonl(data)
    elif format == "json":
        yield from format_json(data)
    elif format == "yaml":
        yield from format_yaml(data)
    else:
        raise ValueError(f"Unknown format: {format}")


def format_jsonl(data: Data) -> Iterator[str]:
    """Format data as JSON Lines (one JSON object per line)."""
    items = [data] if isinstance(data, dict) else data
    for item in items:
        yield json.dumps(item, ensure_ascii=False)


def format_json(data: Data) -> Iterator[str]:
    """Format data as a single JSON document."""
    yield json.dumps(data, ensure_ascii=False, indent=2)


def format_yaml(data: Data) -> Iterator[str]:
    """Format data as YAML."""
    yield yaml.safe_dump(data, default_flow_style=False, allow_unicode=True,
                         sort_keys=False).rstrip("\n")


def get_format_from_env(default: str = 'table') -> str:
    """
    Get output format from environment variable.

    Checks COMPVER_FORMAT environment variable.

    Args:
        default: Default format if not specified

    Returns:
        Format string
    """
    format = os.environ.get('COMPVER_FORMAT', default).lower()
    if format not in FORMATS:
        return default
    return format
