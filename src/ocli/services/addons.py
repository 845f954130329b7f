"""Addon search path synchronization.

Keeps two files in step with the addon list from ocli.yml (or the
command line):

- the Odoo server config (``addons_path = a,b,c``)
- the Pyright config in the project directory (``extraPaths``)
"""

import json
from pathlib import Path
from typing import Iterable

from ocli.core.exceptions import ConfigurationError


ADDONS_PATH_KEY = "addons_path"
EXTRA_PATHS_KEY = "extraPaths"
TOOL_CONFIG_NAME = "pyrightconfig.json"


def clean_paths(paths: Iterable[str]) -> list[str]:
    """Trim entries and drop empty ones, keeping input order.

    Comma-joined entries are split so that ``["/a,/b"]`` and
    ``["/a", "/b"]`` give the same result.
    """
    cleaned = []
    for entry in paths:
        for part in entry.split(","):
            part = part.strip()
            if part:
                cleaned.append(part)
    return cleaned


def update_server_config(config_path: Path, paths: Iterable[str]) -> str:
    """Rewrite (or append) the addons_path line of an Odoo config.

    The first line whose stripped text starts with ``addons_path`` is
    replaced; every other line is kept verbatim and in order.

    Returns:
        The new addons_path value

    Raises:
        ConfigurationError: If the file cannot be read or written
    """
    addons_path = ",".join(clean_paths(paths))
    new_line = f"{ADDONS_PATH_KEY} = {addons_path}"

    try:
        content = config_path.read_text()
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read Odoo config: {config_path}",
            details=[str(e)],
        ) from e

    lines = content.split("\n")
    for i, line in enumerate(lines):
        if line.strip().startswith(ADDONS_PATH_KEY):
            lines[i] = new_line
            break
    else:
        if lines and lines[-1] == "":
            # Keep the trailing newline after the appended line
            lines.insert(len(lines) - 1, new_line)
        else:
            lines.append(new_line)

    try:
        config_path.write_text("\n".join(lines))
    except OSError as e:
        raise ConfigurationError(
            f"Failed to write Odoo config: {config_path}",
            details=[str(e)],
        ) from e

    return addons_path


def update_tool_config(config_path: Path, paths: Iterable[str]) -> list[str]:
    """Replace ``extraPaths`` in a JSON tool config.

    Other top-level keys are passed through unchanged; the file is
    rewritten with 4-space indentation.

    Returns:
        The list written to extraPaths

    Raises:
        ConfigurationError: If the file is missing, not JSON, or not an object
    """
    try:
        data = json.loads(config_path.read_text())
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read {config_path.name}: {config_path}",
            details=[str(e)],
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Failed to parse {config_path.name}: {config_path}",
            details=[str(e)],
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path.name} must contain a JSON object: {config_path}")

    extra_paths = clean_paths(paths)
    data[EXTRA_PATHS_KEY] = extra_paths

    try:
        config_path.write_text(json.dumps(data, indent=4))
    except OSError as e:
        raise ConfigurationError(
            f"Failed to write {config_path.name}: {config_path}",
            details=[str(e)],
        ) from e

    return extra_paths
