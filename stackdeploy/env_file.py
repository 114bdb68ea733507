"""
Env File Export

Materializes the ENV_FILE block at a fixed path and exports its values
into the run environment before the configuration is built.
"""

from pathlib import Path
from typing import Dict

from dotenv import dotenv_values

from stackdeploy.exceptions import FilesystemError


def load_env_file(content: str, path: Path) -> Dict[str, str]:
    """
    Write the env block to disk and parse it.

    Args:
        content: KEY=VALUE lines; `#` comments and blank lines are ignored
        path: Where the block is materialized

    Returns:
        Parsed variables (keys without a value are dropped)

    Raises:
        FilesystemError: If the file cannot be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    except OSError as e:
        raise FilesystemError(f"Cannot write env file {path}", context=e.strerror)

    env_vars = dotenv_values(path)
    return {key: value for key, value in env_vars.items() if value is not None}
