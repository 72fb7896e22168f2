"""Configured path resolution.

Repository locations given in config files or on the command line may use
`~`, `${workspaceFolder}`, `${env:NAME}` and `${NAME}`.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

__all__ = [
    "resolve_configured_path",
]

_PLACEHOLDER = re.compile(r"\$\{(env:)?([A-Za-z_][A-Za-z0-9_]*)\}")


def resolve_configured_path(
    raw: str,
    workspace_dir: Path | None = None,
    document_dir: Path | None = None,
) -> Path | None:
    """Resolve a configured path to an absolute path.

    Args:
        raw: Path as written by the user.
        workspace_dir: Value of `${workspaceFolder}`; also the base for
            relative paths. Defaults to the current directory.
        document_dir: Base for relative paths when no workspace is known.

    Returns:
        The absolute path, or None when `raw` is blank.

    Example:
        >>> resolve_configured_path("${workspaceFolder}/templates", Path("/work"))
        PosixPath('/work/templates')
    """
    text = raw.strip()
    if not text:
        return None

    workspace = workspace_dir or document_dir or Path.cwd()

    def substitute(match: re.Match[str]) -> str:
        is_env, name = match.group(1), match.group(2)
        if not is_env and name == "workspaceFolder":
            return str(workspace)
        return os.environ.get(name, "")

    path = Path(_PLACEHOLDER.sub(substitute, text)).expanduser()
    if not path.is_absolute():
        path = workspace / path
    return Path(os.path.normpath(path))
