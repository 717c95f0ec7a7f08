import os
from pathlib import Path


def find_repo_root(start: Path | None = None, marker: str = "pyproject.toml") -> Path:
    """Walk upwards from ``start`` until a folder containing ``marker`` is found.

    ``FINBOARD_HOME`` takes precedence when set, so installed copies can keep
    their data outside site-packages.

    Args:
        start: Optional starting path. Defaults to the location of this file.
        marker: Filename used to identify the repository root.

    Returns:
        The repository root as a :class:`Path`.
    """
    home = os.environ.get("FINBOARD_HOME")
    if home:
        return Path(home)
    p = (start or Path(__file__).resolve()).parent
    for candidate in [p, *p.parents]:
        if (candidate / marker).exists():
            return candidate
    return Path.cwd()
