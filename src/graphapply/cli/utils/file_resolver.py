"""Desired-state path resolution for CLI."""

from pathlib import Path

DEFAULT_FILENAMES = ("graphapply.yaml", "graphapply.yml", "graphapply.json")


def resolve_file_path(file_path: str) -> Path:
    """
    Resolve a desired-state path given on the command line.

    A directory resolves to the first of graphapply.yaml, graphapply.yml or
    graphapply.json inside it. Relative paths are taken from the current
    directory.

    Args:
        file_path: User-provided file or directory path

    Returns:
        Resolved Path object

    Raises:
        FileNotFoundError: If no desired-state file can be found
    """
    path = Path(file_path)
    if not path.is_absolute():
        path = Path.cwd() / path
    path = path.resolve()

    if path.is_dir():
        for name in DEFAULT_FILENAMES:
            candidate = path / name
            if candidate.is_file():
                return candidate
        raise FileNotFoundError(
            f"No desired-state file in {file_path}. "
            f"Expected one of: {', '.join(DEFAULT_FILENAMES)}."
        )

    if not path.exists():
        raise FileNotFoundError(
            f"File not found: {file_path}. Please check the file path and try again."
        )

    return path
