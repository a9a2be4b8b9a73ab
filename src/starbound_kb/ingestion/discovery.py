"""Discovery module for locating input files."""

from collections.abc import Iterable
from pathlib import Path

from starbound_kb.logging import get_logger

logger = get_logger(__name__)


def find_files(
    root: Path,
    extensions: Iterable[str],
    recursive: bool = True,
) -> list[Path]:
    """
    Find files under a root directory by extension.

    Hidden and symlinked directories are skipped. Unreadable directories
    are skipped silently so one permission error never aborts a scan.

    Args:
        root: Directory to scan
        extensions: Filename suffixes to match, e.g. {".recipe"}
        recursive: Descend into subdirectories

    Returns:
        Sorted list of matching file paths (empty if root does not exist)
    """
    suffixes = tuple(extensions)
    results: list[Path] = []

    if not root.is_dir():
        return results

    pending = [root]
    while pending:
        current = pending.pop()
        try:
            entries = list(current.iterdir())
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", current, e)
            continue

        for entry in entries:
            # Directory symlinks are never followed
            if entry.is_symlink() and entry.is_dir():
                continue
            if entry.is_dir():
                if recursive and not entry.name.startswith("."):
                    pending.append(entry)
            elif entry.name.endswith(suffixes):
                results.append(entry)

    return sorted(results)


def read_text(path: Path) -> str | None:
    """
    Read a whole file as UTF-8 text.

    Args:
        path: File to read

    Returns:
        File contents, or None if the file is missing or unreadable
    """
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Failed to read %s: %s", path, e, extra={"source_file": str(path)})
        return None
