"""Project file discovery.

Walks a project tree and reads every file whose language some adapter
consumes into a :class:`~routelens.models.SourceFile`. Pattern matching uses
:mod:`pathspec` with gitignore semantics: the project's ``.gitignore`` is
honoured, ``scan.include`` narrows the walk and ``scan.exclude`` prunes it.
Version-control, dependency and build directories are always skipped.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

import pathspec

from routelens.exceptions import InvalidUsageError
from routelens.models import ScanConfig, SourceFile

logger = logging.getLogger(__name__)

LANGUAGE_BY_SUFFIX: dict[str, str] = {
    ".py": "python",
    ".java": "java",
    ".cs": "csharp",
    ".rs": "rust",
    ".php": "php",
    ".scala": "scala",
    ".sc": "scala",
    ".routes": "routes",
    ".ex": "elixir",
    ".exs": "elixir",
    ".gleam": "gleam",
    ".rb": "ruby",
    ".ru": "ruby",
    ".yaml": "yaml",
    ".yml": "yaml",
}
"""File suffix to the language tag adapters select files by."""

LANGUAGE_BY_NAME: dict[str, str] = {
    "routes": "routes",
}
"""Extension-less file names with a known language (Play's ``conf/routes``)."""

ALWAYS_SKIP = frozenset(
    {
        ".git", ".hg", ".svn", "__pycache__", ".tox", ".venv", "venv", ".mypy_cache", ".ruff_cache",
        ".pytest_cache", "node_modules", "vendor", "target", "build", "_build", "deps", "bin", "obj",
        ".gradle", ".idea", ".bsp", ".metals",
    }
)


def language_of(path: Union[str, Path]) -> Optional[str]:
    """Language tag for *path*, or ``None`` if no adapter reads such files."""
    p = Path(path)
    return LANGUAGE_BY_NAME.get(p.name) or LANGUAGE_BY_SUFFIX.get(p.suffix.lower())


def _load_gitignore(root: Path) -> Optional[pathspec.PathSpec]:
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        return None
    lines = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
    return pathspec.PathSpec.from_lines("gitignore", lines)


def discover_files(project_root: Union[str, Path], scan: Optional[ScanConfig] = None) -> list[SourceFile]:
    """Read the project's source files, sorted by relative path.

    Args:
        project_root: Directory to walk.
        scan: Include/exclude patterns, ``.gitignore`` handling and the size
            limit. Defaults to :class:`~routelens.models.ScanConfig`.

    Returns:
        One :class:`SourceFile` per readable file with a known language.
        ``SourceFile.path`` is relative to *project_root*, with ``/``
        separators. Oversized and unreadable files are logged and skipped.

    Raises:
        InvalidUsageError: If *project_root* is not a directory.
    """
    scan = scan or ScanConfig()
    root = Path(project_root)
    if not root.is_dir():
        raise InvalidUsageError(f"Not a directory: {root}")

    include_spec = pathspec.PathSpec.from_lines("gitignore", scan.include) if scan.include else None
    exclude_spec = pathspec.PathSpec.from_lines("gitignore", scan.exclude) if scan.exclude else None
    gitignore_spec = _load_gitignore(root) if scan.respect_gitignore else None

    def _ignored(rel_path: str) -> bool:
        if gitignore_spec is not None and gitignore_spec.match_file(rel_path):
            return True
        return exclude_spec is not None and exclude_spec.match_file(rel_path)

    candidates: list[tuple[str, Path, str]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"

        # Prune in place so os.walk never descends into skipped directories.
        dirnames[:] = sorted(
            d for d in dirnames if d not in ALWAYS_SKIP and not _ignored(prefix + d + "/")
        )

        for fname in filenames:
            language = language_of(fname)
            if language is None:
                continue
            rel_path = prefix + fname
            if _ignored(rel_path):
                continue
            if include_spec is not None and not include_spec.match_file(rel_path):
                continue
            candidates.append((rel_path, Path(dirpath) / fname, language))

    files: list[SourceFile] = []
    for rel_path, path, language in sorted(candidates):
        try:
            size = path.stat().st_size
            if size > scan.max_file_size:
                logger.debug("Skipping %s: %d bytes exceeds the size limit", rel_path, size)
                continue
            content = path.read_bytes()
        except OSError as exc:
            logger.warning("Cannot read %s: %s", rel_path, exc)
            continue
        files.append(SourceFile(path=rel_path, language=language, content=content))

    logger.info("Discovered %d source files under %s", len(files), root)
    return files
