"""Load codebases and files into RLM context variables."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = [
    ".ts", ".tsx", ".js", ".jsx", ".py", ".java", ".go", ".rs", ".c", ".cpp", ".h",
]
DEFAULT_EXCLUDE = [
    "node_modules", ".git", "dist", "build", ".next", "coverage", "__pycache__",
    ".venv", ".mypy_cache", ".pytest_cache",
]
MAX_TREE_DEPTH = 5


class ContextBuildOptions(BaseModel):
    extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    max_file_size: int = 100_000  # Bytes per file
    max_files: int = 100
    include_metadata: bool = True


class FileMetadata(BaseModel):
    path: str
    size: int
    last_modified: datetime
    extension: str
    lines: int | None = None


class CodebaseStats(BaseModel):
    total_files: int = 0
    total_size: int = 0
    file_types: dict[str, int] = Field(default_factory=dict)


class CodebaseContext(BaseModel):
    files: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, FileMetadata] | None = None
    stats: CodebaseStats = Field(default_factory=CodebaseStats)


class DirectoryNode(BaseModel):
    name: str
    type: Literal["file", "directory"]
    path: str
    children: list["DirectoryNode"] | None = None


def _iter_files(root: Path, options: ContextBuildOptions):
    """Yield candidate files under root in a stable order, skipping excluded names."""
    try:
        entries = sorted(root.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {root}: {e}")
        return

    for entry in entries:
        if entry.name in options.exclude:
            continue
        if entry.is_dir():
            yield from _iter_files(entry, options)
        elif entry.is_file():
            if options.extensions and entry.suffix not in options.extensions:
                continue
            yield entry


def build_codebase_context(
    root_path: str | Path, options: ContextBuildOptions | None = None
) -> CodebaseContext:
    """Read source files under a directory into a path -> content mapping.

    Files above ``max_file_size`` and files that cannot be decoded as UTF-8
    are skipped. Scanning stops after ``max_files`` files.
    """
    options = options or ContextBuildOptions()
    root = Path(root_path)
    context = CodebaseContext(metadata={} if options.include_metadata else None)

    for file_path in _iter_files(root, options):
        if context.stats.total_files >= options.max_files:
            break

        try:
            stat = file_path.stat()
            if stat.st_size > options.max_file_size:
                continue
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping {file_path}: {e}")
            continue

        relative = file_path.relative_to(root).as_posix()
        ext = file_path.suffix
        context.files[relative] = content
        context.stats.total_files += 1
        context.stats.total_size += stat.st_size
        context.stats.file_types[ext] = context.stats.file_types.get(ext, 0) + 1

        if context.metadata is not None:
            context.metadata[relative] = FileMetadata(
                path=relative,
                size=stat.st_size,
                last_modified=datetime.fromtimestamp(stat.st_mtime),
                extension=ext,
                lines=len(content.split("\n")),
            )

    logger.info(
        f"Loaded {context.stats.total_files} files "
        f"({format_bytes(context.stats.total_size)}) from {root}"
    )
    return context


def build_file_context(
    file_paths: list[str], workspace_root: str | Path | None = None
) -> dict[str, str]:
    """Read specific files, keyed by their path relative to the workspace root."""
    root = Path(workspace_root) if workspace_root else Path.cwd()
    context = {}

    for file_path in file_paths:
        full_path = (root / file_path).resolve()
        try:
            content = full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read {file_path}: {e}")
            continue

        try:
            key = full_path.relative_to(root.resolve()).as_posix()
        except ValueError:
            key = full_path.as_posix()
        context[key] = content

    return context


def build_directory_structure(
    root_path: str | Path, exclude: list[str] | None = None
) -> DirectoryNode:
    """Build a directory tree, directories first then files, alphabetically."""
    root = Path(root_path)
    excluded = exclude if exclude is not None else ["node_modules", ".git", "dist", "build"]

    def build_tree(path: Path, depth: int) -> DirectoryNode:
        relative = path.relative_to(root).as_posix() if path != root else ""
        if path.is_file():
            return DirectoryNode(name=path.name, type="file", path=relative)

        node = DirectoryNode(name=path.name, type="directory", path=relative, children=[])
        if depth > MAX_TREE_DEPTH:
            return node

        for entry in path.iterdir():
            if entry.name in excluded:
                continue
            try:
                node.children.append(build_tree(entry, depth + 1))
            except OSError as e:
                logger.debug(f"Skipping {entry}: {e}")

        node.children.sort(key=lambda c: (c.type != "directory", c.name))
        return node

    return build_tree(root, 0)


def build_context_summary(
    root_path: str | Path, options: ContextBuildOptions | None = None
) -> tuple[str, DirectoryNode]:
    """Lightweight summary from file metadata only; no file contents are read."""
    options = options or ContextBuildOptions()
    root = Path(root_path)

    total_files = 0
    total_size = 0
    file_types: dict[str, int] = {}
    for file_path in _iter_files(root, options):
        if total_files >= options.max_files:
            break
        try:
            total_size += file_path.stat().st_size
        except OSError:
            continue
        total_files += 1
        file_types[file_path.suffix] = file_types.get(file_path.suffix, 0) + 1

    types = ", ".join(f"{ext}: {count}" for ext, count in file_types.items())
    summary = (
        "Codebase Summary:\n"
        f"- Total Files: {total_files}\n"
        f"- Total Size: {format_bytes(total_size)}\n"
        f"- File Types: {types}"
    )
    return summary, build_directory_structure(root, options.exclude)


def format_bytes(num_bytes: int) -> str:
    """Format a byte count as a human-readable string, e.g. ``1.5 KB``."""
    if num_bytes == 0:
        return "0 Bytes"

    sizes = ["Bytes", "KB", "MB", "GB"]
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(sizes) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {sizes[i]}"
