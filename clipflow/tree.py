"""Pure functions turning scanner output into the folder tree shown to the user.

Every function returns new entries and never mutates its input. Entry ids are
absolute paths, so a folder id or file id is also its location on disk.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterator

from clipflow.models import FileEntry, FolderEntry, RawNode, StatusMap


def merge_status(file: FileEntry, status_map: StatusMap) -> FileEntry:
    """Project the stored status of a file onto its tree entry.

    Files without a stored record are returned unchanged.
    """
    record = status_map.get(file.path)
    if record is None:
        return file
    return replace(
        file,
        status=record.status,
        progress=record.progress,
        error=record.error,
        transcript=record.transcript,
        summary=record.summary,
        summary_status=record.summary_status,
        summary_error=record.summary_error,
    )


def _build_file(node: RawNode, status_map: StatusMap) -> FileEntry:
    entry = FileEntry(
        id=node.path,
        name=node.name,
        path=node.path,
        size=node.size,
        extension=node.extension,
        modified=node.modified,
    )
    return merge_status(entry, status_map)


def build_tree(raw: RawNode, status_map: StatusMap) -> FolderEntry:
    """Convert a scanned directory into a folder tree with statuses merged in.

    Children keep the scanner's order. Every folder starts expanded.

    Args:
        raw: Scanner output for the root directory
        status_map: Current status records keyed by path

    Returns:
        Root folder entry

    Raises:
        ValueError: If raw describes a file instead of a directory
    """
    if not raw.is_dir:
        raise ValueError(f"Tree root must be a directory: {raw.path}")

    files: list[FileEntry] = []
    subfolders: list[FolderEntry] = []
    for child in raw.children:
        if child.is_dir:
            subfolders.append(build_tree(child, status_map))
        else:
            files.append(_build_file(child, status_map))

    return FolderEntry(
        id=raw.path,
        name=raw.name,
        path=raw.path,
        files=tuple(files),
        subfolders=tuple(subfolders),
        is_expanded=True,
    )


def toggle_folder(tree: FolderEntry, folder_id: str) -> FolderEntry:
    """Return a tree where only the folder with folder_id has its expand flag flipped.

    Subtrees that do not contain the folder are reused as-is. An unknown id
    returns the input tree unchanged.
    """
    if tree.id == folder_id:
        return replace(tree, is_expanded=not tree.is_expanded)

    subfolders = tuple(toggle_folder(folder, folder_id) for folder in tree.subfolders)
    if all(new is old for new, old in zip(subfolders, tree.subfolders)):
        return tree
    return replace(tree, subfolders=subfolders)


def find_folder(tree: FolderEntry, folder_id: str) -> FolderEntry | None:
    if tree.id == folder_id:
        return tree
    for folder in tree.subfolders:
        found = find_folder(folder, folder_id)
        if found is not None:
            return found
    return None


def find_file(tree: FolderEntry, path: str) -> FileEntry | None:
    for file in _iter_files(tree, visible_only=False):
        if file.path == path:
            return file
    return None


def _iter_files(folder: FolderEntry, *, visible_only: bool) -> Iterator[FileEntry]:
    yield from folder.files
    for subfolder in folder.subfolders:
        if visible_only and not subfolder.is_expanded:
            continue
        yield from _iter_files(subfolder, visible_only=visible_only)


def list_all_files(tree: FolderEntry) -> list[FileEntry]:
    """Every file in the tree, pre-order: a folder's own files before its subfolders."""
    return list(_iter_files(tree, visible_only=False))


def list_visible_files(tree: FolderEntry) -> list[FileEntry]:
    """Like list_all_files, but skips the contents of collapsed folders.

    The root's own files are always visible, even when the root is collapsed.
    """
    if not tree.is_expanded:
        return list(tree.files)
    return list(_iter_files(tree, visible_only=True))


def count_files(tree: FolderEntry) -> int:
    return sum(1 for _ in _iter_files(tree, visible_only=False))


def collect_file_paths(raw: RawNode) -> set[str]:
    """Paths of every file below raw, used to prune statuses after a scan."""
    if not raw.is_dir:
        return {raw.path}
    paths: set[str] = set()
    for child in raw.children:
        paths |= collect_file_paths(child)
    return paths
