"""Unified diff parsing.

Adapts unidiff's PatchSet into FileChange records with per-line
insert/delete/normal tags. Parsing is pure: the same text always produces the
same structure.
"""

from unidiff import PatchedFile, PatchSet, UnidiffParseError

from models.activity import FileChange, Hunk, LineChange

DEV_NULL = "/dev/null"


class DiffParseError(ValueError):
    """Raised when diff text is structurally invalid."""


def _strip_prefix(path: str | None) -> str | None:
    if path is None or path == DEV_NULL:
        return None
    if path.startswith(("a/", "b/")):
        return path[2:]
    return path


def _line_content(value: str) -> str:
    return value[:-1] if value.endswith("\n") else value


def _convert_hunk(hunk) -> Hunk:
    section = hunk.section_header.strip()
    header = (
        f"@@ -{hunk.source_start},{hunk.source_length} "
        f"+{hunk.target_start},{hunk.target_length} @@"
    )
    if section:
        header = f"{header} {section}"

    changes: list[LineChange] = []
    for line in hunk:
        content = _line_content(line.value)
        if line.is_added:
            changes.append(LineChange(type="insert", content=content, new_line=line.target_line_no))
        elif line.is_removed:
            changes.append(LineChange(type="delete", content=content, old_line=line.source_line_no))
        elif line.is_context:
            changes.append(
                LineChange(
                    type="normal",
                    content=content,
                    old_line=line.source_line_no,
                    new_line=line.target_line_no,
                )
            )
        # "\ No newline at end of file" markers carry no line

    return Hunk(
        header=header,
        old_start=hunk.source_start,
        old_lines=hunk.source_length,
        new_start=hunk.target_start,
        new_lines=hunk.target_length,
        section=section,
        changes=changes,
    )


def _convert_file(patched_file: PatchedFile) -> FileChange:
    old_path = _strip_prefix(patched_file.source_file)
    new_path = _strip_prefix(patched_file.target_file)
    copied = any(info.startswith("copy from ") for info in patched_file.patch_info or [])

    if patched_file.is_removed_file:
        kind = "delete"
        new_path = None
    elif copied:
        kind = "add"
    elif patched_file.is_added_file:
        kind = "add"
        old_path = None
    elif patched_file.is_rename or old_path != new_path:
        kind = "rename"
    else:
        kind = "modify"

    hunks = [_convert_hunk(hunk) for hunk in patched_file]
    return FileChange(
        new_path=new_path,
        old_path=old_path,
        kind=kind,
        binary=patched_file.is_binary_file,
        hunks=hunks,
        additions=sum(1 for h in hunks for c in h.changes if c.type == "insert"),
        deletions=sum(1 for h in hunks for c in h.changes if c.type == "delete"),
    )


def parse_diff(text: str) -> list[FileChange]:
    """
    Parse unified diff text into per-file change records.

    Args:
        text: Output of `git diff` / `git show`, possibly covering many files.

    Returns:
        One FileChange per file in the diff, in diff order. Empty text gives [].

    Raises:
        DiffParseError: If unidiff rejects the text (e.g. a truncated hunk).
    """
    if not text or not text.strip():
        return []

    try:
        patch_set = PatchSet.from_string(text)
    except UnidiffParseError as e:
        raise DiffParseError(str(e)) from e

    return [_convert_file(patched_file) for patched_file in patch_set]


def has_insertions(change: FileChange) -> bool:
    """True if any hunk of the change inserts at least one line."""
    return any(line.type == "insert" for hunk in change.hunks for line in hunk.changes)
