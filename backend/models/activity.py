"""Data models for repository activity.

A FileChange is produced by parsing one commit's unified diff. The activity
service attaches the originating CommitRecord (without its raw diff) and a
millisecond timestamp before returning it from GET /repository/activity.
"""

from typing import Literal

from pydantic import BaseModel, Field

ChangeType = Literal["insert", "delete", "normal"]
ChangeKind = Literal["add", "modify", "delete", "rename"]


class LineChange(BaseModel):
    """A single line inside a hunk."""

    type: ChangeType
    content: str
    old_line: int | None = None  # None for inserted lines
    new_line: int | None = None  # None for deleted lines


class Hunk(BaseModel):
    """A contiguous block of changes introduced by an `@@` header."""

    header: str
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    section: str = ""  # text after the closing "@@", usually the enclosing function
    changes: list[LineChange] = Field(default_factory=list)


class CommitRecord(BaseModel):
    """One commit as reported by `git log`."""

    hash: str
    author: str
    email: str
    date: str  # ISO-8601 author date with offset
    message: str
    body: str = ""
    repo: str | None = None
    parents: list[str] = Field(default_factory=list, exclude=True)
    diff: str | None = Field(default=None, exclude=True)


class FileChange(BaseModel):
    """Changes to one file within a single commit."""

    new_path: str | None = None  # None when the file was deleted
    old_path: str | None = None  # None when the file was added
    kind: ChangeKind = "modify"
    binary: bool = False
    hunks: list[Hunk] = Field(default_factory=list)
    additions: int = 0
    deletions: int = 0
    commit: CommitRecord | None = None
    timestamp: int | None = None  # milliseconds since epoch of the commit date
