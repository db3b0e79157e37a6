"""Git output parsing utilities.

Helpers for turning raw `git log` and `git fetch` output into structured
records, plus repository-name derivation for clone URLs.
"""

import os
import re
from datetime import datetime
from urllib.parse import urlparse

from models.activity import CommitRecord

# Empty tree object; diffing a root commit against it yields the whole tree.
NULL_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

RECORD_SEPARATOR = "\x1e"
FIELD_SEPARATOR = "\x1f"

# hash, parents, author name, author email, author date (strict ISO), subject, body
LOG_FORMAT = "%x1e%H%x1f%P%x1f%an%x1f%ae%x1f%aI%x1f%s%x1f%b"

_FETCH_REF_RE = re.compile(r"->\s+(\S+)")


def derive_repo_name(repo_url: str) -> str:
    """Derive repository folder name from a Git URL."""
    if not repo_url or not repo_url.strip():
        raise ValueError("repo_url cannot be empty")

    parsed = urlparse(repo_url.strip())
    # scp-like URLs (git@host:team/repo.git) have no scheme and keep the path in netloc
    path = parsed.path or repo_url.strip()
    repo_name = os.path.basename(path.rstrip("/"))
    if ":" in repo_name:
        repo_name = repo_name.rsplit(":", 1)[1]
    if repo_name.endswith(".git"):
        repo_name = repo_name[:-4]

    repo_name = repo_name.strip()
    if not repo_name or repo_name in (".", ".."):
        raise ValueError(f"Could not extract repository name from URL: {repo_url}")

    return repo_name


def parse_log_output(output: str, repo: str | None = None) -> list[CommitRecord]:
    """
    Parse `git log --format=LOG_FORMAT` output.

    Args:
        output: Raw stdout of git log.
        repo: Repository name to stamp on every record.

    Returns:
        Commit records in log order (newest first for a default log).
    """
    commits: list[CommitRecord] = []
    for record in output.split(RECORD_SEPARATOR):
        if not record.strip():
            continue
        fields = record.split(FIELD_SEPARATOR, 6)
        if len(fields) < 7:
            raise ValueError(f"Unexpected git log record: {record!r}")
        commit_hash, parents, author, email, date, subject, body = fields
        commits.append(
            CommitRecord(
                hash=commit_hash.strip(),
                parents=parents.split(),
                author=author,
                email=email,
                date=date.strip(),
                message=subject.strip(),
                body=body.strip(),
                repo=repo,
            )
        )
    return commits


def parse_fetch_output(output: str) -> list[str]:
    """Extract the local refs a `git fetch` report says were created or moved."""
    refs: list[str] = []
    for line in output.splitlines():
        match = _FETCH_REF_RE.search(line)
        if match:
            refs.append(match.group(1))
    return refs


def commit_timestamp_ms(date: str) -> int:
    """Convert an ISO-8601 commit date into milliseconds since the epoch."""
    if date.endswith("Z"):
        date = date[:-1] + "+00:00"
    return int(datetime.fromisoformat(date).timestamp() * 1000)
