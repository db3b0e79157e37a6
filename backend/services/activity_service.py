"""Recent-activity aggregation across all tracked repositories.

For one author, every repository's recent non-merge commits are listed and
diffed concurrently, the diffs are parsed into FileChange records, and only
files matching the configured filter that gained at least one line are kept.
Results from all repositories are merged newest-first and truncated to the
activity window.

Error policy (ACTIVITY_ERROR_POLICY):
- "skip": a repository whose git log/diff fails is logged and contributes
  nothing; the query still succeeds.
- "fail": the first git failure aborts the whole query.
Unparseable diffs always degrade to "no changes for that commit". An author
pattern git rejects is a client error under both policies.
"""

import asyncio
import logging

from models.activity import CommitRecord, FileChange
from services.errors import GitSubprocessError, InvalidAuthorPatternError
from services.repository_registry import RepositoryHandle, RepositoryRegistry
from services.repository_service import gather_all, list_repository_names
from services.settings import ERROR_POLICY_FAIL, Settings
from utils.diff_parser import DiffParseError, has_insertions, parse_diff
from utils.git_parser import LOG_FORMAT, NULL_TREE_SHA, commit_timestamp_ms, parse_log_output

logger = logging.getLogger(__name__)


async def list_author_commits(
    handle: RepositoryHandle, author: str, max_commits: int
) -> list[CommitRecord]:
    """
    List the most recent non-merge commits by `author` on any local or
    remote-tracking branch.

    `author` is passed to `git log --author`, i.e. a case-sensitive regular
    expression matched against "Name <email>". A pattern git cannot compile
    raises InvalidAuthorPatternError under either error policy.
    """
    try:
        output = await handle.run(
            "log",
            "--branches",
            "--remotes",
            "--no-merges",
            f"--max-count={max_commits}",
            f"--author={author}",
            f"--format={LOG_FORMAT}",
        )
    except GitSubprocessError as e:
        # git dies with "<origin>, '<pattern>': <regcomp error>"
        if f"'{author}'" in e.stderr:
            raise InvalidAuthorPatternError(author, e.stderr.strip()) from e
        raise
    return parse_log_output(output, repo=handle.name)


async def commit_diff(handle: RepositoryHandle, commit: CommitRecord) -> str:
    """Diff introduced by `commit` alone, ignoring whitespace-only changes."""
    args = ["-w", "--no-color", "--no-ext-diff"]
    if commit.parents:
        args.append(f"{commit.hash}^!")
    else:
        args.extend([NULL_TREE_SHA, commit.hash])
    return await handle.run("diff", *args)


def extract_file_changes(commit: CommitRecord, settings: Settings) -> list[FileChange]:
    """
    Parse a commit's diff and keep the files that match the filter and gain lines.

    Each kept FileChange carries the commit (without its diff) and the commit
    timestamp in milliseconds.
    """
    try:
        changes = parse_diff(commit.diff or "")
    except DiffParseError as e:
        logger.warning("%s: could not parse diff of %s: %s", commit.repo, commit.hash, e)
        return []

    metadata = commit.model_copy(update={"diff": None})
    timestamp = commit_timestamp_ms(commit.date)

    kept: list[FileChange] = []
    for change in changes:
        if change.new_path is None or not settings.file_filter.search(change.new_path):
            continue
        if not has_insertions(change):
            continue
        change.commit = metadata
        change.timestamp = timestamp
        kept.append(change)
    return kept


async def repository_activity(
    handle: RepositoryHandle, author: str, settings: Settings
) -> list[FileChange]:
    """Matching file changes for one repository, in log then diff order."""
    commits = await list_author_commits(handle, author, settings.commits_per_repository)
    diffs = await gather_all(commit_diff(handle, commit) for commit in commits)

    changes: list[FileChange] = []
    for commit, diff in zip(commits, diffs):
        commit.diff = diff
        changes.extend(extract_file_changes(commit, settings))
    return changes


async def _repository_activity_or_skip(
    handle: RepositoryHandle, author: str, settings: Settings
) -> list[FileChange]:
    try:
        return await repository_activity(handle, author, settings)
    except GitSubprocessError as e:
        logger.warning("Skipping repository %s in activity query: %s", handle.name, e)
        return []


def merge_activity(per_repository: list[list[FileChange]], window: int) -> list[FileChange]:
    """Flatten, sort newest-first (stable) and keep at most `window` changes."""
    merged = [change for changes in per_repository for change in changes]
    merged.sort(key=lambda change: change.timestamp or 0, reverse=True)
    return merged[:window]


async def find_activity(
    author: str, registry: RepositoryRegistry, settings: Settings
) -> list[FileChange]:
    """
    Find recently added lines by `author` across every tracked repository.

    Args:
        author: Pattern for `git log --author`.
        registry: Handle registry bound to the repository root.
        settings: Supplies the file filter, window sizes and error policy.

    Returns:
        At most settings.activity_window FileChange records, newest first.

    Raises:
        ConfigurationError: If the repository root is missing or unreadable.
        GitSubprocessError: Only under the "fail" error policy.
        InvalidAuthorPatternError: If git rejects `author` as a regex.
    """
    loop = asyncio.get_running_loop()
    names = await loop.run_in_executor(None, list_repository_names, registry.root)
    handles = [registry.get(name) for name in names]

    if settings.error_policy == ERROR_POLICY_FAIL:
        per_repository = await gather_all(
            repository_activity(handle, author, settings) for handle in handles
        )
    else:
        per_repository = await gather_all(
            _repository_activity_or_skip(handle, author, settings) for handle in handles
        )

    result = merge_activity(per_repository, settings.activity_window)
    logger.info(
        "Activity for %r: %d matching changes across %d repositories, returning %d",
        author,
        sum(len(changes) for changes in per_repository),
        len(handles),
        len(result),
    )
    return result
