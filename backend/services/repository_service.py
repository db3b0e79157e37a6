"""Repository lifecycle: enumerate, clone, fetch and delete working copies.

Every immediate subdirectory of the repository root is one tracked
repository. No state is kept besides the working copies themselves and the
handles cached in the RepositoryRegistry.
"""

import asyncio
import logging
import shutil
from functools import partial
from pathlib import Path
from typing import Awaitable, Iterable, TypeVar

from git import GitCommandError, Repo

from models.repository import FetchResult
from services.errors import (
    ConfigurationError,
    DuplicateRepositoryError,
    FetchError,
    GitSubprocessError,
    RepositoryNotFoundError,
)
from services.repository_registry import RepositoryRegistry
from utils.git_parser import derive_repo_name, parse_fetch_output

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def gather_all(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Wait for every awaitable; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


def list_repository_names(root: Path) -> list[str]:
    """
    List tracked repository names under the repository root.

    Args:
        root: Repository root directory.

    Returns:
        Names of the immediate subdirectories, sorted.

    Raises:
        ConfigurationError: If root does not exist, is not a directory or
            cannot be read.
    """
    if not root.exists():
        raise ConfigurationError(f"Repository directory does not exist: {root}")
    if not root.is_dir():
        raise ConfigurationError(f"Repository directory is not a directory: {root}")

    try:
        return sorted(entry.name for entry in root.iterdir() if entry.is_dir())
    except OSError as e:
        raise ConfigurationError(f"Cannot read repository directory {root}: {e}") from e


def _is_tracked(name: str, registry: RepositoryRegistry) -> bool:
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        return False
    path = registry.path_for(name)
    return path.is_dir() and path.resolve().parent == registry.root.resolve()


async def clone_repository(
    url: str, registry: RepositoryRegistry, name: str | None = None
) -> str:
    """
    Clone `url` into the repository root.

    Args:
        url: Anything `git clone` accepts.
        registry: Registry whose root receives the clone.
        name: Target directory name; derived from the URL when omitted.

    Returns:
        The repository name.

    Raises:
        ValueError: If no name is given and none can be derived from the URL.
        DuplicateRepositoryError: If the target directory already exists.
        GitSubprocessError: If git clone fails.
    """
    name = name or derive_repo_name(url)
    dest = registry.path_for(name)

    registry.root.mkdir(parents=True, exist_ok=True)
    # mkdir claims the name atomically against concurrent clones
    try:
        dest.mkdir()
    except FileExistsError as e:
        raise DuplicateRepositoryError(name) from e

    logger.info("Cloning repo %s (%s) into %s", name, url, dest)

    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, partial(Repo.clone_from, url, str(dest)))
    except GitCommandError as e:
        # dest was created above, so it holds only this clone's partial output
        shutil.rmtree(dest, ignore_errors=True)
        raise GitSubprocessError(name, f"Failed to clone repository {url}: {e}") from e

    # A handle left over from a deleted repository of the same name is stale.
    registry.discard(name)
    return name


async def fetch_repository(name: str, registry: RepositoryRegistry) -> FetchResult:
    """Run `git fetch --all --prune` in one repository."""
    handle = registry.get(name)
    try:
        _stdout, report = await handle.run_extended("fetch", "--all", "--prune")
    except GitSubprocessError as e:
        raise FetchError(name, str(e.__cause__ or e)) from e

    report = report.strip()
    logger.info("%s: fetched %s", handle.path, report or "(up to date)")
    return FetchResult(name=name, updated=parse_fetch_output(report), raw=report)


async def fetch_all(names: list[str], registry: RepositoryRegistry) -> list[FetchResult]:
    """
    Fetch every named repository concurrently.

    Raises:
        FetchError: On the first repository whose fetch fails; the other
            fetches are cancelled.
    """
    logger.info("Updating repositories: %s", ", ".join(names))
    return await gather_all(fetch_repository(name, registry) for name in names)


async def delete_repository(name: str, registry: RepositoryRegistry) -> None:
    """
    Delete a tracked repository's working copy.

    Raises:
        RepositoryNotFoundError: If `name` is not an immediate subdirectory of
            the repository root. Nothing is touched in that case.
    """
    if not _is_tracked(name, registry):
        raise RepositoryNotFoundError(name)

    path = registry.path_for(name)
    logger.info("Deleting repository %s (%s)", name, path)
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, shutil.rmtree, path)
    registry.discard(name)
