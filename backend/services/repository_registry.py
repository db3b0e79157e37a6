"""Registry of reusable git execution handles, one per tracked repository.

A RepositoryHandle binds a GitPython command wrapper to one working copy and
allows a single git subprocess at a time, so git's index lock is never
contended inside a repository. Different repositories run in parallel.
"""

import asyncio
import logging
import threading
from functools import partial
from pathlib import Path

from git import GitCommandError, GitCommandNotFound
from git.cmd import Git

from services.errors import GitSubprocessError

logger = logging.getLogger(__name__)


def _decode(output) -> str:
    """Decode git output as UTF-8, replacing undecodable bytes with U+FFFD."""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    if output is None:
        return ""
    return str(output).encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")


class RepositoryHandle:
    """Git execution context bound to one repository directory."""

    def __init__(self, name: str, path: Path):
        self.name = name
        self.path = path
        self._git = Git(str(path))
        # A directory that is not a repository must fail instead of resolving to
        # an enclosing checkout.
        self._git.update_environment(GIT_CEILING_DIRECTORIES=str(Path(path).resolve().parent))
        # Non-ASCII paths are printed verbatim instead of as quoted octal escapes
        self._git.set_persistent_git_options(c="core.quotepath=false")
        self._semaphore = asyncio.Semaphore(1)

    def __repr__(self) -> str:
        return f"RepositoryHandle(name={self.name!r}, path={str(self.path)!r})"

    def _execute(self, command: str, args: tuple, extended: bool):
        logger.debug("%s: git %s %s", self.name, command, " ".join(args))
        # Git.log(...) runs `git log ...`; dashed subcommands use underscores
        method = getattr(self._git, command.replace("-", "_"))
        try:
            result = method(*args, with_extended_output=extended, stdout_as_string=False)
        except (GitCommandError, GitCommandNotFound) as e:
            raise GitSubprocessError(
                self.name, f"git {command} failed: {e}", stderr=_decode(getattr(e, "stderr", ""))
            ) from e
        if extended:
            status, stdout, stderr = result
            return status, _decode(stdout), _decode(stderr)
        return _decode(result)

    async def _run(self, command: str, args: tuple, extended: bool):
        async with self._semaphore:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                None, partial(self._execute, command, args, extended)
            )

    async def run(self, command: str, *args: str) -> str:
        """Run `git <command> <args>` in the repository and return stdout."""
        return await self._run(command, args, extended=False)

    async def run_extended(self, command: str, *args: str) -> tuple[str, str]:
        """Run a git subcommand and return (stdout, stderr)."""
        _status, stdout, stderr = await self._run(command, args, extended=True)
        return stdout, stderr


class RepositoryRegistry:
    """Lazily-populated name -> RepositoryHandle mapping.

    Owned by the application (see main.lifespan) and passed explicitly to the
    services, so every test can start from a fresh registry.
    """

    def __init__(self, repository_directory: Path):
        self.root = Path(repository_directory)
        self._handles: dict[str, RepositoryHandle] = {}
        self._lock = threading.Lock()

    def path_for(self, name: str) -> Path:
        return self.root / name

    def get(self, name: str) -> RepositoryHandle:
        """Return the handle for `name`, creating it on first use."""
        with self._lock:
            handle = self._handles.get(name)
            if handle is None:
                handle = RepositoryHandle(name, self.path_for(name))
                self._handles[name] = handle
                logger.debug("Created handle for %s at %s", name, handle.path)
            return handle

    def discard(self, name: str) -> None:
        """Forget the handle for `name` (used after the repository is deleted)."""
        with self._lock:
            self._handles.pop(name, None)

    def __contains__(self, name: str) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)
