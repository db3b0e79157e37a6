"""Error types raised by the repository and activity services.

Routes translate these into HTTP responses:
- ConfigurationError -> 500
- DuplicateRepositoryError -> 400
- InvalidAuthorPatternError -> 400
- RepositoryNotFoundError -> 404
- GitSubprocessError / FetchError -> 502
utils.diff_parser.DiffParseError never reaches the HTTP layer; the activity
service degrades it to "no changes for this commit".
"""


class RepositoryServiceError(Exception):
    """Base class for all service-level errors."""


class ConfigurationError(RepositoryServiceError):
    """Invalid settings or a missing/unreadable repository root."""


class DuplicateRepositoryError(RepositoryServiceError):
    """Clone target directory already exists."""

    def __init__(self, name: str):
        super().__init__(f"duplicate repository name: {name}")
        self.name = name


class RepositoryNotFoundError(RepositoryServiceError):
    """No tracked repository with the requested name."""

    def __init__(self, name: str):
        super().__init__(f"repository not found: {name}")
        self.name = name


class GitSubprocessError(RepositoryServiceError):
    """A git invocation against a repository failed."""

    def __init__(self, repo: str | None, message: str, stderr: str = ""):
        prefix = f"{repo}: " if repo else ""
        super().__init__(f"{prefix}{message}")
        self.repo = repo
        self.stderr = stderr


class FetchError(GitSubprocessError):
    """`git fetch` failed for a repository."""


class InvalidAuthorPatternError(RepositoryServiceError):
    """git rejected the author pattern as a regular expression."""

    def __init__(self, author: str, reason: str):
        super().__init__(f"invalid author pattern {author!r}: {reason}")
        self.author = author
