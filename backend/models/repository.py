"""Request and response models for repository lifecycle endpoints."""

from pydantic import BaseModel, Field

REPOSITORY_NAME_PATTERN = r"^[a-zA-Z0-9_-]+$"


class CreateRepositoryRequest(BaseModel):
    """Request body for POST /repository."""

    url: str = Field(min_length=1)
    name: str | None = Field(default=None, pattern=REPOSITORY_NAME_PATTERN)


class RepositoryNameResponse(BaseModel):
    """Response for create and delete."""

    name: str


class FetchResult(BaseModel):
    """Outcome of `git fetch` for one repository."""

    name: str
    updated: list[str] = Field(default_factory=list)  # remote refs created or moved
    raw: str = ""


class RepositoryListResponse(BaseModel):
    """Response for GET /repository."""

    repositories: list[str]
    fetched: list[FetchResult] = Field(default_factory=list)
