"""API route definitions for the repository activity service."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from models.activity import FileChange
from models.repository import (
    CreateRepositoryRequest,
    RepositoryListResponse,
    RepositoryNameResponse,
)
from services.activity_service import find_activity
from services.errors import (
    ConfigurationError,
    DuplicateRepositoryError,
    GitSubprocessError,
    InvalidAuthorPatternError,
    RepositoryNotFoundError,
)
from services.repository_registry import RepositoryRegistry
from services.repository_service import (
    clone_repository,
    delete_repository,
    fetch_all,
    list_repository_names,
)
from services.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> RepositoryRegistry:
    return request.app.state.registry


@router.get("/health")
async def health_check() -> dict:
    """
    Lightweight endpoint for uptime checks.

    Returns:
        dict: Health status payload.
    """
    return {"status": "healthy"}


# ============================================================================
# REPOSITORY ENDPOINTS
# ============================================================================


@router.post("/repository", response_model=RepositoryNameResponse)
async def create_repository(
    payload: CreateRepositoryRequest,
    registry: RepositoryRegistry = Depends(get_registry),
) -> RepositoryNameResponse:
    """
    Clone a repository into the repository directory.

    Request body:
        {
            "url": "https://github.com/user/repo.git",
            "name": "repo"  // optional, derived from the URL when omitted
        }

    Raises:
        HTTPException: 400 if the name is taken or cannot be derived.
        HTTPException: 502 if git clone fails.
    """
    try:
        name = await clone_repository(payload.url, registry, name=payload.name)
    except DuplicateRepositoryError:
        raise HTTPException(status_code=400, detail="duplicate repository name")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GitSubprocessError as e:
        logger.error("Clone of %s failed: %s", payload.url, e)
        raise HTTPException(status_code=502, detail=str(e))
    return RepositoryNameResponse(name=name)


@router.get("/repository", response_model=RepositoryListResponse)
async def update_repositories(
    registry: RepositoryRegistry = Depends(get_registry),
) -> RepositoryListResponse:
    """
    Fetch every tracked repository and list their names.

    Raises:
        HTTPException: 500 if the repository directory is missing.
        HTTPException: 502 if any fetch fails.
    """
    loop = asyncio.get_running_loop()
    try:
        names = await loop.run_in_executor(None, list_repository_names, registry.root)
        fetched = await fetch_all(names, registry)
    except ConfigurationError as e:
        logger.error("Repository directory unusable: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    except GitSubprocessError as e:
        logger.error("Fetch failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    return RepositoryListResponse(repositories=names, fetched=fetched)


@router.get("/repository/activity", response_model=list[FileChange])
async def get_activity(
    author: str = Query(..., min_length=1),
    registry: RepositoryRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> list[FileChange]:
    """
    Recently added lines by `author` across all repositories, newest first.

    `author` is matched by `git log --author` (case-sensitive regular
    expression against "Name <email>"). A pattern git cannot compile, such
    as `ja[`, is rejected with 400 instead of matching nothing.

    Raises:
        HTTPException: 400 if git rejects `author` as a regular expression.
        HTTPException: 500 if the repository directory is missing.
        HTTPException: 502 if a git command fails under the "fail" error policy.
    """
    try:
        return await find_activity(author, registry, settings)
    except InvalidAuthorPatternError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigurationError as e:
        logger.error("Repository directory unusable: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    except GitSubprocessError as e:
        logger.error("Activity query failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))


@router.delete("/repository/{repo}", response_model=RepositoryNameResponse)
async def remove_repository(
    repo: str,
    registry: RepositoryRegistry = Depends(get_registry),
) -> RepositoryNameResponse:
    """
    Delete a repository's working copy.

    Raises:
        HTTPException: 404 if no such repository is tracked.
    """
    try:
        await delete_repository(repo, registry)
    except RepositoryNotFoundError:
        raise HTTPException(status_code=404, detail="Repository not found")
    return RepositoryNameResponse(name=repo)
