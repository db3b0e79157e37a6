"""Entry point for the repository activity FastAPI application."""

import logging
import os
import shutil
from contextlib import asynccontextmanager

# Configure GitPython to find git executable before `git` is imported
git_path = os.getenv("GIT_PYTHON_GIT_EXECUTABLE") or shutil.which("git")
if git_path:
    os.environ["GIT_PYTHON_GIT_EXECUTABLE"] = git_path
    import git
    git.refresh(path=git_path)
else:
    raise RuntimeError(
        "Git executable not found. Please install Git from https://git-scm.com/downloads "
        "or set GIT_PYTHON_GIT_EXECUTABLE environment variable to the path of git"
    )

import uvicorn
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router as api_router
from services.repository_registry import RepositoryRegistry
from services.settings import Settings, load_settings

logger = logging.getLogger(__name__)

APP_NAME = "Repository Activity Backend"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    # One registry per application; handles live as long as the process.
    app.state.registry = RepositoryRegistry(settings.repository_directory)
    logger.info(
        "Running Server. (PORT: %s, CONTEXT_PATH: %s, LOG_LEVEL: %s, "
        "REPOSITORY_DIRECTORY: %s, FILE_FILTER: %s, ERROR_POLICY: %s)",
        settings.port,
        settings.context_path or "/",
        settings.log_level,
        settings.repository_directory,
        settings.file_filter.pattern,
        settings.error_policy,
    )
    yield


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Explicit settings; loaded from the environment when omitted.

    Raises:
        ConfigurationError: If the environment holds invalid settings.
    """
    if settings is None:
        settings = load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=APP_NAME, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    # The API is consumed by browser dashboards served from other origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    root = APIRouter()

    @root.get("/")
    async def heartbeat() -> dict:
        """
        Simple heartbeat endpoint to confirm the API is online.

        Returns:
            dict: App metadata payload.
        """
        return {"status": "ok", "app": APP_NAME}

    app.include_router(root, prefix=settings.context_path)
    app.include_router(api_router, prefix=settings.context_path)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
