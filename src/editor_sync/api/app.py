"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from editor_sync.api.models import OwnerRequest, RenameRequest
from editor_sync.app_logging import configure_logging
from editor_sync.containers import AppContainer
from editor_sync.domain.errors import (
    DuplicateIdError,
    NotFoundError,
    RemoteIdConflictError,
)
from editor_sync.domain.projects import LocalProjectRecord


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(NotFoundError)
    async def not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)}
        )

    @app.exception_handler(DuplicateIdError)
    @app.exception_handler(RemoteIdConflictError)
    async def conflict(_request: Request, exc: ValueError) -> JSONResponse:
        logger.error("Local project conflict: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/projects/local")
    async def list_local_projects(request: Request) -> dict[str, object]:
        """Return local projects, most recently updated first."""
        state_container: AppContainer = request.app.state.container
        records = state_container.local_project_service.list_recent()
        return {"projects": [_summary(record) for record in records]}

    @app.post("/projects/local/sync-pending")
    async def sync_pending(body: OwnerRequest, request: Request) -> dict[str, object]:
        """Sync every pending local project now."""
        state_container: AppContainer = request.app.state.container
        records = await state_container.sync_service.sync_pending(body.owner_id)
        return {"projects": [_summary(record) for record in records]}

    @app.get("/projects/local/{project_id}")
    async def local_project_detail(
        project_id: str, request: Request
    ) -> dict[str, object]:
        """Return a local project with its events and revisions."""
        state_container: AppContainer = request.app.state.container
        return {"project": state_container.local_project_service.get(project_id)}

    @app.get("/projects/local/{project_id}/revisions")
    async def local_project_revisions(
        project_id: str, request: Request
    ) -> dict[str, object]:
        """Return the revision trail of a local project."""
        state_container: AppContainer = request.app.state.container
        record = state_container.local_project_service.get(project_id)
        return {"revisions": list(record.revisions)}

    @app.patch("/projects/local/{project_id}")
    async def rename_local_project(
        project_id: str, body: RenameRequest, request: Request
    ) -> dict[str, object]:
        """Rename a local project."""
        state_container: AppContainer = request.app.state.container
        record = state_container.local_project_service.rename(project_id, body.name)
        return _summary(record)

    @app.post("/projects/local/{project_id}/sync")
    async def sync_local_project(
        project_id: str, body: OwnerRequest, request: Request
    ) -> dict[str, object]:
        """Sync one local project on demand."""
        state_container: AppContainer = request.app.state.container
        record = await state_container.sync_service.sync_project(
            project_id, body.owner_id
        )
        return _summary(record)

    @app.get("/projects/remote")
    async def list_remote_projects(
        owner_id: str, request: Request, refresh: bool = False
    ) -> dict[str, object]:
        """Return the cached listing of the owner's remote projects."""
        state_container: AppContainer = request.app.state.container
        sync_service = state_container.sync_service
        projects = sync_service.cached_remote_projects(owner_id)
        if refresh or not projects:
            projects = await sync_service.refresh_remote_projects(owner_id)
        return {"projects": projects}

    @app.post("/sync/schedule")
    async def schedule_sync(body: OwnerRequest, request: Request) -> dict[str, str]:
        """Start the delayed background sync for a signed-in owner."""
        state_container: AppContainer = request.app.state.container
        state_container.sync_scheduler.start(body.owner_id)
        return {"status": "scheduled"}

    @app.delete("/sync/schedule")
    async def cancel_sync(
        request: Request, owner_id: str | None = None
    ) -> dict[str, str]:
        """Cancel the owner's delayed sync, or every pending one."""
        state_container: AppContainer = request.app.state.container
        await state_container.sync_scheduler.stop(owner_id)
        return {"status": "cancelled"}

    return app


def _summary(record: LocalProjectRecord) -> dict[str, object]:
    """Lightweight listing shape without logs or image data."""
    return {
        "id": record.id,
        "name": record.name,
        "status": record.status.value,
        "remote_id": record.remote_id,
        "prompt": record.prompt,
        "filter": record.filter,
        "thumbnail": record.thumbnail,
        "reference_count": len(record.reference_images),
        "event_count": len(record.events),
        "revision_count": len(record.revisions),
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
    }
