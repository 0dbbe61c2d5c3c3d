"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import create_client

from editor_sync.adapters.json_local_project_repository import (
    JsonFileLocalProjectRepository,
)
from editor_sync.adapters.project_api_client import HttpxProjectApiClient
from editor_sync.adapters.supabase_project_repository import (
    SupabaseProjectRepository,
)
from editor_sync.adapters.supabase_storage_client import SupabaseStorageClient
from editor_sync.config import Settings
from editor_sync.domain.session import EditorSession
from editor_sync.services.artifacts import ArtifactPersister
from editor_sync.services.cache import InMemoryCache
from editor_sync.services.editor import EditorService
from editor_sync.services.history import HistoryStack
from editor_sync.services.linking import ProjectLinker
from editor_sync.services.local_projects import LocalProjectService
from editor_sync.services.sync import SyncScheduler, SyncService
from editor_sync.services.tasks import TaskQueue


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    local_project_service: LocalProjectService
    project_linker: ProjectLinker
    sync_service: SyncService
    sync_scheduler: SyncScheduler
    task_queue: TaskQueue
    artifact_persister: ArtifactPersister
    close_resources: Callable[[], Awaitable[None]]

    def new_editor(self, owner_id: str | None = None) -> EditorService:
        """Create an editor bound to a fresh session and history."""
        return EditorService(
            session=EditorSession(owner_id=owner_id),
            history=HistoryStack(
                max_depth=self.settings.history_max_depth,
                throttle_ms=self.settings.history_throttle_ms,
            ),
            local_projects=self.local_project_service,
            linker=self.project_linker,
            tasks=self.task_queue,
            artifacts=self.artifact_persister,
        )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    local_project_service = LocalProjectService(
        JsonFileLocalProjectRepository(Path(resolved_settings.local_store_path))
    )
    remote_projects = SupabaseProjectRepository(supabase_client)
    artifact_persister = ArtifactPersister(
        storage=SupabaseStorageClient(
            supabase_client, bucket=resolved_settings.storage_bucket
        ),
        remote_projects=remote_projects,
    )
    project_api_client = HttpxProjectApiClient.create(
        resolved_settings.api_base_url,
        access_token=resolved_settings.api_access_token,
        timeout=resolved_settings.http_timeout_seconds,
    )
    sync_service = SyncService(
        local_projects=local_project_service,
        project_creator=project_api_client,
        remote_projects=remote_projects,
        artifacts=artifact_persister,
        cache=InMemoryCache(),
        recent_limit=resolved_settings.recent_projects_limit,
        cache_ttl_seconds=resolved_settings.remote_cache_ttl_seconds,
    )
    sync_scheduler = SyncScheduler(
        sync_service, delay_seconds=resolved_settings.sync_delay_seconds
    )
    task_queue = TaskQueue()

    async def close_resources() -> None:
        await sync_scheduler.stop()
        await task_queue.drain()
        await project_api_client.close()

    return AppContainer(
        settings=resolved_settings,
        local_project_service=local_project_service,
        project_linker=ProjectLinker(local_project_service),
        sync_service=sync_service,
        sync_scheduler=sync_scheduler,
        task_queue=task_queue,
        artifact_persister=artifact_persister,
        close_resources=close_resources,
    )
