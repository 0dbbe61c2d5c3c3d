"""Reconciles pending local projects with the remote backend."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Protocol

from editor_sync.domain.errors import RemoteCallFailure, RemoteIdConflictError
from editor_sync.domain.images import StoredImage
from editor_sync.domain.projects import (
    Event,
    EventAction,
    EventPayload,
    LocalProjectRecord,
    ProjectStatus,
    SyncFailurePayload,
    SyncSuccessPayload,
)
from editor_sync.domain.remote import RemoteProject
from editor_sync.services.artifacts import (
    GENERATED,
    ArtifactPersister,
    RemoteProjectRepository,
    artifact_label,
)
from editor_sync.services.cache import Cache
from editor_sync.services.local_projects import LocalProjectService

logger = logging.getLogger(__name__)


class ProjectCreator(Protocol):
    """Creates remote projects."""

    async def create_project(self, name: str | None = None) -> str:
        """Create a remote project and return its id."""


@dataclass
class SyncService:
    """Pushes local projects to the remote backend.

    Remote failures never escape: they are logged, recorded as
    ``sync_failure`` events, and the record stays pending for the next pass.
    """

    local_projects: LocalProjectService
    project_creator: ProjectCreator
    remote_projects: RemoteProjectRepository
    artifacts: ArtifactPersister
    cache: Cache
    recent_limit: int = 6
    cache_ttl_seconds: int = 300
    _in_flight: dict[str, asyncio.Task[LocalProjectRecord]] = field(
        default_factory=dict, repr=False
    )

    async def sync_project(self, project_id: str, owner_id: str) -> LocalProjectRecord:
        """Sync one local project and return its latest state.

        Overlapping calls for the same project share one run.
        """
        task = self._in_flight.get(project_id)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._sync_project(project_id, owner_id), name=f"sync:{project_id}"
            )
            self._in_flight[project_id] = task
            task.add_done_callback(lambda _: self._in_flight.pop(project_id, None))
        return await asyncio.shield(task)

    async def _sync_project(
        self, project_id: str, owner_id: str
    ) -> LocalProjectRecord:
        record = self.local_projects.get(project_id)
        inline = record.inline_artifacts()
        if record.status is ProjectStatus.SYNCED and record.remote_id and not inline:
            logger.debug("Local project %s already synced", project_id)
            return record

        self._event(project_id, EventAction.SYNC_START, "Sync start")
        remote_id = record.remote_id
        if remote_id is None:
            try:
                remote_id = await self._create_and_link(project_id, record.name)
            except RemoteCallFailure as exc:
                logger.warning("Local project %s sync failed: %s", project_id, exc)
                return self._failure(project_id, exc)

        uploaded = await self._upload_artifacts(
            project_id, owner_id, remote_id, record.prompt, inline
        )
        if uploaded:
            self._replace_artifacts(project_id, uploaded)

        try:
            self.local_projects.mark_synced(project_id, remote_id)
        except RemoteIdConflictError as exc:
            return self._failure(project_id, exc)
        synced = self._event(
            project_id,
            EventAction.SYNC_SUCCESS,
            "Sync success",
            SyncSuccessPayload(remote_id=remote_id),
        )
        logger.info("Synced local project %s to %s", project_id, remote_id)
        await self.refresh_remote_projects(owner_id)
        return synced

    async def _create_and_link(self, project_id: str, name: str) -> str:
        """Create the remote project and link it before any upload.

        A link written while the creation call was pending wins.
        """
        created = await self.project_creator.create_project(name)
        current = self.local_projects.get(project_id)
        if current.remote_id:
            if current.remote_id != created:
                logger.warning(
                    "Local project %s was linked to %s during sync; "
                    "remote project %s is unused",
                    project_id,
                    current.remote_id,
                    created,
                )
            return current.remote_id
        self.local_projects.link_remote(project_id, created)
        return created

    async def sync_pending(self, owner_id: str) -> list[LocalProjectRecord]:
        """Sync every pending local project, one after another."""
        pending = [
            record
            for record in self.local_projects.list_local()
            if record.status is ProjectStatus.PENDING
        ]
        results = []
        for record in pending:
            results.append(await self.sync_project(record.id, owner_id))
        return results

    async def refresh_remote_projects(self, owner_id: str) -> list[RemoteProject]:
        """Reload the cached listing of the owner's remote projects."""
        try:
            projects = await asyncio.to_thread(
                self.remote_projects.list_recent_projects, owner_id, self.recent_limit
            )
        except RemoteCallFailure as exc:
            logger.warning("Failed to refresh remote projects: %s", exc)
            return self.cached_remote_projects(owner_id)
        self.cache.set(_cache_key(owner_id), projects, self.cache_ttl_seconds)
        return projects

    def cached_remote_projects(self, owner_id: str) -> list[RemoteProject]:
        """Return the last fetched remote listing, if still fresh."""
        cached = self.cache.get(_cache_key(owner_id))
        return list(cached) if isinstance(cached, list) else []

    async def _upload_artifacts(
        self,
        project_id: str,
        owner_id: str,
        remote_id: str,
        prompt: str | None,
        inline: list[tuple[str, StoredImage]],
    ) -> dict[str, str]:
        results = await asyncio.gather(
            *(
                self.artifacts.persist(
                    owner_id=owner_id,
                    project_id=remote_id,
                    role=role,
                    image=image,
                    prompt=prompt if role == GENERATED else None,
                )
                for role, image in inline
            ),
            return_exceptions=True,
        )
        uploaded: dict[str, str] = {}
        for (role, image), result in zip(inline, results, strict=True):
            label = artifact_label(role, image)
            if isinstance(result, RemoteCallFailure):
                logger.warning(
                    "Upload of %s for local project %s failed: %s",
                    label,
                    project_id,
                    result,
                )
                self._event(
                    project_id,
                    EventAction.SYNC_FAILURE,
                    f"Upload failed: {label}",
                    SyncFailurePayload(error=str(result), artifact=label),
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                uploaded[image.id] = result
        return uploaded

    def _replace_artifacts(self, project_id: str, uploaded: dict[str, str]) -> None:
        current = self.local_projects.get(project_id)

        def swap(image: StoredImage | None) -> StoredImage | None:
            if image is None or image.id not in uploaded:
                return image
            return replace(image, url=uploaded[image.id])

        fields: dict[str, object] = {
            "primary_image": swap(current.primary_image),
            "generated_image": swap(current.generated_image),
            "reference_images": tuple(
                swap(image) for image in current.reference_images
            ),
        }
        thumbnail_source = fields["generated_image"] or fields["primary_image"]
        if isinstance(thumbnail_source, StoredImage):
            fields["thumbnail"] = thumbnail_source.url
        self.local_projects.update(project_id, fields)

    def _failure(self, project_id: str, exc: Exception) -> LocalProjectRecord:
        return self._event(
            project_id,
            EventAction.SYNC_FAILURE,
            "Sync failed",
            SyncFailurePayload(error=str(exc)),
        )

    def _event(
        self,
        project_id: str,
        action: EventAction,
        label: str,
        payload: EventPayload | None = None,
    ) -> LocalProjectRecord:
        return self.local_projects.append_event(
            project_id,
            Event(
                label=label,
                timestamp=datetime.now(tz=UTC),
                action=action,
                payload=payload,
            ),
        )


@dataclass
class SyncScheduler:
    """Fires one delayed sync of pending projects per signed-in owner.

    Each owner gets an independent timer; it fires at most once until
    ``stop`` clears it.
    """

    sync_service: SyncService
    delay_seconds: float = 60.0
    _tasks: dict[str, asyncio.Task[None]] = field(default_factory=dict, repr=False)

    @property
    def is_scheduled(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def is_scheduled_for(self, owner_id: str) -> bool:
        task = self._tasks.get(owner_id)
        return task is not None and not task.done()

    def start(self, owner_id: str) -> None:
        """Schedule the delayed sync for the owner, once."""
        if owner_id in self._tasks:
            return
        self._tasks[owner_id] = asyncio.get_running_loop().create_task(
            self._run(owner_id), name=f"delayed-sync:{owner_id}"
        )

    async def stop(self, owner_id: str | None = None) -> None:
        """Cancel the owner's timer, or every timer, if not fired yet."""
        if owner_id is None:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        else:
            task = self._tasks.pop(owner_id, None)
            tasks = [task] if task is not None else []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self, owner_id: str) -> None:
        await asyncio.sleep(self.delay_seconds)
        logger.info("Running delayed sync for owner %s", owner_id)
        try:
            await self.sync_service.sync_pending(owner_id)
        except Exception:
            logger.exception("Delayed sync failed for owner %s", owner_id)


def _cache_key(owner_id: str) -> str:
    return f"remote-projects:{owner_id}"
