"""Client-local project store with event and revision logs."""

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Protocol

from editor_sync.domain.errors import (
    DuplicateIdError,
    NotFoundError,
    RemoteIdConflictError,
)
from editor_sync.domain.projects import (
    Event,
    EventAction,
    LocalProjectRecord,
    ProjectStatus,
    RenamePayload,
    Revision,
)
from editor_sync.services.snapshots import thumbnail_for

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "name",
    "description",
    "status",
    "primary_image",
    "generated_image",
    "reference_images",
    "prompt",
    "adjustments",
    "filter",
    "thumbnail",
}


class LocalProjectRepository(Protocol):
    """Durable storage for local project records."""

    def list_projects(self) -> list[LocalProjectRecord]:
        """Return every stored record in storage order."""

    def get_project(self, project_id: str) -> LocalProjectRecord | None:
        """Return a record by id, if present."""

    def insert_project(self, record: LocalProjectRecord) -> None:
        """Store a new record."""

    def replace_project(self, record: LocalProjectRecord) -> None:
        """Overwrite an existing record with the same id."""


@dataclass
class LocalProjectService:
    """Read-modify-write entry points for local project records."""

    repository: LocalProjectRepository

    def list_local(self) -> list[LocalProjectRecord]:
        """Return all local projects in storage order."""
        return self.repository.list_projects()

    def list_recent(self) -> list[LocalProjectRecord]:
        """Return local projects, most recently updated first."""
        return sorted(
            self.repository.list_projects(),
            key=lambda record: record.updated_at,
            reverse=True,
        )

    def get(self, project_id: str) -> LocalProjectRecord:
        """Return a record or raise NotFoundError."""
        record = self.repository.get_project(project_id)
        if record is None:
            raise NotFoundError(project_id)
        return record

    def save(self, record: LocalProjectRecord) -> LocalProjectRecord:
        """Create a new record; ids must be unique."""
        if self.repository.get_project(record.id) is not None:
            raise DuplicateIdError(record.id)
        self.repository.insert_project(record)
        logger.info("Saved local project %s", record.id)
        return record

    def update(self, project_id: str, fields: dict[str, object]) -> LocalProjectRecord:
        """Merge fields into an existing record and bump updated_at."""
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown local project fields: {sorted(unknown)}")
        current = self.get(project_id)
        changes = dict(fields)
        if "reference_images" in changes:
            changes["reference_images"] = tuple(changes["reference_images"] or ())
        if "status" in changes:
            changes["status"] = ProjectStatus(changes["status"])
        updated = replace(current, **changes, updated_at=_now(current))
        self.repository.replace_project(updated)
        return updated

    def append_event(self, project_id: str, event: Event) -> LocalProjectRecord:
        """Append an audit event."""
        current = self.get(project_id)
        updated = replace(
            current, events=(*current.events, event), updated_at=_now(current)
        )
        self.repository.replace_project(updated)
        return updated

    def append_revision(
        self, project_id: str, revision: Revision
    ) -> LocalProjectRecord:
        """Append a revision and realign the thumbnail with it."""
        current = self.get(project_id)
        updated = replace(
            current,
            revisions=(*current.revisions, revision),
            thumbnail=thumbnail_for(revision.snapshot) or current.thumbnail,
            updated_at=_now(current),
        )
        self.repository.replace_project(updated)
        return updated

    def link_remote(self, project_id: str, remote_id: str) -> LocalProjectRecord:
        """Attach a remote id without changing the sync status.

        The only way besides ``mark_synced`` to set ``remote_id``; an existing
        different link is never overwritten.
        """
        current = self._guard_link(project_id, remote_id)
        if current.remote_id == remote_id:
            return current
        updated = replace(current, remote_id=remote_id, updated_at=_now(current))
        self.repository.replace_project(updated)
        return updated

    def mark_synced(self, project_id: str, remote_id: str) -> LocalProjectRecord:
        """Link a record to its remote project and mark it synced."""
        current = self._guard_link(project_id, remote_id)
        if current.status is ProjectStatus.SYNCED and current.remote_id == remote_id:
            return current
        updated = replace(
            current,
            status=ProjectStatus.SYNCED,
            remote_id=remote_id,
            updated_at=_now(current),
        )
        self.repository.replace_project(updated)
        return updated

    def _guard_link(self, project_id: str, remote_id: str) -> LocalProjectRecord:
        current = self.get(project_id)
        if current.remote_id and current.remote_id != remote_id:
            logger.error(
                "Refusing to relink local project %s from %s to %s",
                project_id,
                current.remote_id,
                remote_id,
            )
            raise RemoteIdConflictError(project_id, current.remote_id, remote_id)
        return current

    def find_by_remote_id(self, remote_id: str) -> LocalProjectRecord | None:
        """Return the record linked to a remote project, if any."""
        for record in self.repository.list_projects():
            if record.remote_id == remote_id:
                return record
        return None

    def rename(self, project_id: str, name: str) -> LocalProjectRecord:
        """Rename a project and record the change."""
        current = self.get(project_id)
        cleaned = name.strip()
        if not cleaned or cleaned == current.name:
            return current
        self.update(project_id, {"name": cleaned})
        return self.append_event(
            project_id,
            Event(
                label="Renamed",
                timestamp=datetime.now(tz=UTC),
                action=EventAction.RENAME,
                payload=RenamePayload(previous=current.name, name=cleaned),
            ),
        )


def _now(current: LocalProjectRecord) -> datetime:
    """Return a timestamp strictly after the record's last update."""
    now = datetime.now(tz=UTC)
    if now <= current.updated_at:
        return current.updated_at + timedelta(microseconds=1)
    return now
