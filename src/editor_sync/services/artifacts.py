"""Best-effort persistence of editor images to remote storage."""

import logging
from dataclasses import dataclass
from typing import Protocol

from editor_sync.domain.errors import RemoteCallFailure
from editor_sync.domain.images import StoredImage
from editor_sync.domain.remote import RemoteProject

logger = logging.getLogger(__name__)

PRIMARY = "primary"
GENERATED = "generated"
REFERENCE = "reference"


class ArtifactStorage(Protocol):
    """Remote object storage for project images."""

    async def upload_image(
        self, owner_id: str, project_id: str, data_url: str, filename: str
    ) -> str:
        """Upload inline image data (upserting) and return its public URL."""


class RemoteProjectRepository(Protocol):
    """Remote project rows."""

    def update_project(self, project_id: str, fields: dict[str, object]) -> None:
        """Update columns on a remote project."""

    def append_event(
        self, project_id: str, event_type: str, meta: dict[str, object] | None = None
    ) -> None:
        """Append an event to the remote project's event log."""

    def list_recent_projects(self, owner_id: str, limit: int) -> list[RemoteProject]:
        """Return the owner's newest remote projects."""


def artifact_filename(role: str, image: StoredImage) -> str:
    """Return the stable storage filename for an artifact."""
    if role == PRIMARY:
        return "primary.png"
    if role == GENERATED:
        return "generated.png"
    return f"references/{image.id}.png"


def artifact_label(role: str, image: StoredImage) -> str:
    """Return a human-readable artifact name for logs and events."""
    if role == REFERENCE:
        return f"reference:{image.id}"
    return role


@dataclass
class ArtifactPersister:
    """Uploads one image and records it on the remote project."""

    storage: ArtifactStorage
    remote_projects: RemoteProjectRepository

    async def persist(
        self,
        owner_id: str,
        project_id: str,
        role: str,
        image: StoredImage,
        prompt: str | None = None,
    ) -> str:
        """Upload an inline image; raises RemoteCallFailure if the upload fails."""
        public_url = await self.storage.upload_image(
            owner_id=owner_id,
            project_id=project_id,
            data_url=image.url,
            filename=artifact_filename(role, image),
        )
        self._record(project_id, role, public_url, prompt)
        return public_url

    def _record(
        self, project_id: str, role: str, public_url: str, prompt: str | None
    ) -> None:
        if role == PRIMARY:
            fields: dict[str, object] = {"primary_image_url": public_url}
            event_type = "upload_primary"
            meta: dict[str, object] = {"url": public_url}
        elif role == GENERATED:
            fields = {"generated_image_url": public_url, "thumbnail_url": public_url}
            event_type = "generate"
            meta = {"url": public_url, "prompt": prompt}
        else:
            fields = {}
            event_type = "upload_reference"
            meta = {"url": public_url}
        try:
            if fields:
                self.remote_projects.update_project(project_id, fields)
            self.remote_projects.append_event(project_id, event_type, meta)
        except RemoteCallFailure as exc:
            logger.warning(
                "Failed to record %s upload on project %s: %s", role, project_id, exc
            )
