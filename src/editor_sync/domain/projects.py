"""Domain models for local projects, their events and revisions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from editor_sync.domain.images import StoredImage


class ProjectStatus(StrEnum):
    """Sync status of a local project."""

    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class EventAction(StrEnum):
    """Audit trail actions recorded on a local project."""

    SYNC_START = "sync_start"
    SYNC_SUCCESS = "sync_success"
    SYNC_FAILURE = "sync_failure"
    SAVE_ON_EXIT = "save_on_exit"
    NEW_PROJECT = "new_project"
    SAVE = "save"
    RENAME = "rename"


class RevisionType(StrEnum):
    """Edit boundaries a revision can be taken at."""

    SET_PRIMARY_IMAGE = "set_primary_image"
    UPLOAD_REFERENCE = "upload_reference"
    IMAGE_GENERATION = "image_generation"
    SKETCH_GENERATION = "sketch_generation"
    AREA_EDIT_GENERATION = "area_edit_generation"
    ADJUSTMENTS_CHANGE = "adjustments_change"
    FILTER_APPLY = "filter_apply"
    INITIAL_SNAPSHOT = "initial_snapshot"


@dataclass(frozen=True)
class SyncSuccessPayload:
    """Remote project a sync linked to."""

    remote_id: str


@dataclass(frozen=True)
class SyncFailurePayload:
    """Error from a failed sync step, optionally naming the artifact."""

    error: str
    artifact: str | None = None


@dataclass(frozen=True)
class SavePayload:
    """Why the session was persisted."""

    reason: str
    remote_id: str | None = None


@dataclass(frozen=True)
class RenamePayload:
    """Previous and new project names."""

    previous: str
    name: str


@dataclass(frozen=True)
class ImageChangePayload:
    """Image URLs before and after an image edit."""

    prev_url: str | None
    next_url: str | None


@dataclass(frozen=True)
class GenerationPayload:
    """Image URLs and prompt of a generative edit."""

    prev_url: str | None
    next_url: str | None
    prompt: str | None = None


@dataclass(frozen=True)
class ValueChangePayload:
    """Previous and next value of a setting."""

    prev: object
    next: object


@dataclass(frozen=True)
class ChangePayload:
    """Operation recorded without a dedicated revision type."""

    action: str | None
    label: str


EventPayload = SyncSuccessPayload | SyncFailurePayload | SavePayload | RenamePayload
RevisionPayload = (
    ImageChangePayload | GenerationPayload | ValueChangePayload | ChangePayload
)

EVENT_PAYLOAD_TYPES: dict[EventAction, tuple[type, ...]] = {
    EventAction.SYNC_START: (),
    EventAction.SYNC_SUCCESS: (SyncSuccessPayload,),
    EventAction.SYNC_FAILURE: (SyncFailurePayload,),
    EventAction.SAVE_ON_EXIT: (SavePayload,),
    EventAction.NEW_PROJECT: (SavePayload,),
    EventAction.SAVE: (SavePayload,),
    EventAction.RENAME: (RenamePayload,),
}

REVISION_PAYLOAD_TYPES: dict[RevisionType, tuple[type, ...]] = {
    RevisionType.SET_PRIMARY_IMAGE: (ImageChangePayload,),
    RevisionType.UPLOAD_REFERENCE: (ImageChangePayload,),
    RevisionType.IMAGE_GENERATION: (GenerationPayload,),
    RevisionType.SKETCH_GENERATION: (GenerationPayload,),
    RevisionType.AREA_EDIT_GENERATION: (GenerationPayload,),
    RevisionType.ADJUSTMENTS_CHANGE: (ValueChangePayload,),
    RevisionType.FILTER_APPLY: (ValueChangePayload,),
    RevisionType.INITIAL_SNAPSHOT: (ChangePayload,),
}


def _check_payload(tag: str, payload: object, allowed: tuple[type, ...]) -> None:
    if payload is None:
        return
    if not isinstance(payload, allowed):
        raise TypeError(f"Payload {type(payload).__name__} not allowed for {tag}")


@dataclass(frozen=True)
class ProjectSnapshot:
    """Independent copy of the editor state at one instant."""

    primary_image: StoredImage | None = None
    generated_image: StoredImage | None = None
    reference_images: tuple[StoredImage, ...] = ()
    prompt: str | None = None
    adjustments: dict[str, object] | None = None
    filter: str | None = None


@dataclass(frozen=True)
class Event:
    """Lightweight audit entry on a local project."""

    label: str
    timestamp: datetime
    action: EventAction
    payload: EventPayload | None = None

    def __post_init__(self) -> None:
        _check_payload(self.action, self.payload, EVENT_PAYLOAD_TYPES[self.action])


@dataclass(frozen=True)
class Revision:
    """Self-contained restore point taken at an edit boundary."""

    id: str
    label: str
    timestamp: datetime
    type: RevisionType
    snapshot: ProjectSnapshot
    payload: RevisionPayload | None = None

    def __post_init__(self) -> None:
        _check_payload(self.type, self.payload, REVISION_PAYLOAD_TYPES[self.type])


@dataclass(frozen=True)
class LocalProjectRecord:
    """Client-local snapshot of one editing project."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    status: ProjectStatus = ProjectStatus.PENDING
    remote_id: str | None = None
    description: str | None = None
    primary_image: StoredImage | None = None
    generated_image: StoredImage | None = None
    reference_images: tuple[StoredImage, ...] = ()
    prompt: str | None = None
    adjustments: dict[str, object] | None = None
    filter: str | None = None
    thumbnail: str | None = None
    events: tuple[Event, ...] = field(default=())
    revisions: tuple[Revision, ...] = field(default=())

    def inline_artifacts(self) -> list[tuple[str, StoredImage]]:
        """Return (role, image) pairs still held as inline data."""
        artifacts: list[tuple[str, StoredImage]] = []
        if self.primary_image and self.primary_image.is_inline:
            artifacts.append(("primary", self.primary_image))
        if self.generated_image and self.generated_image.is_inline:
            artifacts.append(("generated", self.generated_image))
        artifacts.extend(
            ("reference", image) for image in self.reference_images if image.is_inline
        )
        return artifacts
