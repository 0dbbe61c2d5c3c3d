"""Pure builders turning session state and history into persisted shapes."""

import copy
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from uuid import uuid4

from editor_sync.domain.history import HistoryOperation
from editor_sync.domain.images import StoredImage
from editor_sync.domain.projects import (
    ChangePayload,
    Event,
    GenerationPayload,
    ImageChangePayload,
    LocalProjectRecord,
    ProjectSnapshot,
    Revision,
    RevisionPayload,
    RevisionType,
    ValueChangePayload,
)
from editor_sync.domain.session import EditorSession

# Checked in order; the first tag set contained in an operation's category wins.
_CATEGORY_TYPES: tuple[tuple[frozenset[str], RevisionType], ...] = (
    (frozenset({"ai", "sketch"}), RevisionType.SKETCH_GENERATION),
    (frozenset({"ai", "area-edit"}), RevisionType.AREA_EDIT_GENERATION),
    (frozenset({"ai", "generation"}), RevisionType.IMAGE_GENERATION),
    (frozenset({"references"}), RevisionType.UPLOAD_REFERENCE),
    (frozenset({"images"}), RevisionType.SET_PRIMARY_IMAGE),
    (frozenset({"adjustments"}), RevisionType.ADJUSTMENTS_CHANGE),
    (frozenset({"filters"}), RevisionType.FILTER_APPLY),
)

_GENERATION_TYPES = {
    RevisionType.IMAGE_GENERATION,
    RevisionType.SKETCH_GENERATION,
    RevisionType.AREA_EDIT_GENERATION,
}

_SNAPSHOT_FIELDS = {
    "primary_image",
    "generated_image",
    "reference_images",
    "prompt",
    "adjustments",
    "filter",
}


def build_snapshot(session: EditorSession) -> ProjectSnapshot:
    """Copy the live session state into an independent snapshot."""
    return ProjectSnapshot(
        primary_image=session.primary_image,
        generated_image=session.generated_image,
        reference_images=tuple(session.reference_images),
        prompt=session.prompt,
        adjustments=copy.deepcopy(session.adjustments),
        filter=session.filter,
    )


def build_local_project(
    session: EditorSession,
    project_id: str,
    name: str | None = None,
    events: Iterable[Event] = (),
    now: datetime | None = None,
) -> LocalProjectRecord:
    """Build a pending local project seeded with an initial revision."""
    timestamp = now or datetime.now(tz=UTC)
    snapshot = build_snapshot(session)
    initial = Revision(
        id=f"{project_id}-rev-initial",
        label="Initial Snapshot",
        timestamp=timestamp,
        type=RevisionType.INITIAL_SNAPSHOT,
        snapshot=snapshot,
    )
    return LocalProjectRecord(
        id=project_id,
        name=name or session.name,
        created_at=timestamp,
        updated_at=timestamp,
        primary_image=snapshot.primary_image,
        generated_image=snapshot.generated_image,
        reference_images=snapshot.reference_images,
        prompt=snapshot.prompt,
        adjustments=copy.deepcopy(snapshot.adjustments),
        filter=snapshot.filter,
        thumbnail=thumbnail_for(snapshot),
        events=tuple(events),
        revisions=(initial,),
    )


def snapshot_fields(snapshot: ProjectSnapshot) -> dict[str, object]:
    """Return the record fields mirrored from a snapshot."""
    return {
        "primary_image": snapshot.primary_image,
        "generated_image": snapshot.generated_image,
        "reference_images": snapshot.reference_images,
        "prompt": snapshot.prompt,
        "adjustments": copy.deepcopy(snapshot.adjustments),
        "filter": snapshot.filter,
        "thumbnail": thumbnail_for(snapshot),
    }


def thumbnail_for(snapshot: ProjectSnapshot) -> str | None:
    """Prefer the generated image, fall back to the primary one."""
    if snapshot.generated_image:
        return snapshot.generated_image.url
    if snapshot.primary_image:
        return snapshot.primary_image.url
    return None


def to_revision_type(
    action: str | None, category: Iterable[str] = ()
) -> RevisionType:
    """Map an operation's tags to a revision type; unknown tags never raise."""
    tags = frozenset(category)
    for required, revision_type in _CATEGORY_TYPES:
        if required <= tags:
            return revision_type
    if action:
        try:
            return RevisionType(action)
        except ValueError:
            pass
    return RevisionType.INITIAL_SNAPSHOT


def build_revision(
    op: HistoryOperation, snapshot: ProjectSnapshot, revision_id: str | None = None
) -> Revision:
    """Derive the revision recorded for one history operation."""
    revision_type = to_revision_type(op.action, op.category)
    return Revision(
        id=revision_id or str(uuid4()),
        label=op.label,
        timestamp=op.timestamp,
        type=revision_type,
        snapshot=snapshot,
        payload=_revision_payload(revision_type, op),
    )


def revisions_from_history(
    past: Sequence[HistoryOperation], session: EditorSession
) -> list[Revision]:
    """Replay applied operations into revisions, oldest first.

    Each snapshot is rewound from the current state through the later
    operations' previous values.
    """
    snapshot = build_snapshot(session)
    revisions: list[Revision] = []
    for op in reversed(past):
        revisions.append(build_revision(op, snapshot, op.id))
        snapshot = _rewind(snapshot, op)
    revisions.reverse()
    return revisions


def _rewind(snapshot: ProjectSnapshot, op: HistoryOperation) -> ProjectSnapshot:
    target = op.metadata.get("field")
    if target not in _SNAPSHOT_FIELDS or "prev" not in op.metadata:
        return snapshot
    prev = op.metadata["prev"]
    if target == "reference_images":
        prev = tuple(prev or ())
    elif target == "adjustments":
        prev = copy.deepcopy(prev)
    return replace(snapshot, **{str(target): prev})


def _revision_payload(
    revision_type: RevisionType, op: HistoryOperation
) -> RevisionPayload:
    metadata = op.metadata
    if revision_type in _GENERATION_TYPES:
        prompt = metadata.get("prompt")
        return GenerationPayload(
            prev_url=_url_of(metadata.get("prev")),
            next_url=_url_of(metadata.get("next")),
            prompt=str(prompt) if prompt is not None else None,
        )
    if revision_type is RevisionType.UPLOAD_REFERENCE:
        return ImageChangePayload(
            prev_url=None,
            next_url=_url_of(metadata.get("image", metadata.get("next"))),
        )
    if revision_type is RevisionType.SET_PRIMARY_IMAGE:
        return ImageChangePayload(
            prev_url=_url_of(metadata.get("prev")),
            next_url=_url_of(metadata.get("next")),
        )
    if revision_type in {RevisionType.ADJUSTMENTS_CHANGE, RevisionType.FILTER_APPLY}:
        return ValueChangePayload(
            prev=copy.deepcopy(metadata.get("prev")),
            next=copy.deepcopy(metadata.get("next")),
        )
    return ChangePayload(action=op.action, label=op.label)


def _url_of(value: object) -> str | None:
    if isinstance(value, StoredImage):
        return value.url
    if isinstance(value, str):
        return value
    return None
