"""JSON-file implementation of the local project store."""

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from pathlib import Path

from editor_sync.domain.images import StoredImage
from editor_sync.domain.projects import (
    EVENT_PAYLOAD_TYPES,
    REVISION_PAYLOAD_TYPES,
    Event,
    EventAction,
    LocalProjectRecord,
    ProjectSnapshot,
    ProjectStatus,
    Revision,
    RevisionType,
)
from editor_sync.services.local_projects import LocalProjectRepository

logger = logging.getLogger(__name__)


@dataclass
class JsonFileLocalProjectRepository(LocalProjectRepository):
    """Stores every local project in one JSON document on disk.

    The file is read and rewritten whole on each call; writes go through a
    temporary file so a crash never leaves a truncated document.
    """

    path: Path

    def list_projects(self) -> list[LocalProjectRecord]:
        """Return all parseable records in file order."""
        return [record for record in map(_parse_record, self._load()) if record]

    def get_project(self, project_id: str) -> LocalProjectRecord | None:
        """Return a record by id, if present."""
        for record in self.list_projects():
            if record.id == project_id:
                return record
        return None

    def insert_project(self, record: LocalProjectRecord) -> None:
        """Insert a record at the top of the document."""
        rows = self._load()
        rows.insert(0, _record_row(record))
        self._dump(rows)

    def replace_project(self, record: LocalProjectRecord) -> None:
        """Overwrite the row with the record's id."""
        rows = self._load()
        for index, row in enumerate(rows):
            if row.get("id") == record.id:
                rows[index] = _record_row(record)
                break
        else:
            raise KeyError(record.id)
        self._dump(rows)

    def _load(self) -> list[dict[str, object]]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable local project store %s", self.path)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring malformed local project store %s", self.path)
            return []
        return [row for row in data if isinstance(row, dict)]

    def _dump(self, rows: list[dict[str, object]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(rows, handle)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _record_row(record: LocalProjectRecord) -> dict[str, object]:
    return {
        "id": record.id,
        "name": record.name,
        "description": record.description,
        "status": record.status.value,
        "remote_id": record.remote_id,
        "primary_image": _image_row(record.primary_image),
        "generated_image": _image_row(record.generated_image),
        "reference_images": [_image_row(image) for image in record.reference_images],
        "prompt": record.prompt,
        "adjustments": record.adjustments,
        "filter": record.filter,
        "thumbnail": record.thumbnail,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
        "events": [
            {
                "label": event.label,
                "timestamp": event.timestamp.isoformat(),
                "action": event.action.value,
                "payload": asdict(event.payload) if event.payload else None,
            }
            for event in record.events
        ],
        "revisions": [
            {
                "id": revision.id,
                "label": revision.label,
                "timestamp": revision.timestamp.isoformat(),
                "type": revision.type.value,
                "snapshot": _snapshot_row(revision.snapshot),
                "payload": asdict(revision.payload) if revision.payload else None,
            }
            for revision in record.revisions
        ],
    }


def _image_row(image: StoredImage | None) -> dict[str, object] | None:
    if image is None:
        return None
    return {
        "id": image.id,
        "url": image.url,
        "name": image.name,
        "size": image.size,
        "created_at": image.created_at.isoformat(),
    }


def _snapshot_row(snapshot: ProjectSnapshot) -> dict[str, object]:
    return {
        "primary_image": _image_row(snapshot.primary_image),
        "generated_image": _image_row(snapshot.generated_image),
        "reference_images": [
            _image_row(image) for image in snapshot.reference_images
        ],
        "prompt": snapshot.prompt,
        "adjustments": snapshot.adjustments,
        "filter": snapshot.filter,
    }


def _parse_record(row: dict[str, object]) -> LocalProjectRecord | None:
    """Parse a stored row, skipping rows that do not match the layout."""
    try:
        return LocalProjectRecord(
            id=str(row["id"]),
            name=str(row["name"]),
            description=row.get("description"),
            status=ProjectStatus(row.get("status", ProjectStatus.PENDING)),
            remote_id=row.get("remote_id"),
            primary_image=_parse_image(row.get("primary_image")),
            generated_image=_parse_image(row.get("generated_image")),
            reference_images=_parse_images(row.get("reference_images")),
            prompt=row.get("prompt"),
            adjustments=row.get("adjustments"),
            filter=row.get("filter"),
            thumbnail=row.get("thumbnail"),
            created_at=datetime.fromisoformat(str(row["created_at"])),
            updated_at=datetime.fromisoformat(
                str(row.get("updated_at") or row["created_at"])
            ),
            events=tuple(_parse_event(item) for item in row.get("events") or []),
            revisions=tuple(
                _parse_revision(item) for item in row.get("revisions") or []
            ),
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Skipping malformed local project %r: %s", row.get("id"), exc)
        return None


def _parse_image(raw: object) -> StoredImage | None:
    if not isinstance(raw, dict):
        return None
    return StoredImage(
        id=str(raw["id"]),
        url=str(raw["url"]),
        name=str(raw.get("name", "")),
        size=raw.get("size"),
        created_at=datetime.fromisoformat(str(raw["created_at"])),
    )


def _parse_images(raw: object) -> tuple[StoredImage, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(image for image in map(_parse_image, raw) if image is not None)


def _parse_snapshot(raw: object) -> ProjectSnapshot:
    data = raw if isinstance(raw, dict) else {}
    return ProjectSnapshot(
        primary_image=_parse_image(data.get("primary_image")),
        generated_image=_parse_image(data.get("generated_image")),
        reference_images=_parse_images(data.get("reference_images")),
        prompt=data.get("prompt"),
        adjustments=data.get("adjustments"),
        filter=data.get("filter"),
    )


def _parse_payload(raw: object, allowed: tuple[type, ...]) -> object | None:
    if not isinstance(raw, dict) or not allowed:
        return None
    payload_type = allowed[0]
    names = {item.name for item in fields(payload_type)}
    return payload_type(**{key: value for key, value in raw.items() if key in names})


def _parse_event(raw: dict[str, object]) -> Event:
    action = EventAction(raw["action"])
    return Event(
        label=str(raw.get("label", "")),
        timestamp=datetime.fromisoformat(str(raw["timestamp"])),
        action=action,
        payload=_parse_payload(raw.get("payload"), EVENT_PAYLOAD_TYPES[action]),
    )


def _parse_revision(raw: dict[str, object]) -> Revision:
    revision_type = RevisionType(raw["type"])
    return Revision(
        id=str(raw["id"]),
        label=str(raw.get("label", "")),
        timestamp=datetime.fromisoformat(str(raw["timestamp"])),
        type=revision_type,
        snapshot=_parse_snapshot(raw.get("snapshot")),
        payload=_parse_payload(
            raw.get("payload"), REVISION_PAYLOAD_TYPES[revision_type]
        ),
    )
