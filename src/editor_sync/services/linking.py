"""Persists the live session into exactly one linked local project."""

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from editor_sync.domain.projects import (
    Event,
    EventAction,
    LocalProjectRecord,
    ProjectStatus,
    SavePayload,
)
from editor_sync.domain.session import DEFAULT_PROJECT_NAME, EditorSession
from editor_sync.services.history import HistoryStack
from editor_sync.services.local_projects import LocalProjectService
from editor_sync.services.snapshots import (
    build_local_project,
    build_snapshot,
    revisions_from_history,
    snapshot_fields,
    thumbnail_for,
)
from editor_sync.services.tasks import TaskQueue

logger = logging.getLogger(__name__)

_EVENT_LABELS = {
    EventAction.SAVE: "Saved",
    EventAction.SAVE_ON_EXIT: "Saved on exit",
    EventAction.NEW_PROJECT: "Saved before new project",
}


def new_local_id() -> str:
    """Return a fresh client-side project id."""
    return f"local-{uuid4()}"


@dataclass
class ProjectLinker:
    """Single routine deciding which local project a session is written to."""

    local_projects: LocalProjectService
    id_factory: Callable[[], str] = field(default=new_local_id)

    def persist_session(
        self, session: EditorSession, reason: EventAction = EventAction.SAVE
    ) -> LocalProjectRecord | None:
        """Write the session into its tracked, linked or a new local project.

        With a remote id the lookup order is: the record the session already
        tracks, then the record linked to that remote id, then a new record
        linked to it. Without one, the tracked record or a new pending one.
        """
        if not session.has_persistable_state():
            return None
        fields = snapshot_fields(build_snapshot(session))
        if session.name != DEFAULT_PROJECT_NAME:
            fields["name"] = session.name
        remote_id = session.remote_id

        if session.local_project_id is not None:
            record = self.local_projects.update(session.local_project_id, fields)
            if remote_id and record.remote_id is None:
                record = self.local_projects.mark_synced(record.id, remote_id)
        elif remote_id and (
            linked := self.local_projects.find_by_remote_id(remote_id)
        ):
            fields["status"] = ProjectStatus.SYNCED
            record = self.local_projects.update(linked.id, fields)
        else:
            record = self.local_projects.save(
                build_local_project(session, self.id_factory())
            )
            if remote_id:
                record = self.local_projects.mark_synced(record.id, remote_id)

        session.local_project_id = record.id
        return self.local_projects.append_event(
            record.id,
            Event(
                label=_EVENT_LABELS.get(reason, "Saved"),
                timestamp=datetime.now(tz=UTC),
                action=reason,
                payload=SavePayload(reason=reason.value, remote_id=remote_id),
            ),
        )

    def save(self, session: EditorSession) -> LocalProjectRecord | None:
        """Explicit save from the editor."""
        return self.persist_session(session, EventAction.SAVE)

    def save_on_exit(
        self,
        session: EditorSession,
        tasks: TaskQueue | None = None,
        sync: Callable[[str, str], Coroutine[Any, Any, Any]] | None = None,
    ) -> LocalProjectRecord | None:
        """Best-effort persist while leaving the editor.

        When the owner is signed in and a ``sync`` coroutine factory is given,
        the record is pushed to the remote backend in the background.
        """
        try:
            record = self.persist_session(session, EventAction.SAVE_ON_EXIT)
        except OSError as exc:
            logger.warning("Failed to save session on exit: %s", exc)
            return None
        if record and tasks and sync and session.owner_id:
            tasks.schedule(
                sync(record.id, session.owner_id), name=f"sync-on-exit:{record.id}"
            )
        return record

    def start_new_project(
        self, session: EditorSession, history: HistoryStack
    ) -> LocalProjectRecord | None:
        """Capture the current project with its history, then reset."""
        record = self.persist_session(session, EventAction.NEW_PROJECT)
        if record is not None:
            record = self._replay_missing(record, session, history)
        history.clear()
        session.reset()
        return record

    def _replay_missing(
        self,
        record: LocalProjectRecord,
        session: EditorSession,
        history: HistoryStack,
    ) -> LocalProjectRecord:
        """Append revisions for applied operations the record never received.

        Revisions share their operation's id, so operations recorded live
        while the record was tracked are skipped.
        """
        known = {revision.id for revision in record.revisions}
        missing = [
            revision
            for revision in revisions_from_history(history.past, session)
            if revision.id not in known
        ]
        for revision in missing:
            record = self.local_projects.append_revision(record.id, revision)
        if missing:
            # Replayed snapshots can be older than the live state.
            thumbnail = thumbnail_for(build_snapshot(session)) or record.thumbnail
            record = self.local_projects.update(record.id, {"thumbnail": thumbnail})
        return record
