"""History-aware editor actions over the live session."""

import logging
from dataclasses import dataclass, field

from editor_sync.domain.history import HistoryOperation
from editor_sync.domain.images import StoredImage
from editor_sync.domain.projects import LocalProjectRecord
from editor_sync.domain.session import EditorSession
from editor_sync.services.artifacts import GENERATED, PRIMARY, ArtifactPersister
from editor_sync.services.history import (
    HistoryStack,
    create_adjustments_change_op,
    create_state_setter_op,
)
from editor_sync.services.linking import ProjectLinker
from editor_sync.services.local_projects import LocalProjectService
from editor_sync.services.snapshots import build_revision, build_snapshot
from editor_sync.services.tasks import TaskQueue

logger = logging.getLogger(__name__)

_GENERATION_LABELS = {
    "generation": "Image Generation",
    "sketch": "Sketch Generation",
    "area-edit": "Area Edit Generation",
}


@dataclass
class EditorService:
    """Applies user actions, records them for undo and as revisions."""

    session: EditorSession
    history: HistoryStack
    local_projects: LocalProjectService
    linker: ProjectLinker
    tasks: TaskQueue = field(default_factory=TaskQueue)
    artifacts: ArtifactPersister | None = None

    def set_primary_image(self, image: StoredImage) -> HistoryOperation:
        session = self.session
        prev = session.primary_image
        op = create_state_setter_op(
            "Set Primary Image",
            "set_primary_image",
            lambda: session.set_primary_image(image),
            lambda: session.set_primary_image(prev),
            metadata={"field": "primary_image", "prev": prev, "next": image},
            tags=("images",),
        )
        self._record(op)
        self._persist_remote(PRIMARY, image)
        return op

    def add_reference_image(self, image: StoredImage) -> HistoryOperation:
        session = self.session
        prev = list(session.reference_images)
        next_ = [*prev, image]
        op = create_state_setter_op(
            "Upload Reference",
            "upload_reference",
            lambda: session.set_reference_images(next_),
            lambda: session.set_reference_images(prev),
            metadata={
                "field": "reference_images",
                "prev": prev,
                "next": next_,
                "image": image,
            },
            tags=("references",),
        )
        self._record(op)
        return op

    def apply_generation(
        self, image: StoredImage, prompt: str | None, kind: str = "generation"
    ) -> HistoryOperation:
        """Record a generated image; kind is generation, sketch or area-edit."""
        if kind not in _GENERATION_LABELS:
            raise ValueError(f"Unknown generation kind: {kind}")
        session = self.session
        prev = session.generated_image
        op = create_state_setter_op(
            _GENERATION_LABELS[kind],
            "image_generation",
            lambda: session.set_generated_image(image),
            lambda: session.set_generated_image(prev),
            metadata={
                "field": "generated_image",
                "prev": prev,
                "next": image,
                "prompt": prompt,
            },
            tags=("ai", kind),
        )
        self._record(op)
        self._persist_remote(GENERATED, image, prompt)
        return op

    def apply_adjustments(
        self, adjustments: dict[str, object], label: str = "Adjustments Change"
    ) -> HistoryOperation | None:
        prev = self.session.adjustments
        if prev == adjustments:
            return None
        op = create_adjustments_change_op(
            prev, dict(adjustments), self.session.set_adjustments, label
        )
        self._record(op)
        return op

    def apply_filter(self, filter_id: str | None) -> HistoryOperation:
        session = self.session
        prev = session.filter
        op = create_state_setter_op(
            "Filter Apply",
            "filter_apply",
            lambda: session.set_filter(filter_id),
            lambda: session.set_filter(prev),
            metadata={"field": "filter", "prev": prev, "next": filter_id},
            tags=("filters",),
        )
        self._record(op)
        return op

    def set_prompt(self, prompt: str | None) -> None:
        self.session.set_prompt(prompt)

    def undo(self) -> HistoryOperation | None:
        return self.history.undo()

    def redo(self) -> HistoryOperation | None:
        return self.history.redo()

    def save(self) -> LocalProjectRecord | None:
        return self.linker.save(self.session)

    def start_new_project(self) -> LocalProjectRecord | None:
        return self.linker.start_new_project(self.session, self.history)

    def _record(self, op: HistoryOperation) -> None:
        op.apply()
        self.history.push(op)
        project_id = self.session.local_project_id
        if project_id is not None:
            self.local_projects.append_revision(
                project_id,
                build_revision(op, build_snapshot(self.session), revision_id=op.id),
            )

    def _persist_remote(
        self, role: str, image: StoredImage, prompt: str | None = None
    ) -> None:
        session = self.session
        if (
            self.artifacts is None
            or not image.is_inline
            or not session.remote_id
            or not session.owner_id
        ):
            return
        self.tasks.schedule(
            self.artifacts.persist(
                owner_id=session.owner_id,
                project_id=session.remote_id,
                role=role,
                image=image,
                prompt=prompt,
            ),
            name=f"persist-{role}:{session.remote_id}",
        )
