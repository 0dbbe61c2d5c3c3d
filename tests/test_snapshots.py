"""Tests for the snapshot builder."""

from editor_sync.domain.projects import (
    ChangePayload,
    GenerationPayload,
    ProjectStatus,
    RevisionType,
)
from editor_sync.domain.session import EditorSession
from editor_sync.services.history import create_state_setter_op
from editor_sync.services.snapshots import (
    build_local_project,
    build_snapshot,
    revisions_from_history,
    to_revision_type,
)
from tests.conftest import make_image


def test_to_revision_type_maps_categories() -> None:
    assert to_revision_type("image_generation", {"ai", "generation"}) is (
        RevisionType.IMAGE_GENERATION
    )
    assert to_revision_type("image_generation", {"ai", "sketch"}) is (
        RevisionType.SKETCH_GENERATION
    )
    assert to_revision_type("image_generation", {"ai", "area-edit"}) is (
        RevisionType.AREA_EDIT_GENERATION
    )
    assert to_revision_type(None, {"images"}) is RevisionType.SET_PRIMARY_IMAGE
    assert to_revision_type(None, {"filters"}) is RevisionType.FILTER_APPLY
    assert to_revision_type(None, {"editor", "adjustments"}) is (
        RevisionType.ADJUSTMENTS_CHANGE
    )
    assert to_revision_type("upload_reference") is RevisionType.UPLOAD_REFERENCE


def test_to_revision_type_falls_back_to_initial_snapshot() -> None:
    assert to_revision_type("stroke_add", {"canvas", "stroke"}) is (
        RevisionType.INITIAL_SNAPSHOT
    )
    assert to_revision_type(None) is RevisionType.INITIAL_SNAPSHOT


def test_snapshot_does_not_alias_session_state() -> None:
    session = EditorSession(adjustments={"hsl": {"red": 1}})
    session.reference_images.append(make_image("ref-1"))

    snapshot = build_snapshot(session)
    session.adjustments["hsl"]["red"] = 99  # type: ignore[index]
    session.reference_images.append(make_image("ref-2"))

    assert snapshot.adjustments == {"hsl": {"red": 1}}
    assert len(snapshot.reference_images) == 1


def test_build_local_project_seeds_initial_revision() -> None:
    session = EditorSession(
        primary_image=make_image("primary"), prompt="add hat", name="Portrait"
    )

    record = build_local_project(session, "local-1")

    assert record.status is ProjectStatus.PENDING
    assert record.remote_id is None
    assert record.name == "Portrait"
    assert record.thumbnail == record.primary_image.url  # type: ignore[union-attr]
    assert [revision.id for revision in record.revisions] == ["local-1-rev-initial"]
    assert record.revisions[0].type is RevisionType.INITIAL_SNAPSHOT


def test_revisions_from_history_rewinds_snapshots() -> None:
    session = EditorSession()
    first = make_image("gen-1")
    second = make_image("gen-2")
    ops = []
    for image, prompt in ((first, "hat"), (second, "scarf")):
        prev = session.generated_image
        op = create_state_setter_op(
            "Image Generation",
            "image_generation",
            lambda image=image: session.set_generated_image(image),
            lambda prev=prev: session.set_generated_image(prev),
            metadata={
                "field": "generated_image",
                "prev": prev,
                "next": image,
                "prompt": prompt,
            },
            tags=("ai", "generation"),
        )
        op.apply()
        ops.append(op)
    stroke = create_state_setter_op(
        "Stroke Add", "stroke_add", lambda: None, lambda: None
    )
    ops.append(stroke)

    revisions = revisions_from_history(ops, session)

    assert [revision.type for revision in revisions] == [
        RevisionType.IMAGE_GENERATION,
        RevisionType.IMAGE_GENERATION,
        RevisionType.INITIAL_SNAPSHOT,
    ]
    assert revisions[0].snapshot.generated_image == first
    assert revisions[1].snapshot.generated_image == second
    assert revisions[0].payload == GenerationPayload(
        prev_url=None, next_url=first.url, prompt="hat"
    )
    assert revisions[2].payload == ChangePayload(
        action="stroke_add", label="Stroke Add"
    )
