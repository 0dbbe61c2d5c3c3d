"""Tests for the session-to-local-project linking policy."""

import asyncio

from editor_sync.domain.projects import EventAction, ProjectStatus, RevisionType
from editor_sync.domain.session import EditorSession
from editor_sync.services.history import HistoryStack, create_state_setter_op
from editor_sync.services.linking import ProjectLinker
from editor_sync.services.local_projects import LocalProjectService
from editor_sync.services.snapshots import build_local_project
from editor_sync.services.tasks import TaskQueue
from tests.conftest import make_image


def _linker(local_projects: LocalProjectService) -> ProjectLinker:
    counter = iter(range(1, 100))
    return ProjectLinker(local_projects, id_factory=lambda: f"local-{next(counter)}")


def test_empty_session_is_not_persisted(local_projects: LocalProjectService) -> None:
    linker = _linker(local_projects)

    assert linker.persist_session(EditorSession()) is None
    assert local_projects.list_local() == []


def test_repeated_exits_with_remote_id_keep_one_record(
    local_projects: LocalProjectService,
) -> None:
    linker = _linker(local_projects)

    for _ in range(3):
        session = EditorSession(remote_id="proj-42", prompt="add hat")
        linker.save_on_exit(session)

    linked = [r for r in local_projects.list_local() if r.remote_id == "proj-42"]
    assert len(linked) == 1
    assert linked[0].status is ProjectStatus.SYNCED
    assert [e.action for e in linked[0].events].count(EventAction.SAVE_ON_EXIT) == 3


def test_tracked_record_is_updated_in_place(
    local_projects: LocalProjectService,
) -> None:
    linker = _linker(local_projects)
    session = EditorSession(prompt="first")

    first = linker.save(session)
    session.set_prompt("second")
    second = linker.save(session)

    assert first is not None and second is not None
    assert first.id == second.id == session.local_project_id
    assert len(local_projects.list_local()) == 1
    assert second.prompt == "second"
    assert second.status is ProjectStatus.PENDING


def test_existing_remote_link_is_reused(local_projects: LocalProjectService) -> None:
    existing = build_local_project(EditorSession(prompt="old"), "local-existing")
    local_projects.save(existing)
    local_projects.mark_synced("local-existing", "proj-7")
    linker = _linker(local_projects)
    session = EditorSession(remote_id="proj-7", prompt="new")

    record = linker.persist_session(session, EventAction.SAVE_ON_EXIT)

    assert record is not None
    assert record.id == "local-existing"
    assert record.prompt == "new"
    assert session.local_project_id == "local-existing"
    assert len(local_projects.list_local()) == 1


def test_new_record_is_linked_to_remote_id(
    local_projects: LocalProjectService,
) -> None:
    linker = _linker(local_projects)
    session = EditorSession(remote_id="proj-9", primary_image=make_image("p"))

    record = linker.save(session)

    assert record is not None
    assert record.remote_id == "proj-9"
    assert record.status is ProjectStatus.SYNCED
    assert local_projects.find_by_remote_id("proj-9") == record


def test_start_new_project_captures_history_and_resets(
    local_projects: LocalProjectService,
) -> None:
    linker = _linker(local_projects)
    session = EditorSession(owner_id="user-1", prompt="hat")
    history = HistoryStack()
    image = make_image("gen-1")
    op = create_state_setter_op(
        "Image Generation",
        "image_generation",
        lambda: session.set_generated_image(image),
        lambda: session.set_generated_image(None),
        metadata={"field": "generated_image", "prev": None, "next": image},
        tags=("ai", "generation"),
    )
    op.apply()
    history.push(op)

    record = linker.start_new_project(session, history)

    assert record is not None
    assert [revision.type for revision in record.revisions] == [
        RevisionType.INITIAL_SNAPSHOT,
        RevisionType.IMAGE_GENERATION,
    ]
    assert record.events[-1].action is EventAction.NEW_PROJECT
    assert history.past_count == 0
    assert session.generated_image is None
    assert session.local_project_id is None
    assert session.owner_id == "user-1"


def test_save_on_exit_schedules_background_sync(
    local_projects: LocalProjectService,
) -> None:
    linker = _linker(local_projects)
    session = EditorSession(owner_id="user-1", prompt="hat")
    synced: list[tuple[str, str]] = []

    async def sync(project_id: str, owner_id: str) -> None:
        synced.append((project_id, owner_id))

    async def run() -> None:
        tasks = TaskQueue()
        linker.save_on_exit(session, tasks=tasks, sync=sync)
        await tasks.drain()

    asyncio.run(run())

    assert synced == [("local-1", "user-1")]
