"""In-memory undo/redo stack for the live editing session."""

import copy
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from editor_sync.domain.history import HistoryOperation

logger = logging.getLogger(__name__)


@dataclass
class HistoryStack:
    """Linear undo/redo history; a new push truncates the redo branch."""

    max_depth: int = 500
    throttle_ms: int = 0
    clock: Callable[[], float] = time.monotonic
    past: list[HistoryOperation] = field(default_factory=list)
    future: list[HistoryOperation] = field(default_factory=list)
    _last_push: float | None = field(default=None, repr=False)

    @property
    def is_undo_available(self) -> bool:
        return bool(self.past)

    @property
    def is_redo_available(self) -> bool:
        return bool(self.future)

    @property
    def past_count(self) -> int:
        return len(self.past)

    @property
    def future_count(self) -> int:
        return len(self.future)

    def push(self, op: HistoryOperation) -> None:
        """Record an operation the caller has already applied."""
        if not callable(getattr(op, "apply", None)) or not callable(
            getattr(op, "undo", None)
        ):
            logger.debug("Ignoring malformed history operation: %r", op)
            return
        now = self.clock()
        if (
            self.throttle_ms > 0
            and self._last_push is not None
            and (now - self._last_push) * 1000 < self.throttle_ms
        ):
            return
        self._last_push = now
        self.past.append(op)
        if len(self.past) > self.max_depth:
            del self.past[0]
        self.future.clear()

    def undo(self) -> HistoryOperation | None:
        """Revert the latest operation and move it to the redo stack."""
        if not self.past:
            return None
        op = self.past.pop()
        try:
            op.undo()
        except Exception:
            logger.exception("History undo failed for %s", op.label)
        self.future.append(op)
        return op

    def redo(self) -> HistoryOperation | None:
        """Reapply the latest undone operation."""
        if not self.future:
            return None
        op = self.future.pop()
        try:
            op.apply()
        except Exception:
            logger.exception("History redo failed for %s", op.label)
        self.past.append(op)
        return op

    def clear(self) -> None:
        """Drop both stacks."""
        self.past.clear()
        self.future.clear()


def create_state_setter_op(
    label: str,
    action: str,
    apply: Callable[[], None],
    undo: Callable[[], None],
    metadata: dict[str, object] | None = None,
    tags: Iterable[str] = (),
) -> HistoryOperation:
    """Build an operation from explicit apply/undo closures."""
    return HistoryOperation(
        id=str(uuid4()),
        label=label,
        category=frozenset(tags),
        timestamp=datetime.now(tz=UTC),
        apply=apply,
        undo=undo,
        action=action,
        metadata=dict(metadata or {}),
    )


def create_adjustments_change_op(
    prev: dict[str, object] | None,
    next_: dict[str, object] | None,
    set_adjustments: Callable[[dict[str, object] | None], None],
    label: str = "Adjustments Change",
) -> HistoryOperation:
    """Build an operation swapping whole adjustment sets.

    The session receives copies, so in-place edits never reach the history.
    """
    prev = copy.deepcopy(prev)
    next_ = copy.deepcopy(next_)
    return create_state_setter_op(
        label,
        "adjustments_change",
        lambda: set_adjustments(copy.deepcopy(next_)),
        lambda: set_adjustments(copy.deepcopy(prev)),
        metadata={"field": "adjustments", "prev": prev, "next": next_},
        tags=("editor", "adjustments"),
    )
