"""Domain model for undoable editor operations."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class HistoryOperation:
    """A reversible edit with a label and category tags.

    ``apply`` and ``undo`` close over the live session setters. ``metadata``
    carries the previous and next values and is only read when deriving
    revisions.
    """

    id: str
    label: str
    category: frozenset[str]
    timestamp: datetime
    apply: Callable[[], None]
    undo: Callable[[], None]
    action: str | None = None
    metadata: dict[str, object] = field(default_factory=dict)
