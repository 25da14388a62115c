"""Protocols for dependency injection in the designer engine."""

from typing import Protocol, runtime_checkable

from questionnaire_designer.core.dragdrop.geometry import (
    DragPreview,
    DropCandidate,
    DropSide,
    DropTargetElement,
)
from questionnaire_designer.models.control import ControlKind


@runtime_checkable
class IdFactory(Protocol):
    """Protocol for callables producing fresh, never-reused ids."""

    def __call__(self) -> str:
        """Return a new unique id."""
        ...


@runtime_checkable
class DropStrategy(Protocol):
    """Protocol for per-kind drag and drop behaviour."""

    strategy_id: str

    def applicable_kinds(self) -> frozenset[ControlKind]:
        """Control kinds this strategy is registered for."""
        ...

    def calculate_drop_position(
        self,
        element: DropTargetElement,
        pointer_x: float,
        pointer_y: float,
    ) -> DropCandidate:
        """Map a pointer position over ``element`` to a drop candidate."""
        ...

    def validate_drop(self, dragged_kind: ControlKind, side: DropSide) -> bool:
        """Whether a control of ``dragged_kind`` may land on ``side`` of the target."""
        ...

    def create_preview(self, dragged_kind: ControlKind, label: str) -> DragPreview:
        """Describe the drag ghost for the dragged item."""
        ...
